"""探测器模块"""

from .base import BaseProber
from .custom_prober import CustomProber, InterceptorProber, register_custom_check, unregister_custom_check
from .http_prober import HttpProber
from .mysql_prober import MySQLProber
from .ping_prober import PingProber
from .redis_prober import RedisProber

__all__ = ['BaseProber', 'HttpProber', 'RedisProber', 'MySQLProber', 'PingProber',
           'CustomProber', 'InterceptorProber', 'register_custom_check', 'unregister_custom_check']
