"""存储模块"""

from .base import MonitoringDataRepository
from .memory import InMemoryMonitoringDataRepository

__all__ = ['MonitoringDataRepository', 'InMemoryMonitoringDataRepository']
