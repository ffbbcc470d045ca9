"""Redis探测器"""

import redis.asyncio as redis

from .base import BaseProber
from ..models.health_check import HealthStatus, Observation
from ..services.registry import register_prober


@register_prober('redis')
class RedisProber(BaseProber):
    """Redis探测器，执行PING命令"""

    def _connection_kwargs(self):
        return {
            'host': self.settings.get('host') or self.check.target,
            'port': self.settings.get('port', 6379),
            'db': self.settings.get('database', 0),
            'password': self.settings.get('password'),
            'socket_timeout': self.get_timeout(),
            'socket_connect_timeout': self.get_timeout(),
            'decode_responses': True,
        }

    def validate(self) -> None:
        if not (self.settings.get('host') or self.check.target):
            raise self.invalid('target', "缺少Redis主机地址")

        port = self.settings.get('port', 6379)
        if not isinstance(port, int) or not 0 < port <= 65535:
            raise self.invalid('port', f"端口无效: {port}")

        database = self.settings.get('database', 0)
        if not isinstance(database, int) or database < 0:
            raise self.invalid('database', f"数据库编号无效: {database}")

    async def check_health(self) -> Observation:
        kwargs = self._connection_kwargs()
        client = redis.Redis(**kwargs)
        try:
            pong = await client.ping()
        except redis.AuthenticationError as e:
            return self.observation(HealthStatus.UNHEALTHY, error_message=f"Redis认证失败: {e}")
        except redis.TimeoutError as e:
            return self.observation(HealthStatus.UNHEALTHY, error_message=f"Redis连接超时: {e}")
        except redis.ConnectionError as e:
            return self.observation(HealthStatus.UNHEALTHY, error_message=f"Redis连接错误: {e}")
        except redis.RedisError as e:
            return self.observation(HealthStatus.UNHEALTHY, error_message=f"Redis响应错误: {e}")
        finally:
            await client.aclose()

        if not pong:
            return self.observation(HealthStatus.UNHEALTHY, error_message="PING命令返回False")
        return self.observation(HealthStatus.HEALTHY,
                                description=f"Redis {kwargs['host']}:{kwargs['port']} PING成功")
