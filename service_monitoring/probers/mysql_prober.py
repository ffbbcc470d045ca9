"""MySQL探测器"""

import asyncio

import aiomysql

from .base import BaseProber
from ..models.health_check import HealthStatus, Observation
from ..services.registry import register_prober


@register_prober('mysql')
class MySQLProber(BaseProber):
    """MySQL探测器，每次新建连接并执行 SELECT 1"""

    def _connection_kwargs(self):
        return {
            'host': self.settings.get('host') or self.check.target,
            'port': self.settings.get('port', 3306),
            'user': self.settings.get('username', 'root'),
            'password': self.settings.get('password', ''),
            'db': self.settings.get('database', ''),
            'connect_timeout': self.get_timeout(),
            'autocommit': True,
        }

    def validate(self) -> None:
        if not (self.settings.get('host') or self.check.target):
            raise self.invalid('target', "缺少MySQL主机地址")

        port = self.settings.get('port', 3306)
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port <= 65535:
            raise self.invalid('port', f"端口无效: {port}")

        username = self.settings.get('username')
        if username is not None and not isinstance(username, str):
            raise self.invalid('username', f"用户名类型无效: {type(username).__name__}")

    async def check_health(self) -> Observation:
        kwargs = self._connection_kwargs()
        target = f"{kwargs['host']}:{kwargs['port']}"
        connection = None
        try:
            connection = await aiomysql.connect(**kwargs)
            async with connection.cursor() as cursor:
                await cursor.execute("SELECT 1")
                result = await cursor.fetchone()

                version = None
                if self.settings.get('test_queries', False):
                    await cursor.execute("SELECT VERSION()")
                    row = await cursor.fetchone()
                    version = row[0] if row else None
        except aiomysql.Error as e:
            return self.observation(HealthStatus.UNHEALTHY, error_message=f"MySQL数据库错误: {e}")
        except asyncio.TimeoutError:
            return self.observation(HealthStatus.UNHEALTHY, error_message=f"MySQL连接超时: {target}")
        except OSError as e:
            return self.observation(HealthStatus.UNHEALTHY, error_message=f"MySQL连接失败: {e}")
        finally:
            if connection is not None:
                connection.close()

        if not result or result[0] != 1:
            return self.observation(HealthStatus.UNHEALTHY,
                                    error_message=f"基础查询测试失败，返回结果: {result}")

        tags = {'mysql_version': version} if version else {}
        return self.observation(HealthStatus.HEALTHY, description=f"MySQL {target} 查询成功", **tags)
