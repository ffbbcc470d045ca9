"""Redis发布通知器实现"""

import json
from datetime import timedelta

import redis.asyncio as redis

from .base import BaseNotifier
from ..models.health_check import AlertMessage, TransportMethod
from ..services.registry import register_notifier
from ..utils.exceptions import DeliveryError

LATEST_VALUE_TTL = timedelta(days=1)


@register_notifier(TransportMethod.REDIS.value)
class RedisNotifier(BaseNotifier):
    """
    Redis通知器

    向频道 health-check:{检查名} 发布消息，并把最新一条保存在
    health-check-latest:{检查名}，保留一天。
    """

    def validate(self) -> None:
        self.require('host')
        port = self.options.get('port', 6379)
        if not isinstance(port, int) or not 0 < port <= 65535:
            raise self.invalid('port', f"端口无效: {port}")
        database = self.options.get('database', 0)
        if not isinstance(database, int) or database < 0:
            raise self.invalid('database', f"数据库编号无效: {database}")

    def _create_client(self) -> redis.Redis:
        return redis.Redis(
            host=self.options['host'],
            port=self.options.get('port', 6379),
            db=self.options.get('database', 0),
            password=self.options.get('password'),
            socket_timeout=self.get_timeout(),
            socket_connect_timeout=self.get_timeout(),
            decode_responses=True
        )

    async def send(self, message: AlertMessage) -> None:
        channel = f"health-check:{message.check_name}"
        latest_key = f"health-check-latest:{message.check_name}"
        data = json.dumps({'subject': message.subject, 'body': message.body, **message.payload},
                          ensure_ascii=False, default=str)

        client = self._create_client()
        try:
            await client.publish(channel, data)
            await client.set(latest_key, data, ex=LATEST_VALUE_TTL)
        except redis.RedisError as e:
            raise DeliveryError(f"Redis发布失败: {e}", transport_name=self.name, cause=e)
        finally:
            await client.aclose()

        self.logger.info(f"Redis告警已发布到频道 {channel}")
