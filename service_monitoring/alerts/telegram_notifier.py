"""Telegram通知器实现"""

import asyncio

import aiohttp

from .base import BaseNotifier
from ..models.health_check import AlertMessage, TransportMethod
from ..services.registry import register_notifier
from ..utils.exceptions import DeliveryError

TELEGRAM_API_URL = 'https://api.telegram.org'


@register_notifier(TransportMethod.TELEGRAM.value)
class TelegramNotifier(BaseNotifier):
    """Telegram机器人通知器"""

    def validate(self) -> None:
        self.require('bot_api_token', 'chat_id')

    async def send(self, message: AlertMessage) -> None:
        api_url = self.options.get('api_url', TELEGRAM_API_URL).rstrip('/')
        url = f"{api_url}/bot{self.options['bot_api_token']}/sendMessage"
        payload = {
            'chat_id': self.options['chat_id'],
            'text': message.body,
            'disable_web_page_preview': True,
        }

        timeout = aiohttp.ClientTimeout(total=self.get_timeout())
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json=payload) as response:
                    body = await response.json(content_type=None)
                    if response.status != 200 or not body.get('ok', False):
                        raise DeliveryError(
                            f"Telegram返回错误: 状态码={response.status}, "
                            f"描述={body.get('description')}",
                            transport_name=self.name
                        )
        except aiohttp.ClientError as e:
            raise DeliveryError(f"Telegram请求失败: {e}", transport_name=self.name, cause=e)
        except asyncio.TimeoutError as e:
            raise DeliveryError("Telegram请求超时", transport_name=self.name, cause=e)

        self.logger.info(f"Telegram告警发送成功: chat_id={self.options['chat_id']}")
