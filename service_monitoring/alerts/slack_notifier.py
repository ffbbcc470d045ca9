"""Slack通知器实现"""

import asyncio

import aiohttp

from .base import BaseNotifier
from ..models.health_check import AlertMessage, TransportMethod
from ..services.registry import register_notifier
from ..utils.exceptions import DeliveryError

SLACK_POST_MESSAGE_URL = 'https://slack.com/api/chat.postMessage'


@register_notifier(TransportMethod.SLACK.value)
class SlackNotifier(BaseNotifier):
    """Slack通知器，调用 chat.postMessage 接口"""

    def validate(self) -> None:
        self.require('token', 'channel')

    async def send(self, message: AlertMessage) -> None:
        payload = {
            'channel': self.options['channel'],
            'text': message.body,
        }
        if self.options.get('username'):
            payload['username'] = self.options['username']

        headers = {'Authorization': f"Bearer {self.options['token']}"}
        timeout = aiohttp.ClientTimeout(total=self.get_timeout())

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.options.get('api_url', SLACK_POST_MESSAGE_URL),
                                        json=payload, headers=headers) as response:
                    body = await response.json(content_type=None)
                    if response.status != 200 or not body.get('ok', False):
                        raise DeliveryError(
                            f"Slack返回错误: 状态码={response.status}, 错误={body.get('error')}",
                            transport_name=self.name
                        )
        except aiohttp.ClientError as e:
            raise DeliveryError(f"Slack请求失败: {e}", transport_name=self.name, cause=e)
        except asyncio.TimeoutError as e:
            raise DeliveryError("Slack请求超时", transport_name=self.name, cause=e)

        self.logger.info(f"Slack告警发送成功: channel={self.options['channel']}")
