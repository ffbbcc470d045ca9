"""Webhook通知器实现"""

import asyncio
import json
from typing import Dict, Any
from urllib.parse import urlparse

import aiohttp

from .base import BaseNotifier
from ..models.health_check import AlertMessage, TransportMethod
from ..services.registry import register_notifier
from ..utils.exceptions import DeliveryError


@register_notifier(TransportMethod.WEBHOOK.value)
class WebhookNotifier(BaseNotifier):
    """Webhook通知器，通过HTTP请求发送告警消息"""

    VALID_METHODS = ['GET', 'POST', 'PUT', 'PATCH']

    @property
    def url(self) -> str:
        return self.options.get('url', '')

    @property
    def http_method(self) -> str:
        return str(self.options.get('http_method', 'POST')).upper()

    def validate(self) -> None:
        self.require('url')

        parsed_url = urlparse(self.url)
        if parsed_url.scheme not in ('http', 'https') or not parsed_url.netloc:
            raise self.invalid('url', f"URL格式无效: {self.url}")

        if self.http_method not in self.VALID_METHODS:
            raise self.invalid('http_method',
                               f"不支持的HTTP方法 {self.http_method}，支持: {self.VALID_METHODS}")

        headers = self.options.get('headers', {})
        if not isinstance(headers, dict):
            raise self.invalid('headers', "必须是字典类型")

        template = self.options.get('template')
        if template is not None and not str(template).strip():
            raise self.invalid('template', "模板不能为空")

    async def send(self, message: AlertMessage) -> None:
        self.logger.info(f"发送Webhook告警: 检查={message.check_name}, 状态={message.status.value}")

        timeout = aiohttp.ClientTimeout(total=self.get_timeout())
        connector = aiohttp.TCPConnector(ssl=bool(self.options.get('ssl_verify', True)))

        async with aiohttp.ClientSession(timeout=timeout, connector=connector) as session:
            try:
                async with session.request(
                        method=self.http_method,
                        url=self.url,
                        headers=self.options.get('headers', {}),
                        **self._prepare_request_data(message)
                ) as response:
                    if 200 <= response.status < 300:
                        self.logger.debug(f"Webhook {self.name} 发送成功 (状态码: {response.status})")
                        return
                    response_text = await response.text()
                    raise DeliveryError(
                        f"Webhook返回错误状态码 {response.status}: {response_text[:200]}",
                        transport_name=self.name
                    )
            except aiohttp.ClientError as e:
                raise DeliveryError(f"Webhook请求失败: {e}", transport_name=self.name, cause=e)
            except asyncio.TimeoutError as e:
                raise DeliveryError("Webhook请求超时", transport_name=self.name, cause=e)

    def _prepare_request_data(self, message: AlertMessage) -> Dict[str, Any]:
        if self.http_method == 'GET':
            return {'params': {
                'check_name': message.check_name,
                'status': message.status.value,
                'subject': message.subject,
                'timestamp': message.timestamp.isoformat(),
            }}

        template = self.options.get('template')
        if not template:
            return {'json': {'subject': message.subject, 'body': message.body, **message.payload}}

        rendered = self._render_template(template, message)
        try:
            return {'json': json.loads(rendered)}
        except json.JSONDecodeError:
            return {'data': rendered}

    def _render_template(self, template: str, message: AlertMessage) -> str:
        """
        使用 {{变量}} 语法渲染模板

        JSON模板中的变量值会做字符串转义。
        """
        template_vars = {
            'check_name': message.check_name,
            'status': message.status.value,
            'subject': message.subject,
            'body': message.body,
            'timestamp': message.timestamp.isoformat(),
            'transport_name': message.transport_name,
        }
        for key, value in (message.payload.get('tags') or {}).items():
            template_vars[f'tag_{key}'] = value

        is_json_template = template.strip().startswith('{')
        rendered = template
        for key, value in template_vars.items():
            safe_value = str(value)
            if is_json_template:
                safe_value = json.dumps(safe_value)[1:-1]
            rendered = rendered.replace(f'{{{{{key}}}}}', safe_value)
        return rendered
