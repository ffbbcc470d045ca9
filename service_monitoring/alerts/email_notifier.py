"""邮件通知器实现"""

import re
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import List

import aiosmtplib

from .base import BaseNotifier
from ..models.health_check import AlertMessage, TransportMethod
from ..services.registry import register_notifier
from ..utils.exceptions import DeliveryError

_EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


@register_notifier(TransportMethod.EMAIL.value)
class EmailNotifier(BaseNotifier):
    """邮件通知器，通过SMTP发送告警邮件"""

    @property
    def recipients(self) -> List[str]:
        to = self.options.get('to', [])
        if isinstance(to, str):
            return [addr.strip() for addr in to.split(',') if addr.strip()]
        return list(to)

    def validate(self) -> None:
        self.require('from', 'smtp_host', 'to')
        if self.options.get('authentication', False):
            self.require('username', 'password')

        for address in self.recipients + [self.options['from']]:
            if not _EMAIL_PATTERN.match(address):
                raise self.invalid('to' if address != self.options['from'] else 'from',
                                   f"邮箱格式无效: {address}")

        port = self.options.get('smtp_port', 25)
        if not isinstance(port, int) or not 0 < port <= 65535:
            raise self.invalid('smtp_port', f"端口无效: {port}")

        if self.options.get('use_ssl') and self.options.get('start_tls'):
            raise self.invalid('use_ssl', "不能同时启用SSL和STARTTLS")

    async def send(self, message: AlertMessage) -> None:
        email_msg = self._create_email_message(message)

        smtp_kwargs = {
            'hostname': self.options['smtp_host'],
            'port': self.options.get('smtp_port', 25),
            'timeout': self.get_timeout(),
            'use_tls': bool(self.options.get('use_ssl', False)),
            'start_tls': bool(self.options.get('start_tls', False)),
        }
        if self.options.get('authentication', False):
            smtp_kwargs['username'] = self.options['username']
            smtp_kwargs['password'] = self.options['password']

        try:
            await aiosmtplib.send(email_msg, **smtp_kwargs)
        except Exception as e:
            raise DeliveryError(f"SMTP发送失败: {e}", transport_name=self.name, cause=e)

        self.logger.info(f"邮件告警发送成功: {self.options['from']} -> {', '.join(self.recipients)}")

    def _create_email_message(self, message: AlertMessage) -> MIMEMultipart:
        email_msg = MIMEMultipart()
        email_msg['From'] = formataddr((self.options.get('from_name', '服务监控系统'),
                                        self.options['from']))
        email_msg['To'] = ', '.join(self.recipients)
        email_msg['Subject'] = message.subject
        email_msg.attach(MIMEText(message.body, 'plain', 'utf-8'))
        return email_msg
