"""告警模块"""

from .base import BaseNotifier
from .delivery import DeliveryDispatcher
from .message import compose_message
from .rules import AlertRuleEvaluator, RuleStateStore
from .callback_notifier import CallbackNotifier, add_callback, remove_callbacks
from .email_notifier import EmailNotifier
from .redis_notifier import RedisNotifier
from .slack_notifier import SlackNotifier
from .telegram_notifier import TelegramNotifier
from .webhook_notifier import WebhookNotifier

__all__ = [
    'BaseNotifier', 'DeliveryDispatcher', 'compose_message',
    'AlertRuleEvaluator', 'RuleStateStore',
    'CallbackNotifier', 'add_callback', 'remove_callbacks',
    'EmailNotifier', 'RedisNotifier', 'SlackNotifier', 'TelegramNotifier', 'WebhookNotifier'
]
