"""进程内回调通知器"""

import asyncio
import inspect
from typing import Callable, Dict, List

from .base import BaseNotifier
from ..models.health_check import AlertMessage, TransportMethod
from ..services.registry import register_notifier
from ..utils.exceptions import DeliveryError

# 通道名称 -> 回调列表
_callbacks: Dict[str, List[Callable]] = {}


def add_callback(transport_name: str, callback: Callable) -> None:
    """为指定通道注册回调，回调可以是同步或异步函数"""
    _callbacks.setdefault(transport_name, []).append(callback)


def remove_callbacks(transport_name: str) -> None:
    _callbacks.pop(transport_name, None)


@register_notifier(TransportMethod.CALLBACK.value)
class CallbackNotifier(BaseNotifier):
    """把告警消息交给进程内注册的回调函数"""

    def validate(self) -> None:
        callback = self.options.get('callback')
        if callback is not None and not callable(callback):
            raise self.invalid('callback', "必须是可调用对象")

    def _get_callbacks(self) -> List[Callable]:
        callbacks = list(_callbacks.get(self.name, []))
        if self.options.get('callback') is not None:
            callbacks.append(self.options['callback'])
        return callbacks

    async def send(self, message: AlertMessage) -> None:
        callbacks = self._get_callbacks()
        if not callbacks:
            self.logger.debug(f"通道 {self.name} 没有注册回调")
            return

        errors = []
        for callback in callbacks:
            try:
                result = callback(message)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.error(f"回调 {getattr(callback, '__name__', callback)} 执行失败: {e}")
                errors.append(e)

        if errors:
            raise DeliveryError(f"{len(errors)} 个回调执行失败", transport_name=self.name,
                                cause=errors[0])
