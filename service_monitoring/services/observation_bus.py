"""观测总线

进程内发布/订阅，按订阅顺序把报告分发给每个订阅者。
单个订阅者出错只记录日志，不影响其他订阅者，也不向发布方传播。
"""

import asyncio
import inspect
import threading
from typing import Any, List, Optional

from ..models.health_check import Report
from ..utils.exceptions import ConfigurationError
from ..utils.log_manager import get_logger


class Subscription:
    """订阅句柄，可调用 unsubscribe() 或作为上下文管理器使用"""

    def __init__(self, bus: 'ObservationBus', observer: Any):
        self._bus = bus
        self.observer = observer

    def unsubscribe(self) -> bool:
        return self._bus.unsubscribe(self.observer)

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.unsubscribe()


class ObservationBus:
    """观测总线"""

    def __init__(self, max_subscribers: Optional[int] = None):
        """
        初始化观测总线

        Args:
            max_subscribers: 订阅者数量上限，None表示不限制
        """
        self.max_subscribers = max_subscribers
        self._observers: List[Any] = []
        self._lock = threading.Lock()
        self.logger = get_logger('bus')
        self.published_count = 0
        self.failed_deliveries = 0

    def subscribe(self, observer: Any) -> Subscription:
        """
        订阅报告，重复订阅同一对象不会产生第二次投递

        Args:
            observer: 带 on_report(report) 方法的对象，或普通（异步）函数

        Returns:
            Subscription: 订阅句柄

        Raises:
            ConfigurationError: 订阅者不可调用或超过数量上限
        """
        if not callable(getattr(observer, 'on_report', None)) and not callable(observer):
            raise ConfigurationError(f"订阅者必须是可调用对象或实现 on_report: {observer!r}")

        with self._lock:
            if not any(existing is observer for existing in self._observers):
                if self.max_subscribers is not None and len(self._observers) >= self.max_subscribers:
                    raise ConfigurationError(f"订阅者数量超过上限: {self.max_subscribers}")
                self._observers.append(observer)
                self.logger.debug(f"新增订阅者: {self._describe(observer)}")

        return Subscription(self, observer)

    def unsubscribe(self, observer: Any) -> bool:
        """取消订阅，进行中的发布不受影响"""
        with self._lock:
            for index, existing in enumerate(self._observers):
                if existing is observer:
                    # 替换列表而不是原地修改，发布中使用的快照保持不变
                    self._observers = self._observers[:index] + self._observers[index + 1:]
                    self.logger.debug(f"移除订阅者: {self._describe(observer)}")
                    return True
        return False

    @property
    def subscribers(self) -> List[Any]:
        with self._lock:
            return list(self._observers)

    async def publish(self, report: Report) -> None:
        """
        向所有订阅者发布报告

        Args:
            report: 报告
        """
        with self._lock:
            snapshot = self._observers

        self.published_count += 1
        self.logger.debug(f"发布报告: 条目 {len(report.entries)} 个, 订阅者 {len(snapshot)} 个")

        for observer in snapshot:
            try:
                handler = getattr(observer, 'on_report', None) or observer
                result = handler(report)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failed_deliveries += 1
                self.logger.error(f"订阅者 {self._describe(observer)} 处理报告失败: {e}", exc_info=True)

    @staticmethod
    def _describe(observer: Any) -> str:
        name = getattr(observer, 'name', None) or getattr(observer, '__name__', None)
        return f"{type(observer).__name__}({name})" if name else type(observer).__name__
