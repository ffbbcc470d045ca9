"""告警投递调度器

有界队列加固定数量的工作协程。每次投递有独立超时，失败只记录日志，
不重试，也不回滚规则状态。
"""

import asyncio
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ..models.health_check import AlertMessage
from ..utils.exceptions import DeliveryError, ErrorCode
from ..utils.log_manager import get_logger

if TYPE_CHECKING:
    from .base import BaseNotifier


class DeliveryDispatcher:
    """告警投递调度器"""

    def __init__(self, workers: int = 4, max_queue_size: int = 100, timeout: float = 10.0):
        """
        初始化投递调度器

        Args:
            workers: 工作协程数量
            max_queue_size: 队列容量，队列满时新消息被丢弃
            timeout: 单次投递超时（秒）
        """
        if workers <= 0:
            raise ValueError("workers 必须是正整数")
        if max_queue_size <= 0:
            raise ValueError("max_queue_size 必须是正整数")
        if timeout <= 0:
            raise ValueError("timeout 必须大于0")

        self.workers = workers
        self.max_queue_size = max_queue_size
        self.timeout = timeout
        self.logger = get_logger('delivery')

        self._queue: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []
        self.is_running = False

        self.delivered_count = 0
        self.failed_count = 0
        self.dropped_count = 0
        self.recent_errors: List[DeliveryError] = []

    def start(self):
        """在当前事件循环中启动工作协程"""
        if self.is_running:
            return
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f'delivery-worker-{i}')
            for i in range(self.workers)
        ]
        self.is_running = True
        self.logger.info(f"告警投递调度器已启动: 工作协程={self.workers}, 队列容量={self.max_queue_size}")

    def submit(self, notifier: 'BaseNotifier', message: AlertMessage) -> bool:
        """
        提交一条待投递消息，不阻塞调用方

        Args:
            notifier: 通知器
            message: 告警消息

        Returns:
            bool: 是否成功入队
        """
        if not self.is_running:
            self.start()

        try:
            self._queue.put_nowait((notifier, message))
        except asyncio.QueueFull:
            self.dropped_count += 1
            self.logger.warning(
                f"投递队列已满，丢弃告警: 通道={notifier.name}, 检查={message.check_name}")
            return False

        self.logger.debug(f"告警已入队: 通道={notifier.name}, 检查={message.check_name}")
        return True

    async def _worker(self, index: int):
        while True:
            notifier, message = await self._queue.get()
            try:
                await self._deliver(notifier, message)
            finally:
                self._queue.task_done()

    async def _deliver(self, notifier: 'BaseNotifier', message: AlertMessage):
        try:
            await asyncio.wait_for(notifier.send(message), timeout=self.timeout)
            self.delivered_count += 1
            self.logger.info(f"告警投递成功: 通道={notifier.name}, 检查={message.check_name}")
        except asyncio.TimeoutError as e:
            self._record_failure(DeliveryError(
                f"告警投递超时 ({self.timeout}秒): 通道={notifier.name}",
                transport_name=notifier.name,
                error_code=ErrorCode.DELIVERY_TIMEOUT,
                cause=e
            ))
        except DeliveryError as e:
            self._record_failure(e)
        except Exception as e:
            self._record_failure(DeliveryError(
                f"告警投递失败: 通道={notifier.name}: {e}",
                transport_name=notifier.name,
                cause=e
            ))

    def _record_failure(self, error: DeliveryError):
        self.failed_count += 1
        self.recent_errors.append(error)
        del self.recent_errors[:-50]
        self.logger.error(error.format_error())

    async def join(self):
        """等待队列中的消息全部处理完成"""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, drain: bool = True):
        """
        停止调度器

        Args:
            drain: 是否先等待队列清空
        """
        if not self.is_running:
            return
        if drain:
            await self.join()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._queue = None
        self.is_running = False
        self.logger.info("告警投递调度器已停止")

    def get_stats(self) -> Dict[str, Any]:
        return {
            'is_running': self.is_running,
            'workers': self.workers,
            'queue_size': self._queue.qsize() if self._queue else 0,
            'delivered': self.delivered_count,
            'failed': self.failed_count,
            'dropped': self.dropped_count,
        }
