"""告警投递调度器测试"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from service_monitoring.alerts.delivery import DeliveryDispatcher
from service_monitoring.models.health_check import AlertMessage, HealthStatus
from service_monitoring.utils.exceptions import DeliveryError, ErrorCode


def make_message(check_name='api'):
    return AlertMessage(subject=f"[Unhealthy] - Alert Triggered : {check_name}", body='body',
                        check_name=check_name, status=HealthStatus.UNHEALTHY, transport_name='ops')


def make_notifier(send=None):
    notifier = Mock()
    notifier.name = 'ops'
    notifier.send = send or AsyncMock()
    return notifier


class TestDeliveryDispatcher:
    """投递调度器测试类"""

    def test_invalid_arguments(self):
        """测试无效参数"""
        with pytest.raises(ValueError):
            DeliveryDispatcher(workers=0)
        with pytest.raises(ValueError):
            DeliveryDispatcher(max_queue_size=0)
        with pytest.raises(ValueError):
            DeliveryDispatcher(timeout=0)

    @pytest.mark.asyncio
    async def test_successful_delivery(self):
        """测试成功投递"""
        dispatcher = DeliveryDispatcher(workers=2)
        notifier = make_notifier()
        message = make_message()

        assert dispatcher.submit(notifier, message) is True
        await dispatcher.join()

        notifier.send.assert_awaited_once_with(message)
        assert dispatcher.delivered_count == 1
        assert dispatcher.failed_count == 0
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_timeout_is_recorded(self):
        """测试投递超时被记录且不重试"""
        async def slow_send(message):
            await asyncio.sleep(10)

        dispatcher = DeliveryDispatcher(workers=1, timeout=0.05)
        notifier = make_notifier(AsyncMock(side_effect=slow_send))

        dispatcher.submit(notifier, make_message())
        await dispatcher.join()

        assert notifier.send.await_count == 1
        assert dispatcher.failed_count == 1
        assert dispatcher.recent_errors[0].error_code == ErrorCode.DELIVERY_TIMEOUT
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_failure_is_recorded(self):
        """测试投递失败被记录"""
        dispatcher = DeliveryDispatcher(workers=1)
        failing = make_notifier(AsyncMock(side_effect=ConnectionError("连接被拒绝")))
        delivery_failing = make_notifier(AsyncMock(side_effect=DeliveryError("HTTP 500", transport_name='ops')))

        dispatcher.submit(failing, make_message())
        dispatcher.submit(delivery_failing, make_message())
        await dispatcher.join()

        assert dispatcher.failed_count == 2
        assert all(isinstance(e, DeliveryError) for e in dispatcher.recent_errors)
        assert "连接被拒绝" in dispatcher.recent_errors[0].message
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_failure_does_not_block_other_deliveries(self):
        """测试一次失败不影响后续投递"""
        dispatcher = DeliveryDispatcher(workers=1)
        failing = make_notifier(AsyncMock(side_effect=RuntimeError("失败")))
        healthy = make_notifier()

        dispatcher.submit(failing, make_message())
        dispatcher.submit(healthy, make_message('db'))
        await dispatcher.join()

        healthy.send.assert_awaited_once()
        assert dispatcher.delivered_count == 1
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_queue_full_drops_message(self):
        """测试队列已满时丢弃消息"""
        release = asyncio.Event()

        async def blocked_send(message):
            await release.wait()

        dispatcher = DeliveryDispatcher(workers=1, max_queue_size=1)
        notifier = make_notifier(AsyncMock(side_effect=blocked_send))

        assert dispatcher.submit(notifier, make_message('a')) is True
        # 让工作协程取走第一条消息
        await asyncio.sleep(0)
        assert dispatcher.submit(notifier, make_message('b')) is True
        assert dispatcher.submit(notifier, make_message('c')) is False
        assert dispatcher.dropped_count == 1

        release.set()
        await dispatcher.join()
        assert dispatcher.delivered_count == 2
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_stop_drains_queue(self):
        """测试停止时先清空队列"""
        dispatcher = DeliveryDispatcher(workers=1)
        notifier = make_notifier()
        for name in ('a', 'b', 'c'):
            dispatcher.submit(notifier, make_message(name))

        await dispatcher.stop(drain=True)

        assert notifier.send.await_count == 3
        assert dispatcher.is_running is False
        assert dispatcher.get_stats()['delivered'] == 3

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        """测试未启动时停止"""
        dispatcher = DeliveryDispatcher()
        await dispatcher.stop()
        await dispatcher.join()
        assert dispatcher.get_stats()['queue_size'] == 0
