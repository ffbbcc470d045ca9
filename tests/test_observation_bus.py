"""观测总线测试"""

import pytest

from service_monitoring.models.health_check import HealthStatus, Observation, Report
from service_monitoring.services.observation_bus import ObservationBus
from service_monitoring.utils.exceptions import ConfigurationError


def make_report():
    return Report(entries=[Observation('api', HealthStatus.HEALTHY)])


class RecordingObserver:
    def __init__(self, name, calls):
        self.name = name
        self.calls = calls

    async def on_report(self, report):
        self.calls.append(self.name)


class TestObservationBus:
    """观测总线测试类"""

    def setup_method(self):
        """测试前准备"""
        self.bus = ObservationBus()

    @pytest.mark.asyncio
    async def test_delivers_in_subscription_order(self):
        """测试按订阅顺序投递"""
        calls = []
        for name in ('first', 'second', 'third'):
            self.bus.subscribe(RecordingObserver(name, calls))

        await self.bus.publish(make_report())

        assert calls == ['first', 'second', 'third']
        assert self.bus.published_count == 1

    @pytest.mark.asyncio
    async def test_accepts_plain_and_async_callables(self):
        """测试支持普通函数和异步函数订阅者"""
        received = []

        def sync_handler(report):
            received.append(('sync', report))

        async def async_handler(report):
            received.append(('async', report))

        self.bus.subscribe(sync_handler)
        self.bus.subscribe(async_handler)

        report = make_report()
        await self.bus.publish(report)

        assert received == [('sync', report), ('async', report)]

    @pytest.mark.asyncio
    async def test_subscribe_is_idempotent(self):
        """测试重复订阅不会重复投递"""
        calls = []
        observer = RecordingObserver('only', calls)
        self.bus.subscribe(observer)
        self.bus.subscribe(observer)

        await self.bus.publish(make_report())

        assert len(self.bus.subscribers) == 1
        assert calls == ['only']

    @pytest.mark.asyncio
    async def test_failing_observer_is_isolated(self):
        """测试单个订阅者失败不影响其他订阅者，也不向发布方抛出"""
        calls = []

        async def failing(report):
            raise RuntimeError("处理失败")

        self.bus.subscribe(RecordingObserver('before', calls))
        self.bus.subscribe(failing)
        self.bus.subscribe(RecordingObserver('after', calls))

        await self.bus.publish(make_report())

        assert calls == ['before', 'after']
        assert self.bus.failed_deliveries == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_during_publish(self):
        """测试发布过程中取消订阅不影响本次发布"""
        calls = []
        later = RecordingObserver('later', calls)

        async def remover(report):
            calls.append('remover')
            self.bus.unsubscribe(later)

        self.bus.subscribe(remover)
        self.bus.subscribe(later)

        await self.bus.publish(make_report())
        assert calls == ['remover', 'later']

        await self.bus.publish(make_report())
        assert calls == ['remover', 'later', 'remover']

    def test_unsubscribe_unknown_observer(self):
        """测试取消不存在的订阅"""
        assert self.bus.unsubscribe(RecordingObserver('ghost', [])) is False

    @pytest.mark.asyncio
    async def test_subscription_context_manager(self):
        """测试订阅句柄作为上下文管理器"""
        calls = []

        with self.bus.subscribe(RecordingObserver('scoped', calls)):
            await self.bus.publish(make_report())

        await self.bus.publish(make_report())
        assert calls == ['scoped']
        assert self.bus.subscribers == []

    def test_max_subscribers(self):
        """测试订阅者数量上限"""
        bus = ObservationBus(max_subscribers=1)
        first = RecordingObserver('first', [])
        bus.subscribe(first)
        bus.subscribe(first)

        with pytest.raises(ConfigurationError, match="上限"):
            bus.subscribe(RecordingObserver('second', []))

    def test_rejects_non_callable(self):
        """测试拒绝不可调用的订阅者"""
        with pytest.raises(ConfigurationError):
            self.bus.subscribe("not callable")
