"""注册表测试"""

import pytest

from service_monitoring.alerts.base import BaseNotifier
from service_monitoring.models.health_check import (
    CheckDefinition, HealthStatus, TransportBinding, TransportMethod, TransportSettings
)
from service_monitoring.probers.base import BaseProber
from service_monitoring.services.observation_bus import ObservationBus
from service_monitoring.services.registry import PublisherRegistry, default_registry
from service_monitoring.utils.exceptions import ConfigurationError, ErrorCode, ValidationError


class FakeProber(BaseProber):
    def validate(self):
        if self.settings.get('broken'):
            raise self.invalid('broken', '测试用的无效配置')

    async def check_health(self):
        return self.observation(HealthStatus.HEALTHY, '正常')


class FakeNotifier(BaseNotifier):
    def validate(self):
        self.require('endpoint')

    async def send(self, message):
        pass


class ExplodingNotifier(BaseNotifier):
    def __init__(self, *args, **kwargs):
        raise RuntimeError("构造失败")

    def validate(self):
        pass

    async def send(self, message):
        pass


def binding(name='ops', method='fake'):
    return TransportBinding(transport_method=method, transport_name=name)


class TestPublisherRegistry:
    """注册表测试类"""

    def setup_method(self):
        """测试前准备"""
        self.registry = PublisherRegistry()
        self.registry.register_prober('fake', FakeProber)
        self.registry.register_notifier('fake', FakeNotifier)
        self.transports = {
            'ops': TransportSettings('ops', 'fake', {'endpoint': 'x'}),
            'broken': TransportSettings('broken', 'fake', {}),
        }

    def test_supported_types(self):
        """测试支持的类型列表"""
        self.registry.register_prober('another', FakeProber)

        assert self.registry.get_supported_service_types() == ['another', 'fake']
        assert self.registry.get_supported_transport_methods() == ['fake']
        assert self.registry.is_service_type_supported('fake')
        assert not self.registry.is_transport_method_supported('pigeon')

    def test_duplicate_registration(self):
        """测试重复注册"""
        with pytest.raises(ConfigurationError, match="已经注册"):
            self.registry.register_prober('fake', FakeProber)

    def test_invalid_registration(self):
        """测试无效注册"""
        with pytest.raises(ConfigurationError):
            self.registry.register_prober('', FakeProber)
        with pytest.raises(ConfigurationError):
            self.registry.register_notifier('other', 'not-callable')

    def test_unregister(self):
        """测试注销"""
        self.registry.unregister_prober('fake')
        self.registry.unregister_notifier('fake')

        assert self.registry.get_supported_service_types() == []
        assert self.registry.get_supported_transport_methods() == []

    def test_unknown_service_type_is_fatal(self):
        """测试未知服务类型为致命错误"""
        with pytest.raises(ConfigurationError) as exc_info:
            self.registry.resolve_prober(CheckDefinition('api', 'pigeon'))

        assert exc_info.value.error_code == ErrorCode.UNKNOWN_DISCRIMINATOR
        assert exc_info.value.recoverable is False
        assert exc_info.value.details['supported'] == ['fake']

    def test_unknown_transport_method_is_fatal(self):
        """测试未知传输方式为致命错误"""
        check = CheckDefinition('api', 'fake')
        settings = TransportSettings('ops', 'pigeon', {})

        with pytest.raises(ConfigurationError) as exc_info:
            self.registry.resolve_notifier(check, binding(method='pigeon'), settings)
        assert exc_info.value.error_code == ErrorCode.UNKNOWN_DISCRIMINATOR

    def test_method_mismatch_is_fatal(self):
        """测试绑定方式与通道方式不一致"""
        self.registry.register_notifier('other', FakeNotifier)
        check = CheckDefinition('api', 'fake')

        with pytest.raises(ConfigurationError, match="不一致") as exc_info:
            self.registry.resolve_notifier(check, binding(method='other'), self.transports['ops'])
        assert exc_info.value.error_code == ErrorCode.UNKNOWN_TRANSPORT

    def test_unknown_binding_method_reported_before_mismatch(self):
        """测试绑定使用未知传输方式时报告为未知类型而不是不一致"""
        check = CheckDefinition('api', 'fake')

        with pytest.raises(ConfigurationError, match="不支持的传输方式: 'pigeon'") as exc_info:
            self.registry.resolve_notifier(check, binding(method='pigeon'), self.transports['ops'])
        assert exc_info.value.error_code == ErrorCode.UNKNOWN_DISCRIMINATOR

    def test_resolve_validates_instance(self):
        """测试解析时立即校验实例"""
        check = CheckDefinition('api', 'fake')

        with pytest.raises(ValidationError) as exc_info:
            self.registry.resolve_notifier(check, binding('broken'), self.transports['broken'])
        assert exc_info.value.field == 'endpoint'
        assert exc_info.value.instance_name == 'broken'
        assert exc_info.value.error_code == ErrorCode.MISSING_FIELD

    def test_construction_failure_becomes_validation_error(self):
        """测试实例构造失败转换为校验错误"""
        self.registry.register_notifier('exploding', ExplodingNotifier)
        check = CheckDefinition('api', 'fake')
        settings = TransportSettings('boom', 'exploding', {})

        with pytest.raises(ValidationError, match="构造失败"):
            self.registry.resolve_notifier(check, binding('boom', 'exploding'), settings)

    def test_build_excludes_invalid_instances_only(self):
        """测试构建时校验失败的实例被排除，其他实例继续"""
        checks = [
            CheckDefinition('api', 'fake', bindings=[binding('ops'), binding('broken')]),
            CheckDefinition('db', 'fake', settings={'broken': True}, bindings=[binding('ops')]),
        ]
        bus = ObservationBus()

        self.registry.build(checks, self.transports, bus=bus)

        assert [m.name for m in self.registry.get_monitors()] == ['api']
        publishers = self.registry.get_publishers()
        assert [(p.check.name, p.name) for p in publishers] == [('api', 'ops'), ('db', 'ops')]
        assert bus.subscribers == publishers

        errors = self.registry.get_validation_errors()
        assert sorted(e.instance_name for e in errors) == ['broken', 'db']

    def test_build_unknown_type_aborts(self):
        """测试构建时未知类型终止整个构建"""
        checks = [CheckDefinition('api', 'fake'), CheckDefinition('mq', 'pigeon')]

        with pytest.raises(ConfigurationError):
            self.registry.build(checks, self.transports)

    def test_build_missing_transport(self):
        """测试引用不存在的通道"""
        checks = [CheckDefinition('api', 'fake', bindings=[binding('nowhere')])]

        with pytest.raises(ConfigurationError, match="不存在的通道") as exc_info:
            self.registry.build(checks, self.transports)
        assert exc_info.value.error_code == ErrorCode.UNKNOWN_TRANSPORT

    def test_build_duplicate_check_names(self):
        """测试检查名称重复"""
        checks = [CheckDefinition('api', 'fake'), CheckDefinition('api', 'fake')]

        with pytest.raises(ConfigurationError, match="检查名称重复"):
            self.registry.build(checks, self.transports)

    def test_build_skips_bindings_when_alert_disabled(self):
        """测试关闭告警的检查不创建通知器"""
        checks = [CheckDefinition('api', 'fake', alert=False, bindings=[binding('nowhere')])]

        self.registry.build(checks, self.transports)

        assert len(self.registry.get_monitors()) == 1
        assert self.registry.get_publishers() == []

    def test_build_resets_previous_state(self):
        """测试重复构建不会累积实例"""
        checks = [CheckDefinition('api', 'fake', bindings=[binding('ops')])]

        self.registry.build(checks, self.transports)
        self.registry.build(checks, self.transports)

        assert len(self.registry.get_monitors()) == 1
        assert len(self.registry.get_publishers()) == 1

    def test_rebuild_unsubscribes_previous_publishers(self):
        """测试重新构建时取消上次构建的订阅"""
        checks = [CheckDefinition('api', 'fake', bindings=[binding('ops')])]
        bus = ObservationBus()

        self.registry.build(checks, self.transports, bus=bus)
        first = self.registry.get_publishers()
        self.registry.build(checks, self.transports, bus=bus)

        assert bus.subscribers == self.registry.get_publishers()
        assert first[0] not in bus.subscribers

        self.registry.clear()
        assert bus.subscribers == []
        assert self.registry.get_publishers() == []

    def test_copy_shares_factories_only(self):
        """测试复制的注册表只共享工厂表"""
        checks = [CheckDefinition('api', 'fake', bindings=[binding('ops')])]
        self.registry.build(checks, self.transports)

        copied = self.registry.copy()
        copied.register_prober('extra', FakeProber)

        assert copied.get_supported_service_types() == ['extra', 'fake']
        assert self.registry.get_supported_service_types() == ['fake']
        assert copied.get_monitors() == []
        assert len(self.registry.get_monitors()) == 1


class TestDefaultRegistry:
    """全局注册表测试类"""

    def test_builtin_types_registered(self):
        """测试内置类型通过装饰器注册"""
        import service_monitoring.alerts  # noqa: F401
        import service_monitoring.probers  # noqa: F401

        assert {'http', 'redis', 'custom', 'interceptor'} <= set(
            default_registry.get_supported_service_types())
        assert {'mysql', 'ping'} <= set(default_registry.get_supported_service_types())
        assert {m.value for m in TransportMethod} <= set(
            default_registry.get_supported_transport_methods())
