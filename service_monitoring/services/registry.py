"""探测器与通知器注册表"""

from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from ..models.health_check import CheckDefinition, TransportBinding, TransportSettings
from ..utils.exceptions import ConfigurationError, ErrorCode, ValidationError
from ..utils.log_manager import get_logger

if TYPE_CHECKING:
    from ..alerts.base import BaseNotifier
    from ..alerts.delivery import DeliveryDispatcher
    from ..alerts.rules import RuleStateStore
    from ..probers.base import BaseProber
    from .observation_bus import ObservationBus


class PublisherRegistry:
    """
    注册表，按服务类型保存探测器工厂、按传输方式保存通知器工厂

    解析时立即调用实例的 validate()。未知的类型标识是致命的配置错误；
    单个实例校验失败只排除该实例，不影响其他实例。
    """

    def __init__(self):
        self._probers: Dict[str, Callable[..., 'BaseProber']] = {}
        self._notifiers: Dict[str, Callable[..., 'BaseNotifier']] = {}
        self._monitors: List['BaseProber'] = []
        self._publishers: List['BaseNotifier'] = []
        self._validation_errors: List[ValidationError] = []
        self._bus: Optional['ObservationBus'] = None
        self.logger = get_logger('registry')

    def copy(self) -> 'PublisherRegistry':
        """
        复制工厂表，得到一个独立的注册表

        已创建的探测器、通知器和校验错误不会被复制。
        """
        registry = PublisherRegistry()
        registry._probers = dict(self._probers)
        registry._notifiers = dict(self._notifiers)
        return registry

    @staticmethod
    def _register(table: Dict[str, Callable], kind: str, key: str, factory: Callable):
        if not key or not isinstance(key, str):
            raise ConfigurationError(f"{kind}类型标识必须是非空字符串: {key!r}")
        if not callable(factory):
            raise ConfigurationError(f"{kind} '{key}' 的工厂必须是可调用对象")
        if key in table:
            raise ConfigurationError(f"{kind}类型 '{key}' 已经注册")
        table[key] = factory

    def register_prober(self, service_type: str, factory: Callable[..., 'BaseProber']):
        """
        注册探测器工厂

        Args:
            service_type: 服务类型标识
            factory: 接收CheckDefinition并返回探测器的可调用对象

        Raises:
            ConfigurationError: 重复注册或工厂不可调用
        """
        self._register(self._probers, '探测器', service_type, factory)

    def register_notifier(self, transport_method: str, factory: Callable[..., 'BaseNotifier']):
        """
        注册通知器工厂

        Args:
            transport_method: 传输方式标识
            factory: 通知器类或等价的可调用对象

        Raises:
            ConfigurationError: 重复注册或工厂不可调用
        """
        self._register(self._notifiers, '通知器', transport_method, factory)

    def unregister_prober(self, service_type: str):
        self._probers.pop(service_type, None)

    def unregister_notifier(self, transport_method: str):
        self._notifiers.pop(transport_method, None)

    def get_supported_service_types(self) -> List[str]:
        return sorted(self._probers.keys())

    def get_supported_transport_methods(self) -> List[str]:
        return sorted(self._notifiers.keys())

    def is_service_type_supported(self, service_type: str) -> bool:
        return service_type in self._probers

    def is_transport_method_supported(self, transport_method: str) -> bool:
        return transport_method in self._notifiers

    def resolve_prober(self, check: CheckDefinition) -> 'BaseProber':
        """
        创建并校验探测器

        Raises:
            ConfigurationError: 未知的服务类型
            ValidationError: 实例校验失败
        """
        factory = self._probers.get(check.service_type)
        if factory is None:
            raise ConfigurationError(
                f"检查 '{check.name}' 使用了不支持的服务类型: '{check.service_type}'",
                error_code=ErrorCode.UNKNOWN_DISCRIMINATOR,
                details={'supported': self.get_supported_service_types()}
            )

        prober = self._construct(factory, check.name, check)
        prober.validate()
        return prober

    def resolve_notifier(self, check: CheckDefinition, binding: TransportBinding,
                         settings: TransportSettings,
                         rule_store: Optional['RuleStateStore'] = None,
                         dispatcher: Optional['DeliveryDispatcher'] = None,
                         environment: Optional[str] = None) -> 'BaseNotifier':
        """
        创建并校验通知器

        Raises:
            ConfigurationError: 未知的传输方式，或绑定与通道配置的方式不一致
            ValidationError: 实例校验失败
        """
        for owner, method in ((f"检查 '{check.name}' 的绑定", binding.transport_method),
                              (f"通道 '{settings.name}'", settings.method)):
            if method not in self._notifiers:
                raise ConfigurationError(
                    f"{owner}使用了不支持的传输方式: '{method}'",
                    error_code=ErrorCode.UNKNOWN_DISCRIMINATOR,
                    details={'supported': self.get_supported_transport_methods()}
                )
        factory = self._notifiers[settings.method]

        if binding.transport_method != settings.method:
            raise ConfigurationError(
                f"检查 '{check.name}' 的绑定方式 '{binding.transport_method}' 与通道 "
                f"'{settings.name}' 的方式 '{settings.method}' 不一致",
                error_code=ErrorCode.UNKNOWN_TRANSPORT
            )

        notifier = self._construct(factory, settings.name, check, binding, settings,
                                   rule_store=rule_store, dispatcher=dispatcher,
                                   environment=environment)
        notifier.validate()
        return notifier

    @staticmethod
    def _construct(factory: Callable, instance_name: str, *args, **kwargs) -> Any:
        try:
            return factory(*args, **kwargs)
        except (ConfigurationError, ValidationError):
            raise
        except Exception as e:
            raise ValidationError(f"创建实例 '{instance_name}' 失败: {e}",
                                  instance_name=instance_name, cause=e)

    def build(self, checks: List[CheckDefinition], transports: Dict[str, TransportSettings],
              bus: Optional['ObservationBus'] = None,
              rule_store: Optional['RuleStateStore'] = None,
              dispatcher: Optional['DeliveryDispatcher'] = None,
              environment: Optional[str] = None) -> None:
        """
        根据配置创建所有探测器和通知器

        通知器校验通过后订阅到总线。

        Raises:
            ConfigurationError: 任何致命的配置错误
        """
        self.clear()
        self._bus = bus

        seen_names = set()
        for check in checks:
            if check.name in seen_names:
                raise ConfigurationError(f"检查名称重复: '{check.name}'")
            seen_names.add(check.name)

        for check in checks:
            try:
                self._monitors.append(self.resolve_prober(check))
                self.logger.info(f"已注册检查 {check.name} (类型: {check.service_type})")
            except ValidationError as e:
                self._exclude(e)

            if not check.alert:
                self.logger.info(f"检查 {check.name} 未开启告警，跳过通道绑定")
                continue

            for binding in check.bindings:
                settings = transports.get(binding.transport_name)
                if settings is None:
                    raise ConfigurationError(
                        f"检查 '{check.name}' 引用了不存在的通道: '{binding.transport_name}'",
                        error_code=ErrorCode.UNKNOWN_TRANSPORT
                    )
                try:
                    notifier = self.resolve_notifier(check, binding, settings,
                                                     rule_store=rule_store,
                                                     dispatcher=dispatcher,
                                                     environment=environment)
                except ValidationError as e:
                    self._exclude(e)
                    continue

                self._publishers.append(notifier)
                if bus is not None:
                    bus.subscribe(notifier)
                self.logger.info(f"已绑定通道 {settings.name} ({settings.method}) 到检查 {check.name}")

        self.logger.info(
            f"注册完成: 探测器 {len(self._monitors)} 个, 通知器 {len(self._publishers)} 个, "
            f"校验失败 {len(self._validation_errors)} 个")

    def clear(self):
        """取消上次构建的订阅并清空实例"""
        if self._bus is not None:
            for notifier in self._publishers:
                self._bus.unsubscribe(notifier)
        self._bus = None
        self._monitors = []
        self._publishers = []
        self._validation_errors = []

    def _exclude(self, error: ValidationError):
        self._validation_errors.append(error)
        self.logger.error(f"实例校验失败，已排除: {error.format_error()}")

    def get_monitors(self) -> List['BaseProber']:
        return list(self._monitors)

    def get_publishers(self) -> List['BaseNotifier']:
        return list(self._publishers)

    def get_validation_errors(self) -> List[ValidationError]:
        return list(self._validation_errors)


# 全局注册表实例
default_registry = PublisherRegistry()


def register_prober(service_type: str):
    """
    装饰器：把探测器类注册到全局注册表

    Args:
        service_type: 服务类型标识
    """
    def decorator(prober_class):
        default_registry.register_prober(service_type, prober_class)
        return prober_class

    return decorator


def register_notifier(transport_method: str):
    """
    装饰器：把通知器类注册到全局注册表

    Args:
        transport_method: 传输方式标识
    """
    def decorator(notifier_class):
        default_registry.register_notifier(transport_method, notifier_class)
        return notifier_class

    return decorator
