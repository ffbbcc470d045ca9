"""通知器基类"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple

from .delivery import DeliveryDispatcher
from .message import compose_message
from .rules import RuleStateStore
from ..models.health_check import (
    AlertMessage, CheckDefinition, Observation, Report, TransportBinding,
    TransportSettings, utc_now
)
from ..utils.exceptions import ObservationError, ValidationError, ErrorCode
from ..utils.log_manager import get_logger

INTERCEPTOR_SERVICE_TYPE = 'interceptor'


class BaseNotifier(ABC):
    """
    通知器抽象基类

    每个实例对应一个 (检查, 通道) 绑定，作为ObservationBus的订阅者接收报告，
    评估告警规则，并把需要发送的消息交给DeliveryDispatcher。
    """

    def __init__(self, check: CheckDefinition, binding: TransportBinding,
                 settings: TransportSettings, rule_store: Optional[RuleStateStore] = None,
                 dispatcher: Optional[DeliveryDispatcher] = None,
                 environment: Optional[str] = None):
        """
        初始化通知器

        Args:
            check: 所属检查定义
            binding: 通道绑定及告警行为
            settings: 通道配置
            rule_store: 规则状态存储
            dispatcher: 投递调度器
            environment: 运行环境名称，绑定开启include_environment时附加到消息
        """
        self.check = check
        self.binding = binding
        self.settings = settings
        self.options: Dict[str, Any] = settings.options
        self.name = settings.name
        self.method = settings.method
        self.rule_store = rule_store or RuleStateStore()
        self.dispatcher = dispatcher
        self.environment = environment
        self.logger = get_logger(f'notifier.{self.method}.{self.name}')

    @abstractmethod
    def validate(self) -> None:
        """
        校验通道配置

        Raises:
            ValidationError: 缺少必需字段或字段无效
        """

    @abstractmethod
    async def send(self, message: AlertMessage) -> None:
        """
        发送告警消息

        Raises:
            DeliveryError: 发送失败
        """

    def require(self, *fields: str) -> None:
        """检查必需的配置项是否存在且非空"""
        for field_name in fields:
            value = self.options.get(field_name)
            if value is None or (isinstance(value, (str, list, dict)) and not value):
                raise ValidationError(
                    f"通道 '{self.name}' 缺少必需的配置项: {field_name}",
                    field=field_name,
                    instance_name=self.name,
                    error_code=ErrorCode.MISSING_FIELD
                )

    def invalid(self, field_name: str, reason: str) -> ValidationError:
        return ValidationError(
            f"通道 '{self.name}' 配置项 {field_name} 无效: {reason}",
            field=field_name,
            instance_name=self.name,
            error_code=ErrorCode.INVALID_FIELD
        )

    def get_timeout(self) -> float:
        return self.options.get('timeout', 10)

    def _targets(self, report: Report) -> List[Tuple[str, Observation]]:
        """返回本通知器需要评估的 (规则键, 观测) 列表"""
        if self.check.service_type == INTERCEPTOR_SERVICE_TYPE:
            excluded = set(self.check.excluded_interception_names)
            excluded.add(self.check.name)
            return [
                (f"{self.check.name}/{entry.check_name}", entry)
                for entry in report.entries
                if entry.check_name not in excluded
            ]

        observation = report.get(self.check.name)
        if observation is None:
            error = ObservationError(
                f"报告中缺少检查 '{self.check.name}' 的结果",
                check_name=self.check.name
            )
            self.logger.warning(error.format_error())
            return []
        return [(self.check.name, observation)]

    async def on_report(self, report: Report, now: Optional[datetime] = None) -> Dict[str, bool]:
        """
        处理一份报告

        Args:
            report: 报告
            now: 评估时间，默认当前UTC时间

        Returns:
            Dict[str, bool]: 规则键 -> 是否告警
        """
        now = now or utc_now()
        decisions: Dict[str, bool] = {}

        for rule_key, observation in self._targets(report):
            try:
                alert = self.rule_store.evaluate(rule_key, self.name, observation, self.binding, now)
            except Exception as e:
                self.logger.error(f"评估 {rule_key} 的告警规则失败: {e}", exc_info=True)
                alert = False
            decisions[rule_key] = alert

            if alert:
                message = compose_message(self.check, observation, self.binding, now,
                                          environment=self.environment)
                self._dispatch(message)

        return decisions

    def _dispatch(self, message: AlertMessage):
        if self.dispatcher is None:
            self.logger.warning(f"通道 {self.name} 未配置投递调度器，丢弃告警: {message.subject}")
            return
        self.dispatcher.submit(self, message)

    def get_config_summary(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'method': self.method,
            'check': self.check.name,
            'alert_once': self.binding.alert_once,
            'alert_every': self.binding.alert_every.total_seconds(),
            'alert_by_fail_count': self.binding.alert_by_fail_count,
            'publish_all_results': self.binding.publish_all_results,
        }
