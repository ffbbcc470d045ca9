"""服务监控相关的数据模型"""

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from enum import Enum
from typing import Dict, Any, List, Optional


def utc_now() -> datetime:
    """获取当前UTC时间（带时区信息）"""
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    """健康状态枚举"""
    UNHEALTHY = 'Unhealthy'
    DEGRADED = 'Degraded'
    HEALTHY = 'Healthy'
    UNKNOWN = 'Unknown'

    @property
    def is_failed(self) -> bool:
        """Unhealthy 和 Degraded 视为失败状态"""
        return self in (HealthStatus.UNHEALTHY, HealthStatus.DEGRADED)

    @classmethod
    def parse(cls, value: Any) -> 'HealthStatus':
        """
        解析状态值，忽略大小写

        Args:
            value: 状态字符串或HealthStatus实例

        Returns:
            HealthStatus: 解析后的状态

        Raises:
            ValueError: 无法识别的状态值
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for status in cls:
                if status.value.lower() == value.strip().lower():
                    return status
        raise ValueError(f"无法识别的健康状态: {value!r}")


# 状态严重程度，数值越大越严重
STATUS_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.UNKNOWN: 1,
    HealthStatus.DEGRADED: 2,
    HealthStatus.UNHEALTHY: 3,
}


def worst_status(statuses: List[HealthStatus]) -> HealthStatus:
    """返回一组状态中最严重的状态，空列表返回Healthy"""
    if not statuses:
        return HealthStatus.HEALTHY
    return max(statuses, key=lambda s: STATUS_SEVERITY[s])


class TransportMethod(str, Enum):
    """告警传输方式枚举"""
    WEBHOOK = 'webhook'
    EMAIL = 'email'
    TELEGRAM = 'telegram'
    SLACK = 'slack'
    REDIS = 'redis'
    CALLBACK = 'callback'


@dataclass
class Observation:
    """单次健康检查观测结果"""
    check_name: str
    status: HealthStatus
    timestamp: datetime = field(default_factory=utc_now)
    description: Optional[str] = None
    error_message: Optional[str] = None
    duration_ms: float = 0.0
    tags: Dict[str, str] = field(default_factory=dict)
    service_type: Optional[str] = None
    machine_name: Optional[str] = None

    @property
    def service_key(self) -> str:
        """服务键: 名称，或 "名称 (机器名)" """
        return build_service_key(self.check_name, self.machine_name)


@dataclass
class Report:
    """一次调度周期内所有检查的汇总报告"""
    entries: List[Observation] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utc_now)
    status: Optional[HealthStatus] = None

    def __post_init__(self):
        if self.status is None:
            self.status = worst_status([e.status for e in self.entries])

    def get(self, check_name: str) -> Optional[Observation]:
        """按检查名称获取条目"""
        for entry in self.entries:
            if entry.check_name == check_name:
                return entry
        return None


@dataclass
class TransportBinding:
    """检查与告警通道之间的绑定及告警行为"""
    transport_method: str
    transport_name: str
    alert_once: bool = False
    alert_on_service_recovered: bool = True
    alert_every: timedelta = field(default_factory=lambda: timedelta(0))
    start_alerting_on: time = field(default_factory=lambda: time(0, 0, 0))
    stop_alerting_on: time = field(default_factory=lambda: time(23, 59, 59))
    alert_by_fail_count: int = 1
    publish_all_results: bool = False
    include_environment: bool = False
    timezone: Optional[str] = None

    def __post_init__(self):
        if self.alert_by_fail_count < 1:
            raise ValueError(f"alert_by_fail_count 必须 >= 1: {self.alert_by_fail_count}")


@dataclass
class CheckDefinition:
    """健康检查定义"""
    name: str
    service_type: str
    target: Optional[str] = None
    interval: timedelta = field(default_factory=lambda: timedelta(seconds=30))
    bindings: List[TransportBinding] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)
    excluded_interception_names: List[str] = field(default_factory=list)
    alert: bool = True
    additional_tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class TransportSettings:
    """命名的传输通道配置"""
    name: str
    method: str
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RuleState:
    """每个 (检查, 通道) 对的告警规则状态"""
    check_name: str
    transport_name: str
    last_check: Optional[datetime] = None
    last_published: Optional[datetime] = None
    last_status: HealthStatus = HealthStatus.HEALTHY
    failed_count: int = 0
    latest_error_published: bool = False


@dataclass
class StatusInterval:
    """服务保持同一健康状态的时间区间，end为None表示当前开放区间"""
    service_key: str
    start: datetime
    status: HealthStatus
    last_update_time: datetime
    end: Optional[datetime] = None
    status_reason: Optional[str] = None
    name: Optional[str] = None
    machine_name: Optional[str] = None
    id: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    def is_stale(self, now: datetime, threshold: timedelta) -> bool:
        """距离上次刷新是否超过阈值"""
        return (now - self.last_update_time) > threshold

    def overlaps(self, range_from: datetime, range_to: datetime) -> bool:
        """
        判断区间是否与 [range_from, range_to] 重叠

        开始时间在范围内、结束时间在范围内、或覆盖整个范围，三者满足其一即视为重叠。
        开放区间的结束时间视为无穷远。
        """
        start_in = range_from <= self.start <= range_to
        end_in = self.end is not None and range_from <= self.end <= range_to
        spans = self.start <= range_from and (self.end is None or self.end >= range_to)
        return start_in or end_in or spans

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'service_key': self.service_key,
            'name': self.name,
            'machine_name': self.machine_name,
            'start': self.start.isoformat(),
            'end': self.end.isoformat() if self.end else None,
            'status': self.status.value,
            'status_reason': self.status_reason,
            'last_update_time': self.last_update_time.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StatusInterval':
        return cls(
            id=data.get('id'),
            service_key=data['service_key'],
            name=data.get('name'),
            machine_name=data.get('machine_name'),
            start=datetime.fromisoformat(data['start']),
            end=datetime.fromisoformat(data['end']) if data.get('end') else None,
            status=HealthStatus.parse(data['status']),
            status_reason=data.get('status_reason'),
            last_update_time=datetime.fromisoformat(data['last_update_time']),
        )


@dataclass
class TimelineSegment:
    """时间线片段，uptime_percentage 仅记录在每个服务的第一个片段上"""
    start: datetime
    end: datetime
    status: HealthStatus
    uptime_percentage: Optional[float] = None


@dataclass
class AlertMessage:
    """告警消息模型"""
    subject: str
    body: str
    check_name: str
    status: HealthStatus
    transport_name: str
    timestamp: datetime = field(default_factory=utc_now)
    payload: Dict[str, Any] = field(default_factory=dict)


def build_service_key(name: str, machine_name: Optional[str] = None) -> str:
    """根据检查名称和机器名构造服务键"""
    if machine_name:
        return f"{name} ({machine_name})"
    return name
