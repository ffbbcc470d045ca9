"""数据模型模块"""

from .health_check import (
    HealthStatus, TransportMethod, Observation, Report, TransportBinding,
    CheckDefinition, TransportSettings, RuleState, StatusInterval,
    TimelineSegment, AlertMessage, build_service_key, worst_status, utc_now
)

__all__ = ['HealthStatus', 'TransportMethod', 'Observation', 'Report',
           'TransportBinding', 'CheckDefinition', 'TransportSettings',
           'RuleState', 'StatusInterval', 'TimelineSegment', 'AlertMessage',
           'build_service_key', 'worst_status', 'utc_now']
