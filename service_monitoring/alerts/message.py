"""告警消息组装"""

from datetime import datetime
from typing import Optional

from ..models.health_check import AlertMessage, CheckDefinition, Observation, TransportBinding
from ..utils.time_utils import format_timestamp


def compose_message(check: CheckDefinition, observation: Observation,
                    binding: TransportBinding, now: datetime,
                    environment: Optional[str] = None) -> AlertMessage:
    """
    根据观测结果组装告警消息

    正文由固定字段组成：触发时间、服务类型、目标地址、状态、描述，
    以及每个标签一行。

    Args:
        check: 检查定义
        observation: 触发告警的观测
        binding: 通道绑定（决定展示时区与是否附带环境信息）
        now: 触发时间
        environment: 运行环境名称

    Returns:
        AlertMessage: 告警消息
    """
    status = observation.status.value
    subject = f"[{status}] - Alert Triggered : {observation.check_name}"

    service_type = observation.service_type or check.service_type
    details = observation.description or observation.error_message or ''

    lines = [
        subject,
        f"Triggered On    : {format_timestamp(now, binding.timezone)}",
        f"Service Type    : {service_type}",
        f"Alert Endpoint  : {check.target or ''}",
        f"Alert Status    : {status}",
        f"Alert Details   : {details}",
    ]
    if observation.error_message and observation.error_message != details:
        lines.append(f"Alert Error     : {observation.error_message}")
    if binding.include_environment and environment:
        lines.append(f"Environment     : {environment}")
    if observation.machine_name:
        lines.append(f"Machine Name    : {observation.machine_name}")

    tags = dict(check.additional_tags)
    tags.update(observation.tags or {})
    for key, value in tags.items():
        lines.append(f"Alert Tags      : {key} - {value}")

    payload = {
        'check_name': observation.check_name,
        'service_type': service_type,
        'target': check.target,
        'status': status,
        'description': observation.description,
        'error_message': observation.error_message,
        'duration_ms': observation.duration_ms,
        'tags': tags,
        'triggered_on': now.isoformat(),
        'transport_name': binding.transport_name,
    }
    if binding.include_environment and environment:
        payload['environment'] = environment

    return AlertMessage(
        subject=subject,
        body='\n'.join(lines),
        check_name=observation.check_name,
        status=observation.status,
        transport_name=binding.transport_name,
        timestamp=now,
        payload=payload,
    )
