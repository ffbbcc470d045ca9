"""自定义异常类和错误代码"""

import traceback
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(Enum):
    """错误代码枚举"""
    # 通用错误 (1000-1999)
    UNKNOWN_ERROR = 1000
    INITIALIZATION_ERROR = 1001

    # 配置错误 (2000-2999)
    CONFIG_FILE_NOT_FOUND = 2000
    CONFIG_PARSE_ERROR = 2001
    CONFIG_VALIDATION_ERROR = 2002
    UNKNOWN_DISCRIMINATOR = 2003
    UNKNOWN_TRANSPORT = 2004

    # 实例校验错误 (3000-3999)
    VALIDATION_ERROR = 3000
    MISSING_FIELD = 3001
    INVALID_FIELD = 3002

    # 观测错误 (4000-4999)
    OBSERVATION_MISSING = 4000
    OBSERVATION_MALFORMED = 4001

    # 告警投递错误 (5000-5999)
    DELIVERY_ERROR = 5000
    DELIVERY_TIMEOUT = 5001
    DELIVERY_QUEUE_FULL = 5002

    # 状态区间追踪错误 (6000-6999)
    TRACKER_ERROR = 6000
    REPOSITORY_UNAVAILABLE = 6001
    INTERVAL_INVARIANT_BROKEN = 6002


class MonitoringError(Exception):
    """服务监控系统基础异常类"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            'error_code': self.error_code.value,
            'error_name': self.error_code.name,
            'message': self.message,
            'details': self.details,
            'recoverable': self.recoverable,
            'timestamp': self.timestamp.isoformat(),
            'cause': str(self.cause) if self.cause else None,
            'traceback': traceback.format_exc() if self.cause else None
        }

    def format_error(self) -> str:
        """格式化错误信息"""
        error_msg = f"[{self.error_code.name}] {self.message}"
        if self.details:
            details_str = ", ".join([f"{k}={v}" for k, v in self.details.items()])
            error_msg += f" (详情: {details_str})"
        if self.cause:
            error_msg += f" (原因: {str(self.cause)})"
        return error_msg


class ConfigurationError(MonitoringError):
    """配置错误，启动阶段致命"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONFIG_VALIDATION_ERROR,
        config_path: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop('details', None) or {}
        if config_path:
            details['config_path'] = config_path
        kwargs.setdefault('recoverable', False)
        super().__init__(message, error_code, details, **kwargs)


class ValidationError(MonitoringError):
    """单个探测器或通知器的校验错误，只影响该实例"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        instance_name: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        **kwargs
    ):
        details = kwargs.pop('details', None) or {}
        if field:
            details['field'] = field
        if instance_name:
            details['instance_name'] = instance_name
        super().__init__(message, error_code, details, **kwargs)
        self.field = field
        self.instance_name = instance_name


class ObservationError(MonitoringError):
    """报告条目缺失或格式错误"""

    def __init__(
        self,
        message: str,
        check_name: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.OBSERVATION_MISSING,
        **kwargs
    ):
        details = kwargs.pop('details', None) or {}
        if check_name:
            details['check_name'] = check_name
        super().__init__(message, error_code, details, **kwargs)
        self.check_name = check_name


class DeliveryError(MonitoringError):
    """通知投递失败或超时，不自动重试"""

    def __init__(
        self,
        message: str,
        transport_name: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.DELIVERY_ERROR,
        **kwargs
    ):
        details = kwargs.pop('details', None) or {}
        if transport_name:
            details['transport_name'] = transport_name
        super().__init__(message, error_code, details, **kwargs)
        self.transport_name = transport_name


class TrackerError(MonitoringError):
    """状态区间追踪失败，操作整体回滚"""

    def __init__(
        self,
        message: str,
        service_key: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.TRACKER_ERROR,
        **kwargs
    ):
        details = kwargs.pop('details', None) or {}
        if service_key:
            details['service_key'] = service_key
        super().__init__(message, error_code, details, **kwargs)
        self.service_key = service_key
