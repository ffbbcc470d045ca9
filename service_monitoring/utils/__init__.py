"""工具模块"""

from .exceptions import (
    ErrorCode, MonitoringError, ConfigurationError, ValidationError,
    ObservationError, DeliveryError, TrackerError
)
from .log_manager import LogManager, LogLevel, get_logger, configure_logging, log_manager

__all__ = [
    'ErrorCode', 'MonitoringError', 'ConfigurationError', 'ValidationError',
    'ObservationError', 'DeliveryError', 'TrackerError',
    'LogManager', 'LogLevel', 'get_logger', 'configure_logging', 'log_manager'
]
