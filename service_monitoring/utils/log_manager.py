"""
日志管理模块

统一管理监控系统各组件的日志记录器：控制台输出、可选的轮转文件输出，
以及运行期调整日志级别。
"""

import logging
import logging.handlers
import sys
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Union


class LogLevel(Enum):
    """日志级别枚举"""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, value: Union[str, 'LogLevel']) -> 'LogLevel':
        if isinstance(value, cls):
            return value
        level_str = str(value).upper()
        if not hasattr(cls, level_str):
            raise ValueError(f"无效的日志级别: {value}")
        return cls[level_str]


class LogManager:
    """
    日志管理器（单例）

    所有组件通过 get_logger(name) 获取记录器，名称约定为
    'evaluator'、'tracker'、'notifier.{method}.{name}' 等。
    """

    _instance: Optional['LogManager'] = None
    _initialized: bool = False

    def __new__(cls) -> 'LogManager':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._loggers: Dict[str, logging.Logger] = {}
        self._file_format = (
            '%(asctime)s - %(name)s - %(levelname)s - '
            '[%(filename)s:%(lineno)d] - %(message)s'
        )
        self._console_format = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
        self._date_format = '%Y-%m-%d %H:%M:%S'

        self._log_level = LogLevel.INFO
        self._log_file: Optional[str] = None
        self._max_file_size = 10 * 1024 * 1024  # 10MB
        self._backup_count = 5
        self._enable_console = True

        self._initialized = True

    def configure(self, config: Dict[str, Any]) -> None:
        """
        应用日志配置，已创建的记录器会按新配置重建处理器

        Args:
            config: 支持的键: log_level, log_file, max_file_size,
                backup_count, enable_console, format, console_format, date_format

        Raises:
            ValueError: 日志级别无效
        """
        if config.get('log_level'):
            self._log_level = LogLevel.parse(config['log_level'])

        if 'log_file' in config:
            self._log_file = config['log_file'] or None

        self._max_file_size = config.get('max_file_size', self._max_file_size)
        self._backup_count = config.get('backup_count', self._backup_count)
        self._enable_console = config.get('enable_console', self._enable_console)
        self._file_format = config.get('format', self._file_format)
        self._console_format = config.get('console_format', self._console_format)
        self._date_format = config.get('date_format', self._date_format)

        for logger in self._loggers.values():
            self._attach_handlers(logger)

    def get_logger(self, name: str) -> logging.Logger:
        """
        获取指定名称的日志记录器

        Args:
            name: 记录器名称

        Returns:
            logging.Logger: 已配置处理器的记录器
        """
        logger = self._loggers.get(name)
        if logger is None:
            logger = logging.getLogger(f'service_monitoring.{name}')
            self._attach_handlers(logger)
            self._loggers[name] = logger
        return logger

    def _attach_handlers(self, logger: logging.Logger) -> None:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        logger.setLevel(self._log_level.value)

        if self._enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(self._log_level.value)
            console_handler.setFormatter(
                logging.Formatter(self._console_format, datefmt=self._date_format))
            logger.addHandler(console_handler)

        if self._log_file:
            Path(self._log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                self._log_file,
                maxBytes=self._max_file_size,
                backupCount=self._backup_count,
                encoding='utf-8'
            )
            file_handler.setLevel(self._log_level.value)
            file_handler.setFormatter(
                logging.Formatter(self._file_format, datefmt=self._date_format))
            logger.addHandler(file_handler)

        # 保留向上传播，便于测试中使用caplog捕获
        logger.propagate = True

    def set_level(self, level: Union[str, LogLevel]) -> None:
        """
        调整全局日志级别

        Args:
            level: 日志级别名称或LogLevel
        """
        self._log_level = LogLevel.parse(level)
        for logger in self._loggers.values():
            logger.setLevel(self._log_level.value)
            for handler in logger.handlers:
                handler.setLevel(self._log_level.value)

    def get_log_stats(self) -> Dict[str, Any]:
        return {
            'loggers_count': len(self._loggers),
            'log_level': self._log_level.name,
            'log_file': self._log_file,
            'console_logging_enabled': self._enable_console,
        }

    def cleanup(self) -> None:
        """关闭所有处理器并清空记录器缓存"""
        for logger in self._loggers.values():
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
        self._loggers.clear()


# 全局日志管理器实例
log_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """获取日志记录器的便捷函数"""
    return log_manager.get_logger(name)


def configure_logging(config: Dict[str, Any]) -> None:
    """配置日志系统的便捷函数"""
    log_manager.configure(config)
