"""配置管理器"""

import os
from typing import Dict, Any, List, Optional

import yaml

from ..models.health_check import CheckDefinition, TransportBinding, TransportSettings
from ..utils.config_validator import ConfigValidator
from ..utils.exceptions import ConfigurationError, ErrorCode
from ..utils.log_manager import get_logger
from ..utils.time_utils import parse_duration, parse_time_of_day

DEFAULT_CHECK_INTERVAL = 30


class ConfigManager:
    """配置管理器，负责YAML配置的加载、验证，以及转换为检查定义和通道配置"""

    def __init__(self, config_path: Optional[str] = None):
        """
        初始化配置管理器

        Args:
            config_path: 配置文件路径
        """
        self.config_path = config_path
        self.config: Dict[str, Any] = {}
        self.logger = get_logger('config_manager')

    def load_config(self) -> Dict[str, Any]:
        """
        加载YAML配置文件

        Returns:
            Dict[str, Any]: 配置字典

        Raises:
            ConfigurationError: 配置加载或验证失败
        """
        if not self.config_path or not os.path.exists(self.config_path):
            self.logger.error(f"配置文件不存在: {self.config_path}")
            raise ConfigurationError(f"配置文件不存在: {self.config_path}",
                                     error_code=ErrorCode.CONFIG_FILE_NOT_FOUND,
                                     config_path=self.config_path)

        self.logger.info(f"开始加载配置文件: {self.config_path}")
        try:
            with open(self.config_path, 'r', encoding='utf-8') as file:
                config = yaml.safe_load(file)
        except yaml.YAMLError as e:
            self.logger.error(f"YAML格式错误: {e}")
            raise ConfigurationError(f"YAML格式错误: {e}", error_code=ErrorCode.CONFIG_PARSE_ERROR,
                                     config_path=self.config_path, cause=e)
        except OSError as e:
            self.logger.error(f"读取配置文件失败: {e}")
            raise ConfigurationError(f"读取配置文件失败: {e}", config_path=self.config_path, cause=e)

        if config is None:
            raise ConfigurationError("配置文件为空", config_path=self.config_path)

        return self.load_dict(config)

    def load_dict(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        从字典加载配置

        Raises:
            ConfigurationError: 配置验证失败
        """
        self._validate_config(config)
        self.config = config
        self.logger.info(
            f"配置验证成功，包含 {len(config.get('checks') or [])} 个检查和 "
            f"{len(config.get('transports') or [])} 个通道")
        return self.config

    def _validate_config(self, config: Dict[str, Any]) -> None:
        if not isinstance(config, dict):
            raise ConfigurationError("配置文件根节点必须是字典类型")

        ConfigValidator.validate_global_config(config.get('global') or {})

        transports = config.get('transports') or []
        if not isinstance(transports, list):
            raise ConfigurationError("transports 配置必须是列表类型")
        names = set()
        for transport in transports:
            ConfigValidator.validate_transport_config(transport)
            if transport['name'] in names:
                raise ConfigurationError(f"通道名称重复: '{transport['name']}'")
            names.add(transport['name'])

        checks = config.get('checks') or []
        if not isinstance(checks, list):
            raise ConfigurationError("checks 配置必须是列表类型")
        for check in checks:
            ConfigValidator.validate_check_config(check)

    def get_global_config(self) -> Dict[str, Any]:
        return self.config.get('global') or {}

    def get_transports(self) -> Dict[str, TransportSettings]:
        """
        获取命名的通道配置表

        Returns:
            Dict[str, TransportSettings]: 通道名称 -> 通道配置
        """
        transports = {}
        for item in self.config.get('transports') or []:
            options = {k: v for k, v in item.items() if k not in ('name', 'method')}
            transports[item['name']] = TransportSettings(name=item['name'], method=item['method'],
                                                         options=options)
        return transports

    def get_checks(self) -> List[CheckDefinition]:
        """
        获取检查定义列表，未命名的检查使用 "{service_type}-{序号}"

        Raises:
            ConfigurationError: 检查名称重复或取值无效
        """
        default_interval = self.get_global_config().get('check_interval', DEFAULT_CHECK_INTERVAL)
        checks = []
        seen = set()
        for index, item in enumerate(self.config.get('checks') or []):
            name = item.get('name') or f"{item['service_type']}-{index}"
            if name in seen:
                raise ConfigurationError(f"检查名称重复: '{name}'")
            seen.add(name)

            try:
                checks.append(CheckDefinition(
                    name=name,
                    service_type=item['service_type'],
                    target=item.get('target'),
                    interval=parse_duration(item.get('interval', default_interval)),
                    bindings=[self._build_binding(b) for b in item.get('bindings') or []],
                    settings=dict(item.get('settings') or {}),
                    excluded_interception_names=list(item.get('excluded_interception_names') or []),
                    alert=bool(item.get('alert', True)),
                    additional_tags={str(k): str(v) for k, v in (item.get('additional_tags') or {}).items()},
                ))
            except ValueError as e:
                raise ConfigurationError(f"检查 '{name}' 配置无效: {e}", cause=e)
        return checks

    @staticmethod
    def _build_binding(item: Dict[str, Any]) -> TransportBinding:
        kwargs = {
            'transport_method': item['transport_method'],
            'transport_name': item['transport_name'],
        }
        for field in ('alert_once', 'alert_on_service_recovered', 'publish_all_results',
                      'include_environment', 'alert_by_fail_count', 'timezone'):
            if field in item:
                kwargs[field] = item[field]
        if 'alert_every' in item:
            kwargs['alert_every'] = parse_duration(item['alert_every'])
        if 'start_alerting_on' in item:
            kwargs['start_alerting_on'] = parse_time_of_day(item['start_alerting_on'])
        if 'stop_alerting_on' in item:
            kwargs['stop_alerting_on'] = parse_time_of_day(item['stop_alerting_on'])
        return TransportBinding(**kwargs)
