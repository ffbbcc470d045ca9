"""配置验证工具"""

from typing import Dict, Any

from .exceptions import ConfigurationError, ErrorCode
from .time_utils import parse_duration, parse_time_of_day, resolve_timezone

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

BINDING_BOOL_FIELDS = ['alert_once', 'alert_on_service_recovered',
                       'publish_all_results', 'include_environment']


def _fail(message: str) -> ConfigurationError:
    return ConfigurationError(message, error_code=ErrorCode.CONFIG_VALIDATION_ERROR)


class ConfigValidator:
    """配置验证器，只检查结构与取值范围；类型标识是否受支持由注册表判断"""

    @staticmethod
    def validate_global_config(global_config: Dict[str, Any]) -> None:
        """
        验证全局配置

        Raises:
            ConfigurationError: 配置验证失败
        """
        if not isinstance(global_config, dict):
            raise _fail("全局配置必须是字典类型")

        check_interval = global_config.get('check_interval')
        if check_interval is not None:
            if isinstance(check_interval, bool) or not isinstance(check_interval, int) or check_interval <= 0:
                raise _fail("check_interval 必须是正整数")

        stale_threshold = global_config.get('stale_threshold')
        if stale_threshold is not None:
            try:
                if parse_duration(stale_threshold).total_seconds() <= 0:
                    raise _fail("stale_threshold 必须大于0")
            except ValueError as e:
                raise _fail(f"stale_threshold 无效: {e}")

        for key in ('history_keep_days', 'max_observations_per_key'):
            value = global_config.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value <= 0):
                raise _fail(f"{key} 必须是正整数")

        cleanup_interval = global_config.get('cleanup_interval')
        if cleanup_interval is not None:
            try:
                if parse_duration(cleanup_interval).total_seconds() <= 0:
                    raise _fail("cleanup_interval 必须大于0")
            except ValueError as e:
                raise _fail(f"cleanup_interval 无效: {e}")

        log_level = global_config.get('log_level')
        if log_level is not None and str(log_level).upper() not in VALID_LOG_LEVELS:
            raise _fail(f"log_level 必须是以下值之一: {VALID_LOG_LEVELS}")

        delivery = global_config.get('delivery', {})
        if not isinstance(delivery, dict):
            raise _fail("delivery 配置必须是字典类型")
        for key in ('workers', 'max_queue_size'):
            value = delivery.get(key)
            if value is not None and (not isinstance(value, int) or value <= 0):
                raise _fail(f"delivery.{key} 必须是正整数")
        timeout = delivery.get('timeout')
        if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
            raise _fail("delivery.timeout 必须大于0")

    @staticmethod
    def validate_transport_config(transport_config: Dict[str, Any]) -> None:
        """
        验证通道配置

        Raises:
            ConfigurationError: 配置验证失败
        """
        if not isinstance(transport_config, dict):
            raise _fail("通道配置必须是字典类型")

        for field in ('name', 'method'):
            if not transport_config.get(field):
                raise _fail(f"通道配置缺少必需的配置项: {field}")

    @staticmethod
    def validate_check_config(check_config: Dict[str, Any]) -> None:
        """
        验证检查配置

        Raises:
            ConfigurationError: 配置验证失败
        """
        if not isinstance(check_config, dict):
            raise _fail("检查配置必须是字典类型")

        name = check_config.get('name', '<未命名>')
        if not check_config.get('service_type'):
            raise _fail(f"检查 '{name}' 缺少必需的配置项: service_type")

        interval = check_config.get('interval')
        if interval is not None:
            try:
                if parse_duration(interval).total_seconds() <= 0:
                    raise _fail(f"检查 '{name}' 的 interval 必须大于0")
            except ValueError as e:
                raise _fail(f"检查 '{name}' 的 interval 无效: {e}")

        for field, expected in (('settings', dict), ('additional_tags', dict),
                                ('excluded_interception_names', list), ('bindings', list)):
            value = check_config.get(field)
            if value is not None and not isinstance(value, expected):
                raise _fail(f"检查 '{name}' 的 {field} 类型无效")

        for binding in check_config.get('bindings') or []:
            ConfigValidator.validate_binding_config(name, binding)

    @staticmethod
    def validate_binding_config(check_name: str, binding: Dict[str, Any]) -> None:
        """
        验证通道绑定配置

        Raises:
            ConfigurationError: 配置验证失败
        """
        if not isinstance(binding, dict):
            raise _fail(f"检查 '{check_name}' 的通道绑定必须是字典类型")

        for field in ('transport_method', 'transport_name'):
            if not binding.get(field):
                raise _fail(f"检查 '{check_name}' 的通道绑定缺少必需的配置项: {field}")

        for field in BINDING_BOOL_FIELDS:
            if field in binding and not isinstance(binding[field], bool):
                raise _fail(f"检查 '{check_name}' 的 {field} 必须是布尔值")

        fail_count = binding.get('alert_by_fail_count', 1)
        if isinstance(fail_count, bool) or not isinstance(fail_count, int) or fail_count < 1:
            raise _fail(f"检查 '{check_name}' 的 alert_by_fail_count 必须是不小于1的整数")

        try:
            if 'alert_every' in binding:
                parse_duration(binding['alert_every'])
            for field in ('start_alerting_on', 'stop_alerting_on'):
                if field in binding:
                    parse_time_of_day(binding[field])
            if binding.get('timezone'):
                resolve_timezone(binding['timezone'])
        except ValueError as e:
            raise _fail(f"检查 '{check_name}' 的通道绑定无效: {e}")
