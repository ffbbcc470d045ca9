"""配置验证器测试"""

import pytest

from service_monitoring.utils.config_validator import ConfigValidator
from service_monitoring.utils.exceptions import ConfigurationError, ErrorCode


class TestConfigValidator:
    """配置验证器测试类"""

    def test_valid_global_config(self):
        """测试有效的全局配置"""
        ConfigValidator.validate_global_config({
            'check_interval': 30,
            'stale_threshold': '2m',
            'history_keep_days': 3,
            'cleanup_interval': '30m',
            'max_observations_per_key': 50,
            'log_level': 'debug',
            'delivery': {'workers': 2, 'max_queue_size': 10, 'timeout': 5.5},
        })

    @pytest.mark.parametrize('config,message', [
        ({'check_interval': 0}, 'check_interval 必须是正整数'),
        ({'check_interval': 'fast'}, 'check_interval 必须是正整数'),
        ({'stale_threshold': 0}, 'stale_threshold 必须大于0'),
        ({'stale_threshold': 'soon'}, 'stale_threshold 无效'),
        ({'history_keep_days': 0}, 'history_keep_days 必须是正整数'),
        ({'max_observations_per_key': True}, 'max_observations_per_key 必须是正整数'),
        ({'cleanup_interval': 'never'}, 'cleanup_interval 无效'),
        ({'log_level': 'LOUD'}, 'log_level 必须是以下值之一'),
        ({'delivery': []}, 'delivery 配置必须是字典类型'),
        ({'delivery': {'workers': 0}}, 'delivery.workers 必须是正整数'),
        ({'delivery': {'timeout': -1}}, 'delivery.timeout 必须大于0'),
    ])
    def test_invalid_global_config(self, config, message):
        """测试无效的全局配置"""
        with pytest.raises(ConfigurationError, match=message) as exc_info:
            ConfigValidator.validate_global_config(config)
        assert exc_info.value.error_code == ErrorCode.CONFIG_VALIDATION_ERROR

    def test_transport_requires_name_and_method(self):
        """测试通道配置必需字段"""
        ConfigValidator.validate_transport_config({'name': 'ops', 'method': 'webhook'})

        with pytest.raises(ConfigurationError, match="name"):
            ConfigValidator.validate_transport_config({'method': 'webhook'})
        with pytest.raises(ConfigurationError, match="method"):
            ConfigValidator.validate_transport_config({'name': 'ops'})

    def test_check_requires_service_type(self):
        """测试检查配置必需字段"""
        with pytest.raises(ConfigurationError, match="service_type"):
            ConfigValidator.validate_check_config({'name': 'api'})

    @pytest.mark.parametrize('field,value', [
        ('settings', ['a']),
        ('additional_tags', 'team'),
        ('excluded_interception_names', 'cache'),
        ('bindings', {'transport_name': 'ops'}),
    ])
    def test_check_field_types(self, field, value):
        """测试检查配置字段类型"""
        with pytest.raises(ConfigurationError, match=f"{field} 类型无效"):
            ConfigValidator.validate_check_config({'name': 'api', 'service_type': 'http', field: value})

    def test_check_interval(self):
        """测试检查间隔"""
        with pytest.raises(ConfigurationError, match="interval 无效"):
            ConfigValidator.validate_check_config({'name': 'api', 'service_type': 'http',
                                                   'interval': 'often'})

    def test_valid_binding(self):
        """测试有效的通道绑定"""
        ConfigValidator.validate_binding_config('api', {
            'transport_method': 'webhook',
            'transport_name': 'ops',
            'alert_once': True,
            'alert_every': 300,
            'start_alerting_on': '08:00',
            'stop_alerting_on': 72000,
            'alert_by_fail_count': 3,
            'timezone': 'Asia/Shanghai',
        })

    @pytest.mark.parametrize('binding,message', [
        ({'transport_name': 'ops'}, 'transport_method'),
        ({'transport_method': 'webhook'}, 'transport_name'),
    ])
    def test_binding_required_fields(self, binding, message):
        """测试通道绑定必需字段"""
        with pytest.raises(ConfigurationError, match=message):
            ConfigValidator.validate_binding_config('api', binding)

    @pytest.mark.parametrize('override,message', [
        ({'alert_once': 'yes'}, 'alert_once 必须是布尔值'),
        ({'alert_by_fail_count': 0}, 'alert_by_fail_count 必须是不小于1的整数'),
        ({'alert_by_fail_count': True}, 'alert_by_fail_count 必须是不小于1的整数'),
        ({'alert_every': 'sometimes'}, '通道绑定无效'),
        ({'start_alerting_on': '25:00'}, '通道绑定无效'),
        ({'timezone': 'Mars/Olympus'}, '通道绑定无效'),
    ])
    def test_invalid_binding(self, override, message):
        """测试无效的通道绑定"""
        binding = {'transport_method': 'webhook', 'transport_name': 'ops'}
        binding.update(override)

        with pytest.raises(ConfigurationError, match=message):
            ConfigValidator.validate_binding_config('api', binding)
