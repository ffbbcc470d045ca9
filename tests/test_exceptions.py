"""异常类测试"""

from service_monitoring.utils.exceptions import (
    ErrorCode, MonitoringError, ConfigurationError, ValidationError,
    ObservationError, DeliveryError, TrackerError
)


class TestMonitoringError:
    """基础异常测试类"""

    def test_basic_error(self):
        """测试基础异常"""
        error = MonitoringError("出错了")

        assert str(error) == "出错了"
        assert error.error_code == ErrorCode.UNKNOWN_ERROR
        assert error.details == {}
        assert error.cause is None
        assert error.recoverable is True

    def test_to_dict(self):
        """测试转换为字典"""
        cause = ValueError("原始错误")
        error = MonitoringError("出错了", ErrorCode.INITIALIZATION_ERROR,
                                details={'key': 'value'}, cause=cause, recoverable=False)

        data = error.to_dict()
        assert data['error_code'] == 1001
        assert data['error_name'] == 'INITIALIZATION_ERROR'
        assert data['message'] == "出错了"
        assert data['details'] == {'key': 'value'}
        assert data['recoverable'] is False
        assert data['cause'] == "原始错误"

    def test_format_error(self):
        """测试格式化错误信息"""
        error = MonitoringError("出错了", ErrorCode.UNKNOWN_ERROR,
                                details={'a': 1}, cause=RuntimeError("底层"))

        formatted = error.format_error()
        assert formatted.startswith("[UNKNOWN_ERROR] 出错了")
        assert "a=1" in formatted
        assert "原因: 底层" in formatted


class TestSpecificErrors:
    """具体异常测试类"""

    def test_configuration_error_is_fatal(self):
        """测试配置错误默认不可恢复"""
        error = ConfigurationError("未知类型", error_code=ErrorCode.UNKNOWN_DISCRIMINATOR,
                                   config_path='/etc/monitor.yaml')

        assert isinstance(error, MonitoringError)
        assert error.recoverable is False
        assert error.error_code == ErrorCode.UNKNOWN_DISCRIMINATOR
        assert error.details['config_path'] == '/etc/monitor.yaml'

    def test_validation_error_fields(self):
        """测试校验错误记录字段和实例名"""
        error = ValidationError("缺少字段", field='url', instance_name='ops-webhook',
                                error_code=ErrorCode.MISSING_FIELD)

        assert error.field == 'url'
        assert error.instance_name == 'ops-webhook'
        assert error.details == {'field': 'url', 'instance_name': 'ops-webhook'}
        assert error.recoverable is True

    def test_observation_error(self):
        """测试观测错误"""
        error = ObservationError("报告中缺少条目", check_name='api')
        assert error.check_name == 'api'
        assert error.error_code == ErrorCode.OBSERVATION_MISSING

    def test_delivery_error(self):
        """测试投递错误"""
        error = DeliveryError("超时", transport_name='ops', error_code=ErrorCode.DELIVERY_TIMEOUT)
        assert error.transport_name == 'ops'
        assert error.details['transport_name'] == 'ops'
        assert error.error_code == ErrorCode.DELIVERY_TIMEOUT

    def test_tracker_error(self):
        """测试追踪错误"""
        error = TrackerError("存储不可用", service_key='api',
                             error_code=ErrorCode.REPOSITORY_UNAVAILABLE)
        assert error.service_key == 'api'
        assert "service_key=api" in error.format_error()
