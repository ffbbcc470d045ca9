"""主应用程序测试"""

import asyncio
import os
import tempfile
from unittest.mock import AsyncMock, patch

import pytest
import yaml

from main import MonitoringApp, check_once, create_argument_parser, send_test_alerts, validate_config_file
from service_monitoring.alerts.callback_notifier import add_callback, remove_callbacks
from service_monitoring.models.health_check import HealthStatus
from service_monitoring.probers.custom_prober import register_custom_check, unregister_custom_check
from service_monitoring.utils.exceptions import ConfigurationError

EXAMPLE_CONFIG = os.path.join(os.path.dirname(__file__), '..', 'config', 'example.yaml')


class TestMonitoringApp:
    """主应用程序测试类"""

    @pytest.fixture
    def temp_config_file(self):
        """创建临时配置文件"""
        config_data = {
            'global': {'check_interval': 1, 'log_level': 'INFO'},
            'transports': [{'name': 'collector', 'method': 'callback'}],
            'checks': [{
                'name': 'job',
                'service_type': 'custom',
                'settings': {'function': 'app_job'},
                'bindings': [{'transport_method': 'callback', 'transport_name': 'collector'}],
            }],
        }

        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.dump(config_data, f, default_flow_style=False)
            temp_file = f.name

        register_custom_check('app_job', lambda: HealthStatus.UNHEALTHY)
        yield temp_file

        unregister_custom_check('app_job')
        remove_callbacks('collector')
        if os.path.exists(temp_file):
            os.unlink(temp_file)

    def test_argument_parser(self):
        """测试命令行参数解析"""
        parser = create_argument_parser()
        args = parser.parse_args(['--check-once', '--log-level', 'DEBUG', 'config.yaml'])

        assert args.config_file == 'config.yaml'
        assert args.check_once is True
        assert args.validate is False
        assert args.log_level == 'DEBUG'

    def test_validate_example_config(self, capsys):
        """测试验证示例配置"""
        assert validate_config_file(EXAMPLE_CONFIG) is True

        output = capsys.readouterr().out
        assert "配置文件解析成功" in output
        assert "检查数量: 5" in output
        assert "orders-db (mysql)" in output
        assert "gateways (ping)" in output
        assert "all-services -> ops-slack (slack)" in output

    def test_validate_missing_file(self, capsys):
        """测试验证不存在的配置文件"""
        assert validate_config_file('/nonexistent/config.yaml') is False
        assert "配置文件验证失败" in capsys.readouterr().out

    def test_initialize_missing_file(self):
        """测试初始化时配置文件不存在"""
        app = MonitoringApp('/nonexistent/config.yaml')
        with pytest.raises(ConfigurationError):
            app.initialize()

    @pytest.mark.asyncio
    async def test_check_once(self, temp_config_file, capsys):
        """测试执行一次检查并投递告警"""
        received = []
        add_callback('collector', received.append)

        app = MonitoringApp(temp_config_file)
        app.initialize()
        app.is_running = True

        assert await check_once(app) is False
        await app.stop()

        assert len(received) == 1
        assert received[0].check_name == 'job'
        assert "job: Unhealthy" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_send_test_alerts(self, temp_config_file):
        """测试向所有通道发送测试消息"""
        received = []
        add_callback('collector', received.append)

        app = MonitoringApp(temp_config_file)
        app.initialize()

        assert await send_test_alerts(app) is True
        assert received[0].subject == "[Test] - Alert Triggered : job"

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, temp_config_file):
        """测试启动循环并在收到关闭信号后停止"""
        app = MonitoringApp(temp_config_file)
        app.initialize()

        with patch.object(app.engine, 'run_checks', new_callable=AsyncMock) as mock_run:
            task = asyncio.create_task(app.start())
            await asyncio.sleep(0.05)
            app.shutdown()
            await asyncio.wait_for(task, timeout=2)

        assert mock_run.await_count >= 1
        assert app.is_running is False

    def test_log_overrides(self, temp_config_file):
        """测试命令行日志配置覆盖配置文件"""
        app = MonitoringApp(temp_config_file, log_overrides={'log_level': 'WARNING'})
        with patch('main.log_manager') as mock_log_manager:
            app.initialize()

        config = mock_log_manager.configure.call_args.args[0]
        assert config['log_level'] == 'WARNING'
