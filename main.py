#!/usr/bin/env python3
"""
服务监控系统主程序入口

按配置周期执行检查，把报告交给监控引擎处理，并处理信号实现优雅关闭。
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Optional, Dict, Any

from service_monitoring.models.health_check import AlertMessage, HealthStatus, utc_now
from service_monitoring.services.config_manager import ConfigManager
from service_monitoring.services.engine import MonitoringEngine
from service_monitoring.utils.exceptions import ConfigurationError, MonitoringError
from service_monitoring.utils.log_manager import log_manager, get_logger

__version__ = "1.0.0"


class MonitoringApp:
    """服务监控主应用程序"""

    def __init__(self, config_path: str, log_overrides: Optional[Dict[str, Any]] = None):
        """
        初始化应用程序

        Args:
            config_path: 配置文件路径
            log_overrides: 命令行传入的日志配置，覆盖配置文件
        """
        self.config_path = config_path
        self.log_overrides = log_overrides or {}
        self.logger: Optional[logging.Logger] = None
        self.is_running = False
        self.shutdown_event = asyncio.Event()
        self.config_manager: Optional[ConfigManager] = None
        self.engine: Optional[MonitoringEngine] = None

    def initialize(self):
        """加载配置并初始化监控引擎"""
        self.config_manager = ConfigManager(self.config_path)
        config = self.config_manager.load_config()

        self._configure_logging(config.get('global') or {})
        self.logger = get_logger('main')
        self.logger.info("开始初始化服务监控系统")

        self.engine = MonitoringEngine(self.config_manager)
        self.engine.initialize()
        self.logger.info("应用程序组件初始化完成")

    def _configure_logging(self, global_config: Dict[str, Any]):
        log_config = {
            'log_level': global_config.get('log_level', 'INFO'),
            'enable_console': True,
        }
        if global_config.get('log_file'):
            log_config['log_file'] = global_config['log_file']
            log_config['max_file_size'] = global_config.get('max_log_size', 10 * 1024 * 1024)
            log_config['backup_count'] = global_config.get('log_backup_count', 5)
        log_config.update(self.log_overrides)
        log_manager.configure(log_config)

    def _check_interval(self) -> float:
        configured = self.config_manager.get_global_config().get('check_interval')
        if configured:
            return float(configured)
        return self.engine.get_min_interval().total_seconds()

    async def start(self):
        """按固定间隔执行检查，直到收到关闭信号"""
        if self.is_running:
            self.logger.warning("应用程序已经在运行")
            return

        self.is_running = True
        interval = self._check_interval()
        self.logger.info(f"启动服务监控系统，检查间隔 {interval} 秒")

        try:
            while not self.shutdown_event.is_set():
                try:
                    await self.engine.run_checks()
                except MonitoringError as e:
                    self.logger.error(f"本轮检查失败: {e.format_error()}")
                try:
                    await asyncio.wait_for(self.shutdown_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.stop()

    async def stop(self):
        """停止应用程序"""
        if not self.is_running:
            return
        self.is_running = False
        self.logger.info("正在停止服务监控系统...")
        if self.engine:
            await self.engine.stop()
        self.logger.info("服务监控系统已停止")
        log_manager.cleanup()

    def shutdown(self):
        """触发应用程序关闭"""
        if self.logger:
            self.logger.info("收到关闭信号")
        self.shutdown_event.set()


app: Optional[MonitoringApp] = None


def signal_handler(signum, frame):
    """信号处理器"""
    print(f"\n收到信号 {signal.Signals(signum).name} ({signum})")
    if app:
        app.shutdown()
    else:
        sys.exit(0)


def create_argument_parser() -> argparse.ArgumentParser:
    """创建命令行参数解析器"""
    parser = argparse.ArgumentParser(
        prog='service-monitoring',
        description='服务监控系统 - 按通道评估告警规则并追踪服务状态区间',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例用法:
  %(prog)s config.yaml                    # 使用指定配置文件启动监控
  %(prog)s --validate config.yaml        # 验证配置文件并列出检查与通道
  %(prog)s --check-once config.yaml      # 执行一次检查后退出
  %(prog)s --test-alerts config.yaml     # 向所有通道发送测试消息

配置文件格式请参考 config/example.yaml
        """
    )

    parser.add_argument('config_file', nargs='?', help='YAML配置文件路径')
    parser.add_argument('--version', '-v', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--validate', action='store_true', help='验证配置文件并退出')
    parser.add_argument('--check-once', action='store_true', help='执行一次检查后退出')
    parser.add_argument('--test-alerts', action='store_true', help='向所有通道发送测试消息并退出')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='设置日志级别（覆盖配置文件设置）')
    parser.add_argument('--log-file', help='日志文件路径（覆盖配置文件设置）')
    return parser


def validate_config_file(config_path: str) -> bool:
    """
    验证配置文件，包括类型标识和各通道的必需字段

    Returns:
        bool: 没有致命错误且没有实例被排除时返回True
    """
    print(f"正在验证配置文件: {config_path}")
    try:
        config_manager = ConfigManager(config_path)
        config_manager.load_config()
        engine = MonitoringEngine(config_manager)
        engine.initialize()
    except MonitoringError as e:
        print(f"❌ 配置文件验证失败: {e.format_error()}")
        return False

    monitors = engine.registry.get_monitors()
    publishers = engine.registry.get_publishers()
    errors = engine.registry.get_validation_errors()

    print("✅ 配置文件解析成功")
    print(f"   - 检查数量: {len(monitors)}")
    for monitor in monitors:
        print(f"     * {monitor.name} ({monitor.service_type})")
    print(f"   - 通道绑定数量: {len(publishers)}")
    for publisher in publishers:
        print(f"     * {publisher.check.name} -> {publisher.name} ({publisher.method})")

    if errors:
        print(f"❌ {len(errors)} 个实例校验失败:")
        for error in errors:
            print(f"     * {error.format_error()}")
        return False
    return True


async def check_once(app_instance: MonitoringApp) -> bool:
    """
    执行一次检查

    Returns:
        bool: 所有检查均健康时返回True
    """
    report = await app_instance.engine.run_checks()
    await app_instance.engine.dispatcher.join()

    print(f"检查完成，共 {len(report.entries)} 个结果，总体状态 {report.status.value}:")
    for entry in report.entries:
        icon = '✅' if entry.status == HealthStatus.HEALTHY else '❌'
        detail = entry.error_message or entry.description or ''
        print(f"   {icon} {entry.check_name}: {entry.status.value} ({entry.duration_ms:.1f}ms) {detail}")
    return report.status == HealthStatus.HEALTHY


async def send_test_alerts(app_instance: MonitoringApp) -> bool:
    """
    直接调用每个通知器发送一条测试消息

    Returns:
        bool: 全部发送成功时返回True
    """
    success = True
    for publisher in app_instance.engine.registry.get_publishers():
        message = AlertMessage(
            subject=f"[Test] - Alert Triggered : {publisher.check.name}",
            body=f"这是一条来自服务监控系统的测试消息，通道: {publisher.name}",
            check_name=publisher.check.name,
            status=HealthStatus.HEALTHY,
            transport_name=publisher.name,
            timestamp=utc_now(),
        )
        try:
            await asyncio.wait_for(publisher.send(message), timeout=publisher.get_timeout())
            print(f"   ✅ {publisher.name} ({publisher.method})")
        except Exception as e:
            print(f"   ❌ {publisher.name} ({publisher.method}): {e}")
            success = False
    return success


async def main():
    """主函数"""
    global app

    parser = create_argument_parser()
    args = parser.parse_args()

    if not args.config_file:
        parser.print_help()
        sys.exit(1)

    config_path = args.config_file
    if not os.path.exists(config_path):
        print(f"配置文件不存在: {config_path}", file=sys.stderr)
        sys.exit(1)

    if args.validate:
        sys.exit(0 if validate_config_file(config_path) else 1)

    log_overrides = {}
    if args.log_level:
        log_overrides['log_level'] = args.log_level
    if args.log_file:
        log_overrides['log_file'] = args.log_file

    try:
        app = MonitoringApp(config_path, log_overrides)
        app.initialize()

        if args.check_once or args.test_alerts:
            app.is_running = True
            if args.check_once:
                ok = await check_once(app)
            else:
                ok = await send_test_alerts(app)
            await app.stop()
            sys.exit(0 if ok else 1)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        print(f"服务监控系统 v{__version__} 已启动")
        print(f"配置文件: {config_path}")
        print("按 Ctrl+C 停止程序")

        await app.start()

    except KeyboardInterrupt:
        print("\n用户中断程序")
    except ConfigurationError as e:
        print(f"配置错误: {e.format_error()}", file=sys.stderr)
        sys.exit(1)
    except MonitoringError as e:
        print(f"服务监控系统错误: {e.format_error()}", file=sys.stderr)
        sys.exit(1)
    finally:
        if app:
            await app.stop()


def run():
    """命令行入口"""
    asyncio.run(main())


if __name__ == "__main__":
    run()
