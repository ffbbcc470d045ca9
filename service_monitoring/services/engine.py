"""监控引擎

根据配置组装注册表、观测总线、规则状态、投递调度器和状态区间追踪器。
周期调度由外部负责，每完成一次检查调用 process_report()。
"""

import asyncio
import socket
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional

from .config_manager import ConfigManager
from .observation_bus import ObservationBus
from .registry import PublisherRegistry, default_registry
from .status_tracker import StatusIntervalTracker, DEFAULT_STALE_THRESHOLD
from .. import alerts as _alerts  # noqa: F401  注册内置通知器
from .. import probers as _probers  # noqa: F401  注册内置探测器
from ..alerts.delivery import DeliveryDispatcher
from ..alerts.rules import RuleStateStore
from ..models.health_check import Observation, Report, utc_now
from ..repositories.base import MonitoringDataRepository
from ..repositories.memory import InMemoryMonitoringDataRepository
from ..utils.log_manager import get_logger
from ..utils.time_utils import ensure_utc, parse_duration


class MonitoringEngine:
    """监控引擎"""

    def __init__(self, config_manager: ConfigManager,
                 registry: Optional[PublisherRegistry] = None,
                 repository: Optional[MonitoringDataRepository] = None):
        """
        初始化监控引擎

        Args:
            config_manager: 已加载配置的配置管理器
            registry: 注册表，默认复制全局注册表的工厂表
            repository: 存储，默认使用内存存储（global.state_file 配置时带快照）
        """
        self.config_manager = config_manager
        self.registry = registry or default_registry.copy()
        self.logger = get_logger('engine')

        global_config = config_manager.get_global_config()
        self.environment: Optional[str] = global_config.get('environment')
        self.machine_name: Optional[str] = global_config.get('machine_name') or (
            socket.gethostname() if global_config.get('include_machine_name') else None)

        self.repository = repository or InMemoryMonitoringDataRepository(
            persistence_file=global_config.get('state_file'),
            max_observations_per_key=global_config.get('max_observations_per_key', 1000))
        self.history_keep_days: int = global_config.get('history_keep_days', 7)
        self.cleanup_interval: timedelta = parse_duration(global_config.get('cleanup_interval', '1h'))
        self._last_cleanup: Optional[datetime] = None

        stale = global_config.get('stale_threshold')
        self.tracker = StatusIntervalTracker(
            self.repository,
            stale_threshold=parse_duration(stale) if stale is not None else DEFAULT_STALE_THRESHOLD)

        delivery = global_config.get('delivery') or {}
        self.dispatcher = DeliveryDispatcher(
            workers=delivery.get('workers', 4),
            max_queue_size=delivery.get('max_queue_size', 100),
            timeout=delivery.get('timeout', 10))

        self.bus = ObservationBus(max_subscribers=global_config.get('max_subscribers'))
        self.rule_store = RuleStateStore()
        self.is_initialized = False
        self.reports_processed = 0

    def initialize(self):
        """
        创建探测器与通知器并完成订阅，重复调用不会重复订阅

        Raises:
            ConfigurationError: 致命的配置错误
        """
        if self.is_initialized:
            self.logger.debug("监控引擎已经初始化，跳过")
            return

        checks = self.config_manager.get_checks()
        transports = self.config_manager.get_transports()

        self.registry.build(checks, transports, bus=self.bus, rule_store=self.rule_store,
                            dispatcher=self.dispatcher, environment=self.environment)
        for monitor in self.registry.get_monitors():
            monitor.machine_name = monitor.machine_name or self.machine_name

        self.bus.subscribe(self.tracker)
        self.is_initialized = True
        self.logger.info(
            f"监控引擎初始化完成: 检查 {len(checks)} 个, 通道 {len(transports)} 个")

    async def process_report(self, report: Report) -> None:
        """处理一次完成的检查报告，并按 cleanup_interval 清理过期历史"""
        if not self.is_initialized:
            self.initialize()
        self.reports_processed += 1
        await self.bus.publish(report)

        now = ensure_utc(report.timestamp)
        if self._last_cleanup is None:
            self._last_cleanup = now
        elif now - self._last_cleanup >= self.cleanup_interval:
            await self.cleanup_history(now)

    async def cleanup_history(self, now: Optional[datetime] = None) -> int:
        """
        清理超过 history_keep_days 的已关闭区间和观测记录

        Returns:
            int: 清理的记录数
        """
        now = ensure_utc(now or utc_now())
        self._last_cleanup = now
        try:
            return await self.repository.cleanup_history(keep_days=self.history_keep_days, now=now)
        except Exception as e:
            self.logger.error(f"清理历史记录失败: {e}")
            return 0

    async def run_checks(self) -> Report:
        """
        并发执行所有探测器一次，并处理生成的报告

        Returns:
            Report: 本次报告
        """
        if not self.is_initialized:
            self.initialize()

        monitors = self.registry.get_monitors()
        results = await asyncio.gather(*(m.probe() for m in monitors))
        entries: List[Observation] = [r for r in results if r is not None]

        report = Report(entries=entries, timestamp=utc_now())
        self.logger.info(f"本轮检查完成: {len(entries)} 个结果, 总体状态 {report.status.value}")
        await self.process_report(report)
        return report

    def get_min_interval(self) -> timedelta:
        intervals = [m.check.interval for m in self.registry.get_monitors()]
        return min(intervals) if intervals else timedelta(seconds=30)

    async def stop(self):
        """停止投递，清理过期历史并保存存储快照"""
        await self.dispatcher.stop(drain=True)
        await self.cleanup_history()
        await self.repository.save()
        await self.repository.close()
        self.logger.info("监控引擎已停止")

    async def get_status(self) -> Dict[str, Any]:
        return {
            'initialized': self.is_initialized,
            'reports_processed': self.reports_processed,
            'monitors': [m.name for m in self.registry.get_monitors()],
            'publishers': [f"{p.check.name}->{p.name}" for p in self.registry.get_publishers()],
            'validation_errors': [e.to_dict() for e in self.registry.get_validation_errors()],
            'delivery': self.dispatcher.get_stats(),
            'rule_states': self.rule_store.snapshot(),
            'overall_status': (await self.tracker.get_overall_status()).value,
            'current_statuses': {k: v.value for k, v in (await self.tracker.get_current_statuses()).items()},
        }
