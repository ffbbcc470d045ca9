"""状态区间追踪器

把每个服务键的观测序列整理成首尾相接、互不重叠的状态区间。
同一服务键的读-改-写串行执行；关闭旧区间与打开新区间通过存储的
replace_open_interval 一次完成。
"""

import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from ..models.health_check import (
    HealthStatus, Observation, Report, StatusInterval, TimelineSegment, utc_now
)
from ..repositories.base import MonitoringDataRepository
from ..utils.exceptions import ErrorCode, MonitoringError, TrackerError
from ..utils.log_manager import get_logger
from ..utils.time_utils import ensure_utc

INACTIVITY_REASON = 'inactivity'
DEFAULT_STALE_THRESHOLD = timedelta(minutes=1)


class StatusIntervalTracker:
    """状态区间追踪器"""

    def __init__(self, repository: MonitoringDataRepository,
                 stale_threshold: timedelta = DEFAULT_STALE_THRESHOLD,
                 store_observations: bool = True):
        """
        初始化追踪器

        Args:
            repository: 存储
            stale_threshold: 开放区间超过该时长未刷新即视为过期
            store_observations: 处理报告时是否同时保存原始观测
        """
        if stale_threshold <= timedelta(0):
            raise ValueError("stale_threshold 必须大于0")

        self.repository = repository
        self.stale_threshold = stale_threshold
        self.store_observations = store_observations
        self.name = 'status-tracker'
        self._locks: Dict[str, asyncio.Lock] = {}
        self.logger = get_logger('tracker')

    def _get_lock(self, service_key: str) -> asyncio.Lock:
        lock = self._locks.get(service_key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[service_key] = lock
        return lock

    async def record(self, service_key: str, observation: Observation,
                     now: Optional[datetime] = None) -> StatusInterval:
        """
        记录一次观测

        Args:
            service_key: 服务键
            observation: 观测
            now: 记录时间，默认当前UTC时间

        Returns:
            StatusInterval: 记录后的开放区间

        Raises:
            TrackerError: 存储不可用或区间约束被破坏
        """
        now = ensure_utc(now or utc_now())
        async with self._get_lock(service_key):
            try:
                current = await self._apply(service_key, observation, now)
            except TrackerError:
                raise
            except Exception as e:
                raise TrackerError(f"记录服务 {service_key} 的状态失败: {e}",
                                   service_key=service_key,
                                   error_code=ErrorCode.REPOSITORY_UNAVAILABLE,
                                   cause=e)
            await self._verify(service_key)
            return current

    async def _apply(self, service_key: str, observation: Observation,
                     now: datetime) -> StatusInterval:
        status = HealthStatus.parse(observation.status)
        reason = observation.description or observation.error_message
        open_interval = await self.repository.get_open_interval(service_key)

        if open_interval is None:
            self.logger.info(f"服务 {service_key} 首次记录状态: {status.value}")
            return await self.repository.add_interval(self._new_interval(
                service_key, observation, status, reason, now))

        if now < open_interval.last_update_time:
            self.logger.warning(
                f"服务 {service_key} 的观测时间 {now.isoformat()} 早于上次更新 "
                f"{open_interval.last_update_time.isoformat()}，忽略")
            return open_interval

        stale = open_interval.is_stale(now, self.stale_threshold)

        if not stale and status == open_interval.status:
            open_interval.last_update_time = now
            await self.repository.update_interval(open_interval)
            return open_interval

        close_time = open_interval.last_update_time + self.stale_threshold if stale else now
        open_interval.end = close_time
        open_interval.last_update_time = now

        synthetic = None
        if stale:
            synthetic = StatusInterval(
                service_key=service_key,
                name=open_interval.name,
                machine_name=open_interval.machine_name,
                start=close_time,
                end=now,
                status=HealthStatus.UNKNOWN,
                status_reason=INACTIVITY_REASON,
                last_update_time=now,
            )
            self.logger.warning(
                f"服务 {service_key} 超过 {self.stale_threshold} 未更新，"
                f"插入未知状态区间 [{close_time.isoformat()}, {now.isoformat()})")

        if status != open_interval.status:
            self.logger.info(f"服务 {service_key} 状态变化: {open_interval.status.value} -> {status.value}")

        return await self.repository.replace_open_interval(
            open_interval, synthetic,
            self._new_interval(service_key, observation, status, reason, now))

    @staticmethod
    def _new_interval(service_key: str, observation: Observation, status: HealthStatus,
                      reason: Optional[str], now: datetime) -> StatusInterval:
        return StatusInterval(
            service_key=service_key,
            name=observation.check_name,
            machine_name=observation.machine_name,
            start=now,
            status=status,
            status_reason=reason,
            last_update_time=now,
        )

    async def _verify(self, service_key: str):
        """检查区间约束：恰好一个开放区间，区间有序且不重叠"""
        intervals = await self.repository.get_intervals(service_key)
        open_count = sum(1 for i in intervals if i.end is None)
        if open_count != 1:
            raise TrackerError(f"服务 {service_key} 存在 {open_count} 个开放区间",
                               service_key=service_key,
                               error_code=ErrorCode.INTERVAL_INVARIANT_BROKEN)

        for previous, following in zip(intervals, intervals[1:]):
            if previous.end is None or previous.end > following.start:
                raise TrackerError(
                    f"服务 {service_key} 的区间重叠: {previous.start.isoformat()} / "
                    f"{following.start.isoformat()}",
                    service_key=service_key,
                    error_code=ErrorCode.INTERVAL_INVARIANT_BROKEN)
        for interval in intervals:
            if interval.end is not None and interval.start > interval.end:
                raise TrackerError(f"服务 {service_key} 存在开始时间晚于结束时间的区间",
                                   service_key=service_key,
                                   error_code=ErrorCode.INTERVAL_INVARIANT_BROKEN)

    async def on_report(self, report: Report) -> None:
        """处理一份报告，逐条记录；单条失败不影响其他条目"""
        now = ensure_utc(report.timestamp)
        for entry in report.entries:
            try:
                await self.record(entry.service_key, entry, now)
            except MonitoringError as e:
                self.logger.error(f"记录 {entry.service_key} 失败: {e.format_error()}")

        if self.store_observations and report.entries:
            try:
                await self.repository.add_observations(report.entries)
            except Exception as e:
                self.logger.error(f"保存观测记录失败: {e}")

    async def get_intervals(self, range_from: datetime,
                            range_to: datetime) -> Dict[str, List[StatusInterval]]:
        """
        查询与 [range_from, range_to] 重叠的区间

        Returns:
            Dict[str, List[StatusInterval]]: 服务键 -> 按开始时间排序的区间
        """
        if range_from > range_to:
            raise ValueError("range_from 不能晚于 range_to")
        return await self.repository.get_intervals_in_range(ensure_utc(range_from), ensure_utc(range_to))

    async def get_current_statuses(self) -> Dict[str, HealthStatus]:
        return {i.service_key: i.status for i in await self.repository.get_open_intervals()}

    async def get_overall_status(self) -> HealthStatus:
        """
        所有服务的总体状态

        没有任何数据时返回Unhealthy；任一服务Unhealthy即为Unhealthy，
        否则任一Degraded即为Degraded，其余为Healthy。
        """
        statuses = list((await self.get_current_statuses()).values())
        if not statuses or HealthStatus.UNHEALTHY in statuses:
            return HealthStatus.UNHEALTHY
        if HealthStatus.DEGRADED in statuses:
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY

    async def get_timeline(self, range_from: datetime,
                           range_to: datetime) -> Dict[str, List[TimelineSegment]]:
        """
        生成时间线

        区间被裁剪到查询范围内，没有区间覆盖的空隙记为Unknown。
        每个服务第一个片段上记录可用率（Healthy时长占比，保留两位小数）。
        """
        range_from, range_to = ensure_utc(range_from), ensure_utc(range_to)
        grouped = await self.get_intervals(range_from, range_to)
        total_seconds = (range_to - range_from).total_seconds()

        timeline: Dict[str, List[TimelineSegment]] = {}
        for service_key, intervals in grouped.items():
            segments: List[TimelineSegment] = []
            cursor = range_from
            for interval in intervals:
                start = max(interval.start, range_from)
                end = min(interval.end or range_to, range_to)
                if start > cursor:
                    segments.append(TimelineSegment(cursor, start, HealthStatus.UNKNOWN))
                if end > start:
                    segments.append(TimelineSegment(start, end, interval.status))
                cursor = max(cursor, end)
            if cursor < range_to:
                segments.append(TimelineSegment(cursor, range_to, HealthStatus.UNKNOWN))

            healthy_seconds = sum((s.end - s.start).total_seconds()
                                  for s in segments if s.status == HealthStatus.HEALTHY)
            if segments:
                segments[0].uptime_percentage = (
                    round(healthy_seconds / total_seconds * 100, 2) if total_seconds > 0 else 0.0)
            timeline[service_key] = segments

        return timeline
