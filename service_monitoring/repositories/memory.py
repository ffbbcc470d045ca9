"""内存存储实现，可选JSON快照持久化"""

import copy
import json
import os
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Any

from .base import MonitoringDataRepository
from ..models.health_check import HealthStatus, Observation, StatusInterval, utc_now
from ..utils.exceptions import ConfigurationError, ErrorCode, TrackerError
from ..utils.log_manager import get_logger


def observation_to_dict(observation: Observation) -> Dict[str, Any]:
    return {
        'check_name': observation.check_name,
        'status': observation.status.value,
        'timestamp': observation.timestamp.isoformat(),
        'description': observation.description,
        'error_message': observation.error_message,
        'duration_ms': observation.duration_ms,
        'tags': observation.tags,
        'service_type': observation.service_type,
        'machine_name': observation.machine_name,
    }


def observation_from_dict(data: Dict[str, Any]) -> Observation:
    return Observation(
        check_name=data['check_name'],
        status=HealthStatus.parse(data['status']),
        timestamp=datetime.fromisoformat(data['timestamp']),
        description=data.get('description'),
        error_message=data.get('error_message'),
        duration_ms=data.get('duration_ms', 0.0),
        tags=data.get('tags') or {},
        service_type=data.get('service_type'),
        machine_name=data.get('machine_name'),
    )


class InMemoryMonitoringDataRepository(MonitoringDataRepository):
    """
    内存存储

    所有写操作在同一把锁内完成；返回给调用方的都是副本，
    调用方修改返回值不会影响存储内容。
    """

    def __init__(self, persistence_file: Optional[str] = None,
                 max_observations_per_key: int = 1000):
        """
        初始化内存存储

        Args:
            persistence_file: 快照文件路径，None表示不持久化
            max_observations_per_key: 每个服务键保留的观测条数
        """
        if isinstance(max_observations_per_key, bool) or not isinstance(max_observations_per_key, int) \
                or max_observations_per_key <= 0:
            raise ConfigurationError(f"max_observations_per_key 必须是正整数: {max_observations_per_key!r}")

        self.persistence_file = persistence_file
        self.max_observations_per_key = max_observations_per_key
        self._intervals: Dict[str, List[StatusInterval]] = {}
        self._observations: Dict[str, List[Observation]] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        self.logger = get_logger('repository.memory')

        if self.persistence_file:
            self._load_state()

    def _assign_id(self, interval: StatusInterval) -> StatusInterval:
        stored = copy.copy(interval)
        stored.id = self._next_id
        self._next_id += 1
        return stored

    def _find_open(self, service_key: str) -> Optional[StatusInterval]:
        for interval in reversed(self._intervals.get(service_key, [])):
            if interval.end is None:
                return interval
        return None

    async def get_open_interval(self, service_key: str) -> Optional[StatusInterval]:
        with self._lock:
            interval = self._find_open(service_key)
            return copy.copy(interval) if interval else None

    async def add_interval(self, interval: StatusInterval) -> StatusInterval:
        with self._lock:
            if interval.end is None and self._find_open(interval.service_key) is not None:
                raise TrackerError(f"服务 {interval.service_key} 已存在开放区间",
                                   service_key=interval.service_key,
                                   error_code=ErrorCode.INTERVAL_INVARIANT_BROKEN)
            stored = self._assign_id(interval)
            self._intervals.setdefault(stored.service_key, []).append(stored)
            return copy.copy(stored)

    async def update_interval(self, interval: StatusInterval) -> None:
        with self._lock:
            for index, existing in enumerate(self._intervals.get(interval.service_key, [])):
                if existing.id == interval.id:
                    self._intervals[interval.service_key][index] = copy.copy(interval)
                    return
        raise TrackerError(f"区间不存在: id={interval.id}", service_key=interval.service_key)

    async def replace_open_interval(self, closed: StatusInterval,
                                    synthetic: Optional[StatusInterval],
                                    opened: StatusInterval) -> StatusInterval:
        with self._lock:
            intervals = self._intervals.get(closed.service_key, [])
            current = self._find_open(closed.service_key)
            if current is None or current.id != closed.id:
                raise TrackerError(f"服务 {closed.service_key} 的开放区间已变化，拒绝关闭",
                                   service_key=closed.service_key,
                                   error_code=ErrorCode.INTERVAL_INVARIANT_BROKEN)

            # 先在副本上完成所有修改，再一次性替换
            updated = [copy.copy(closed) if i.id == closed.id else i for i in intervals]
            if synthetic is not None:
                updated.append(self._assign_id(synthetic))
            stored_open = self._assign_id(opened)
            updated.append(stored_open)
            self._intervals[closed.service_key] = updated
            return copy.copy(stored_open)

    async def get_intervals(self, service_key: str) -> List[StatusInterval]:
        with self._lock:
            intervals = [copy.copy(i) for i in self._intervals.get(service_key, [])]
        return sorted(intervals, key=lambda i: i.start)

    async def get_intervals_in_range(self, range_from: datetime,
                                     range_to: datetime) -> Dict[str, List[StatusInterval]]:
        with self._lock:
            result = {
                key: sorted((copy.copy(i) for i in intervals if i.overlaps(range_from, range_to)),
                            key=lambda i: i.start)
                for key, intervals in self._intervals.items()
            }
        return {key: intervals for key, intervals in result.items() if intervals}

    async def get_open_intervals(self) -> List[StatusInterval]:
        with self._lock:
            return [copy.copy(i) for intervals in self._intervals.values()
                    for i in intervals if i.end is None]

    async def add_observations(self, observations: List[Observation]) -> None:
        with self._lock:
            for observation in observations:
                history = self._observations.setdefault(observation.service_key, [])
                history.append(copy.copy(observation))
                del history[:-self.max_observations_per_key]

    async def get_latest_observations(self) -> Dict[str, Observation]:
        with self._lock:
            return {
                key: copy.copy(max(history, key=lambda o: o.timestamp))
                for key, history in self._observations.items() if history
            }

    async def get_observations_in_range(self, range_from: datetime,
                                        range_to: datetime) -> Dict[str, List[Observation]]:
        with self._lock:
            result = {
                key: sorted((copy.copy(o) for o in history
                             if range_from <= o.timestamp <= range_to),
                            key=lambda o: o.timestamp)
                for key, history in self._observations.items()
            }
        return {key: items for key, items in result.items() if items}

    async def cleanup_history(self, keep_days: int = 7, now: Optional[datetime] = None) -> int:
        """
        清理过期的已关闭区间和观测记录

        Args:
            keep_days: 保留天数
            now: 当前时间

        Returns:
            int: 清理的记录数
        """
        cutoff = (now or utc_now()) - timedelta(days=keep_days)
        removed = 0
        with self._lock:
            for key, intervals in self._intervals.items():
                kept = [i for i in intervals if i.end is None or i.end >= cutoff]
                removed += len(intervals) - len(kept)
                self._intervals[key] = kept
            for key, history in self._observations.items():
                kept_obs = [o for o in history if o.timestamp >= cutoff]
                removed += len(history) - len(kept_obs)
                self._observations[key] = kept_obs

        if removed:
            self.logger.info(f"清理了 {removed} 条历史记录")
        return removed

    async def save(self) -> None:
        self._save_state()

    def _save_state(self):
        """保存快照到文件"""
        if not self.persistence_file:
            return

        with self._lock:
            state_data = {
                'last_updated': utc_now().isoformat(),
                'next_id': self._next_id,
                'intervals': [i.to_dict() for intervals in self._intervals.values() for i in intervals],
                'observations': [observation_to_dict(o) for history in self._observations.values()
                                 for o in history[-100:]],
            }

        try:
            Path(self.persistence_file).parent.mkdir(parents=True, exist_ok=True)
            with open(self.persistence_file, 'w', encoding='utf-8') as f:
                json.dump(state_data, f, ensure_ascii=False, indent=2)
            self.logger.debug(f"快照已保存到 {self.persistence_file}")
        except OSError as e:
            raise TrackerError(f"保存快照失败: {e}", error_code=ErrorCode.REPOSITORY_UNAVAILABLE,
                               cause=e)

    def _load_state(self):
        """从快照文件加载"""
        if not os.path.exists(self.persistence_file):
            return

        try:
            with open(self.persistence_file, 'r', encoding='utf-8') as f:
                state_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.error(f"加载快照失败，使用空存储: {e}")
            return

        for item in state_data.get('intervals', []):
            interval = StatusInterval.from_dict(item)
            self._intervals.setdefault(interval.service_key, []).append(interval)
        for item in state_data.get('observations', []):
            observation = observation_from_dict(item)
            self._observations.setdefault(observation.service_key, []).append(observation)

        max_id = max((i.id or 0 for items in self._intervals.values() for i in items), default=0)
        self._next_id = max(state_data.get('next_id', 1), max_id + 1)
        self.logger.info(
            f"从 {self.persistence_file} 加载了 {sum(len(v) for v in self._intervals.values())} 个状态区间")
