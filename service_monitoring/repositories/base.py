"""监控数据存储接口"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from ..models.health_check import Observation, StatusInterval


class MonitoringDataRepository(ABC):
    """
    状态区间与观测记录的存储接口

    replace_open_interval 必须作为一个整体生效：关闭旧区间、插入合成区间、
    打开新区间要么全部写入，要么全部不写入。
    """

    @abstractmethod
    async def get_open_interval(self, service_key: str) -> Optional[StatusInterval]:
        """获取服务当前的开放区间"""

    @abstractmethod
    async def add_interval(self, interval: StatusInterval) -> StatusInterval:
        """
        新增区间

        Raises:
            TrackerError: 同一服务已有开放区间，或存储不可用
        """

    @abstractmethod
    async def update_interval(self, interval: StatusInterval) -> None:
        """按id更新区间"""

    @abstractmethod
    async def replace_open_interval(self, closed: StatusInterval,
                                    synthetic: Optional[StatusInterval],
                                    opened: StatusInterval) -> StatusInterval:
        """
        原子地关闭当前开放区间并打开新区间

        Args:
            closed: 已设置end的旧区间（必须是存储中当前的开放区间）
            synthetic: 可选的中间区间（已关闭）
            opened: 新的开放区间

        Returns:
            StatusInterval: 写入后的新开放区间

        Raises:
            TrackerError: 旧区间已不是开放区间，或存储不可用
        """

    @abstractmethod
    async def get_intervals(self, service_key: str) -> List[StatusInterval]:
        """获取某服务的全部区间，按开始时间排序"""

    @abstractmethod
    async def get_intervals_in_range(self, range_from: datetime,
                                     range_to: datetime) -> Dict[str, List[StatusInterval]]:
        """获取与时间范围重叠的区间，按服务键分组"""

    @abstractmethod
    async def get_open_intervals(self) -> List[StatusInterval]:
        """获取所有服务的开放区间"""

    @abstractmethod
    async def add_observations(self, observations: List[Observation]) -> None:
        """批量保存观测记录"""

    @abstractmethod
    async def get_latest_observations(self) -> Dict[str, Observation]:
        """获取每个服务键最新的一条观测"""

    @abstractmethod
    async def get_observations_in_range(self, range_from: datetime,
                                        range_to: datetime) -> Dict[str, List[Observation]]:
        """获取时间范围内的观测，按服务键分组"""

    async def add_observation(self, observation: Observation) -> None:
        await self.add_observations([observation])

    async def cleanup_history(self, keep_days: int = 7, now: Optional[datetime] = None) -> int:
        """清理过期的已关闭区间和观测记录，返回清理条数；默认无操作"""
        return 0

    async def save(self) -> None:
        """持久化快照，默认无操作"""

    async def close(self) -> None:
        """释放资源，默认无操作"""
