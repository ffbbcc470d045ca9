"""探测器基类"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

from ..models.health_check import CheckDefinition, HealthStatus, Observation, utc_now
from ..utils.exceptions import ErrorCode, ValidationError
from ..utils.log_manager import get_logger


class BaseProber(ABC):
    """探测器抽象基类，执行一次检查并产出Observation"""

    def __init__(self, check: CheckDefinition, machine_name: Optional[str] = None):
        """
        初始化探测器

        Args:
            check: 检查定义
            machine_name: 机器名，写入每条观测
        """
        self.check = check
        self.name = check.name
        self.service_type = check.service_type
        self.settings: Dict[str, Any] = check.settings
        self.machine_name = machine_name
        self.logger = get_logger(f'prober.{self.service_type}.{self.name}')

    @abstractmethod
    def validate(self) -> None:
        """
        校验检查配置

        Raises:
            ValidationError: 配置无效
        """

    @abstractmethod
    async def check_health(self) -> Optional[Observation]:
        """执行检查，异常由 probe() 统一转换为Unhealthy；返回None表示不产生观测"""

    def get_timeout(self) -> float:
        return self.settings.get('timeout', 10)

    def invalid(self, field_name: str, reason: str) -> ValidationError:
        return ValidationError(
            f"检查 '{self.name}' 配置项 {field_name} 无效: {reason}",
            field=field_name,
            instance_name=self.name,
            error_code=ErrorCode.INVALID_FIELD
        )

    def observation(self, status: HealthStatus, description: Optional[str] = None,
                    error_message: Optional[str] = None, **tags: str) -> Observation:
        return Observation(
            check_name=self.name,
            status=status,
            description=description,
            error_message=error_message,
            tags={k: str(v) for k, v in tags.items()},
            service_type=self.service_type,
        )

    async def probe(self) -> Optional[Observation]:
        """
        执行检查并补全耗时、标签、机器名，不抛出异常

        Returns:
            Optional[Observation]: 观测结果
        """
        start_time = time.monotonic()
        try:
            result = await asyncio.wait_for(self.check_health(), timeout=self.get_timeout())
        except asyncio.TimeoutError:
            result = self.observation(HealthStatus.UNHEALTHY,
                                      error_message=f"检查超时 ({self.get_timeout()}秒)")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"检查 {self.name} 执行异常: {e}", exc_info=True)
            result = self.observation(HealthStatus.UNHEALTHY, error_message=f"检查异常: {e}")

        if result is None:
            return None

        result.duration_ms = round((time.monotonic() - start_time) * 1000, 3)
        result.timestamp = utc_now()
        result.machine_name = result.machine_name or self.machine_name
        result.service_type = result.service_type or self.service_type
        result.tags = {**self.check.additional_tags, **result.tags}

        if result.status.is_failed:
            self.logger.warning(
                f"检查 {self.name} 状态 {result.status.value}: {result.error_message or result.description}")
        else:
            self.logger.debug(f"检查 {self.name} 状态 {result.status.value}, 耗时 {result.duration_ms}ms")
        return result
