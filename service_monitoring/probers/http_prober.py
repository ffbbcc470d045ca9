"""HTTP接口探测器"""

import time
from typing import List

import aiohttp

from .base import BaseProber
from ..models.health_check import HealthStatus, Observation
from ..services.registry import register_prober


@register_prober('http')
class HttpProber(BaseProber):
    """HTTP接口探测器，按状态码判断健康，响应过慢时判为Degraded"""

    VALID_METHODS = ['GET', 'POST', 'HEAD', 'OPTIONS']

    def validate(self) -> None:
        url = self.check.target
        if not isinstance(url, str) or not url.startswith(('http://', 'https://')):
            raise self.invalid('target', f"必须是 http(s) URL: {url!r}")

        method = str(self.settings.get('method', 'GET')).upper()
        if method not in self.VALID_METHODS:
            raise self.invalid('method', f"不支持的HTTP方法: {method}")

        for status in self._expected_statuses():
            if not isinstance(status, int) or not 100 <= status <= 599:
                raise self.invalid('expected_status', f"状态码无效: {status!r}")

        degraded_after = self.settings.get('degraded_after_ms')
        if degraded_after is not None and (not isinstance(degraded_after, (int, float)) or degraded_after <= 0):
            raise self.invalid('degraded_after_ms', "必须是正数")

    def _expected_statuses(self) -> List[int]:
        expected = self.settings.get('expected_status', 200)
        return list(expected) if isinstance(expected, (list, tuple)) else [expected]

    async def check_health(self) -> Observation:
        method = str(self.settings.get('method', 'GET')).upper()
        timeout = aiohttp.ClientTimeout(total=self.get_timeout())

        start = time.monotonic()
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, self.check.target,
                                           headers=self.settings.get('headers', {})) as response:
                    status_code = response.status
        except aiohttp.ClientError as e:
            return self.observation(HealthStatus.UNHEALTHY, error_message=f"HTTP请求失败: {e}")
        elapsed_ms = (time.monotonic() - start) * 1000

        if status_code not in self._expected_statuses():
            return self.observation(
                HealthStatus.UNHEALTHY,
                description=f"HTTP状态码 {status_code}",
                error_message=f"期望状态码 {self._expected_statuses()}，实际 {status_code}",
                status_code=status_code
            )

        degraded_after = self.settings.get('degraded_after_ms')
        if degraded_after is not None and elapsed_ms > degraded_after:
            return self.observation(
                HealthStatus.DEGRADED,
                description=f"响应时间 {elapsed_ms:.0f}ms 超过阈值 {degraded_after}ms",
                status_code=status_code
            )

        return self.observation(HealthStatus.HEALTHY, description=f"HTTP状态码 {status_code}",
                                status_code=status_code)
