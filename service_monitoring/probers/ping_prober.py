"""Ping探测器"""

import asyncio
import ipaddress
import math
import re
import sys
from typing import List, Tuple

from .base import BaseProber
from ..models.health_check import HealthStatus, Observation
from ..services.registry import register_prober

_HOSTNAME_PATTERN = re.compile(r'^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.(?!-)[A-Za-z0-9-]{1,63}(?<!-))*\.?$')


def is_valid_host(host: str) -> bool:
    """主机名或IP地址是否合法"""
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        return bool(_HOSTNAME_PATTERN.match(host))


def build_ping_command(host: str, timeout: float) -> List[str]:
    """按平台构造发送单个回显请求的 ping 命令"""
    if sys.platform == 'win32':
        return ['ping', '-n', '1', '-w', str(int(timeout * 1000)), host]
    seconds = str(max(1, math.ceil(timeout)))
    if sys.platform == 'darwin':
        return ['ping', '-c', '1', '-t', seconds, host]
    return ['ping', '-c', '1', '-W', seconds, host]


@register_prober('ping')
class PingProber(BaseProber):
    """
    Ping探测器

    target 可以是逗号分隔的多个主机，任一主机不可达即为Unhealthy。
    """

    @property
    def hosts(self) -> List[str]:
        return [h.strip() for h in (self.check.target or '').split(',') if h.strip()]

    def validate(self) -> None:
        hosts = self.hosts
        if not hosts:
            raise self.invalid('target', "缺少Ping主机地址")
        for host in hosts:
            if not is_valid_host(host):
                raise self.invalid('target', f"主机地址无效: {host}")

        ping_timeout = self.settings.get('ping_timeout', 1)
        if isinstance(ping_timeout, bool) or not isinstance(ping_timeout, (int, float)) or ping_timeout <= 0:
            raise self.invalid('ping_timeout', f"必须大于0: {ping_timeout}")

    async def _ping(self, host: str) -> Tuple[bool, str]:
        command = build_ping_command(host, self.settings.get('ping_timeout', 1))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL
            )
            returncode = await process.wait()
        except OSError as e:
            return False, f"{host} 执行ping失败: {e}"

        if returncode == 0:
            return True, f"{host} 响应正常"
        return False, f"{host} 无响应 (退出码 {returncode})"

    async def check_health(self) -> Observation:
        hosts = self.hosts
        results = await asyncio.gather(*(self._ping(host) for host in hosts))
        failures = [message for ok, message in results if not ok]

        if failures:
            self.logger.debug(f"Ping失败: {failures}")
            return self.observation(
                HealthStatus.UNHEALTHY,
                error_message=f"{len(failures)}/{len(hosts)} 个主机Ping失败: {'; '.join(failures)}")
        return self.observation(HealthStatus.HEALTHY, description=f"全部 {len(hosts)} 个主机响应正常")
