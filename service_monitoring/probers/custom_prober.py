"""自定义检查与拦截器"""

import inspect
from typing import Callable, Dict, Optional

from .base import BaseProber
from ..models.health_check import HealthStatus, Observation
from ..services.registry import register_prober

# 函数名 -> 检查函数
_custom_checks: Dict[str, Callable] = {}


def register_custom_check(name: str, func: Callable) -> None:
    """
    注册自定义检查函数，供 settings.function 引用

    函数可以是同步或异步的，返回 HealthStatus、bool、状态字符串或 Observation。
    """
    _custom_checks[name] = func


def unregister_custom_check(name: str) -> None:
    _custom_checks.pop(name, None)


@register_prober('custom')
class CustomProber(BaseProber):
    """调用用户提供的检查函数"""

    def _resolve_function(self) -> Optional[Callable]:
        func = self.settings.get('function')
        if isinstance(func, str):
            return _custom_checks.get(func)
        return func

    def validate(self) -> None:
        if self.settings.get('function') is None:
            raise self.invalid('function', "缺少检查函数")
        func = self._resolve_function()
        if func is None:
            raise self.invalid('function', f"未注册的检查函数: {self.settings.get('function')}")
        if not callable(func):
            raise self.invalid('function', "必须是可调用对象")

    async def check_health(self) -> Observation:
        result = self._resolve_function()()
        if inspect.isawaitable(result):
            result = await result

        if isinstance(result, Observation):
            result.check_name = self.name
            return result
        if isinstance(result, bool):
            return self.observation(HealthStatus.HEALTHY if result else HealthStatus.UNHEALTHY)
        return self.observation(HealthStatus.parse(result))


@register_prober('interceptor')
class InterceptorProber(BaseProber):
    """
    拦截器检查本身不执行探测

    它的通知器会评估报告中其他所有条目（排除 excluded_interception_names）。
    """

    def validate(self) -> None:
        excluded = self.check.excluded_interception_names
        if not isinstance(excluded, list) or not all(isinstance(n, str) for n in excluded):
            raise self.invalid('excluded_interception_names', "必须是字符串列表")

    async def check_health(self) -> Optional[Observation]:
        return None
