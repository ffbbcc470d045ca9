"""
告警规则评估

对每个 (检查, 通道) 对维护一份 RuleState，按观测结果决定是否告警。
评估只涉及内存计算，投递由 DeliveryDispatcher 在锁外完成。
"""

import threading
from datetime import datetime
from typing import Dict, Optional, Tuple, List

from ..models.health_check import HealthStatus, Observation, RuleState, TransportBinding
from ..utils.log_manager import get_logger
from ..utils.time_utils import (
    ensure_utc, is_cooldown_elapsed, is_within_window, time_of_day, time_to_offset
)


class AlertRuleEvaluator:
    """告警规则评估器（无状态，状态由调用方传入）"""

    def __init__(self):
        self.logger = get_logger('evaluator')

    def evaluate(self, rule_state: Optional[RuleState], observation: Optional[Observation],
                 binding: Optional[TransportBinding], now: datetime) -> bool:
        """
        评估一次观测并更新规则状态

        Args:
            rule_state: 该 (检查, 通道) 对的规则状态，会被原地修改
            observation: 本次观测
            binding: 通道绑定配置
            now: 当前时间（UTC）

        Returns:
            bool: 是否需要告警。输入缺失时返回False且不修改状态
        """
        if rule_state is None or observation is None or binding is None:
            self.logger.debug("缺少规则状态、观测或通道绑定，跳过评估")
            return False

        try:
            status = HealthStatus.parse(observation.status)
        except ValueError as e:
            self.logger.warning(f"观测 {observation.check_name} 状态无效，跳过评估: {e}")
            return False

        now = ensure_utc(now)

        # 首次观测时把上次状态视为健康，避免误报
        if rule_state.last_check is None:
            rule_state.last_status = HealthStatus.HEALTHY

        failed = status.is_failed
        last_failed = rule_state.last_status.is_failed

        rule_state.failed_count = rule_state.failed_count + 1 if failed else 0

        alert = False
        if self.is_ok_to_alert(rule_state, binding, now) \
                and rule_state.failed_count >= binding.alert_by_fail_count:
            alert = (
                (failed and last_failed and not binding.alert_once)
                or (failed and last_failed and not rule_state.latest_error_published)
                or (failed and not last_failed)
            )

        if alert:
            rule_state.latest_error_published = True

        # 恢复告警不受时间窗和失败次数限制
        if (not failed and last_failed and binding.alert_on_service_recovered
                and rule_state.latest_error_published):
            alert = True
            rule_state.latest_error_published = False
            self.logger.info(
                f"服务 {rule_state.check_name} 已恢复，通道 {rule_state.transport_name} 发送恢复通知")

        alert = alert or binding.publish_all_results

        rule_state.last_status = status
        rule_state.last_check = now
        if alert:
            rule_state.last_published = now

        self.logger.debug(
            f"评估 {rule_state.check_name}/{rule_state.transport_name}: 状态={status.value}, "
            f"连续失败={rule_state.failed_count}, 告警={alert}")
        return alert

    def is_ok_to_alert(self, rule_state: RuleState, binding: TransportBinding,
                       now: datetime) -> bool:
        """
        判断冷却时间和告警时间窗是否允许告警

        时刻比较在绑定配置的时区下进行，未配置时使用UTC。
        """
        current = time_of_day(now, binding.timezone)
        last_published = time_of_day(rule_state.last_published, binding.timezone)

        cooldown_ok = is_cooldown_elapsed(last_published, binding.alert_every, current)
        window_ok = is_within_window(time_to_offset(binding.start_alerting_on),
                                     time_to_offset(binding.stop_alerting_on),
                                     current)
        return cooldown_ok and window_ok


class RuleStateStore:
    """
    规则状态存储

    以 (检查名称, 通道名称) 为键保存RuleState，每个键一把锁，
    同一个键的读-改-写串行执行，不同键之间互不影响。
    """

    def __init__(self, evaluator: Optional[AlertRuleEvaluator] = None):
        self.evaluator = evaluator or AlertRuleEvaluator()
        self._states: Dict[Tuple[str, str], RuleState] = {}
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self.logger = get_logger('rule_state_store')

    def _get_lock(self, key: Tuple[str, str]) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def get(self, check_name: str, transport_name: str) -> RuleState:
        """获取规则状态，不存在时创建"""
        key = (check_name, transport_name)
        with self._registry_lock:
            state = self._states.get(key)
            if state is None:
                state = RuleState(check_name=check_name, transport_name=transport_name)
                self._states[key] = state
            return state

    def evaluate(self, check_name: str, transport_name: str,
                 observation: Optional[Observation],
                 binding: Optional[TransportBinding], now: datetime) -> bool:
        """
        在该键的锁内评估一次观测

        Returns:
            bool: 是否需要告警
        """
        if observation is None or binding is None:
            return False

        key = (check_name, transport_name)
        state = self.get(check_name, transport_name)
        with self._get_lock(key):
            return self.evaluator.evaluate(state, observation, binding, now)

    def forget(self, check_name: str, transport_name: str) -> bool:
        """移除绑定时删除对应的规则状态"""
        key = (check_name, transport_name)
        with self._registry_lock:
            self._locks.pop(key, None)
            removed = self._states.pop(key, None) is not None
        if removed:
            self.logger.info(f"已移除规则状态: {check_name}/{transport_name}")
        return removed

    def keys(self) -> List[Tuple[str, str]]:
        with self._registry_lock:
            return list(self._states.keys())

    def snapshot(self) -> Dict[str, Dict[str, object]]:
        """导出所有规则状态，用于诊断"""
        with self._registry_lock:
            items = list(self._states.items())
        return {
            f"{check}/{transport}": {
                'last_check': state.last_check.isoformat() if state.last_check else None,
                'last_published': state.last_published.isoformat() if state.last_published else None,
                'last_status': state.last_status.value,
                'failed_count': state.failed_count,
                'latest_error_published': state.latest_error_published,
            }
            for (check, transport), state in items
        }
