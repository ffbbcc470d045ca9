"""时间工具: 时长解析、时刻解析、告警冷却与告警时间窗判断"""

import re
from datetime import datetime, time, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

ONE_DAY = timedelta(days=1)

_DURATION_PATTERN = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)\s*$', re.IGNORECASE)
_UNIT_SECONDS = {'ms': 0.001, 's': 1, 'm': 60, 'h': 3600, 'd': 86400}


def parse_duration(value: Any) -> timedelta:
    """
    解析时长配置

    支持整数/浮点数（秒）、"HH:MM[:SS]" 以及 "30s"、"5m"、"1h" 形式。

    Args:
        value: 配置值

    Returns:
        timedelta: 时长

    Raises:
        ValueError: 格式无效或为负数
    """
    if isinstance(value, timedelta):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"无效的时长: {value!r}")
    elif isinstance(value, (int, float)):
        result = timedelta(seconds=value)
    elif isinstance(value, str):
        match = _DURATION_PATTERN.match(value)
        if match:
            amount, unit = match.groups()
            result = timedelta(seconds=float(amount) * _UNIT_SECONDS[unit.lower()])
        elif ':' in value:
            parts = value.strip().split(':')
            if len(parts) not in (2, 3) or not all(p.strip().isdigit() for p in parts):
                raise ValueError(f"无效的时长: {value!r}")
            hours, minutes = int(parts[0]), int(parts[1])
            seconds = int(parts[2]) if len(parts) == 3 else 0
            result = timedelta(hours=hours, minutes=minutes, seconds=seconds)
        elif value.strip().isdigit():
            result = timedelta(seconds=int(value))
        else:
            raise ValueError(f"无效的时长: {value!r}")
    else:
        raise ValueError(f"无效的时长: {value!r}")

    if result < timedelta(0):
        raise ValueError(f"时长不能为负数: {value!r}")
    return result


def parse_time_of_day(value: Any) -> time:
    """
    解析一天中的时刻 "HH:MM" 或 "HH:MM:SS"

    Raises:
        ValueError: 格式无效
    """
    if isinstance(value, time):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        # YAML 1.1 会把 08:30 这样的值解析成六十进制整数（秒数）
        if not 0 <= value < 86400:
            raise ValueError(f"无效的时刻: {value!r}")
        return time(value // 3600, (value % 3600) // 60, value % 60)
    if isinstance(value, str):
        try:
            return time.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValueError(f"无效的时刻: {value!r}")


def resolve_timezone(name: Optional[str]):
    """
    解析IANA时区名称，None表示UTC

    Raises:
        ValueError: 未知时区
    """
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"未知的时区: {name}") from e


def ensure_utc(value: datetime) -> datetime:
    """不带时区的时间视为UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def time_of_day(value: Optional[datetime], tz_name: Optional[str] = None) -> timedelta:
    """
    获取时间在指定时区下的当日偏移量

    Args:
        value: 时间点，None表示零值（当日偏移为0）
        tz_name: 时区名称，None表示UTC

    Returns:
        timedelta: 自当日零点起的偏移
    """
    if value is None:
        return timedelta(0)
    local = ensure_utc(value).astimezone(resolve_timezone(tz_name))
    return timedelta(hours=local.hour, minutes=local.minute,
                     seconds=local.second, microseconds=local.microsecond)


def time_to_offset(value: time) -> timedelta:
    return timedelta(hours=value.hour, minutes=value.minute,
                     seconds=value.second, microseconds=value.microsecond)


def is_cooldown_elapsed(last_alert: timedelta, alert_every: timedelta,
                        current: timedelta) -> bool:
    """
    判断距上次告警是否已过冷却时间（只比较当日时刻）

    下次可告警时刻超过24点时回绕到次日:
    当前时刻位于 [回绕点, 上次告警时刻) 之间视为已过冷却；
    当前时刻仍不早于上次告警时刻说明尚未跨过午夜。

    Args:
        last_alert: 上次告警的当日时刻
        alert_every: 告警间隔
        current: 当前当日时刻

    Returns:
        bool: 是否允许再次告警
    """
    next_alert = last_alert + alert_every

    if next_alert >= ONE_DAY:
        next_alert = timedelta(seconds=next_alert.total_seconds() % ONE_DAY.total_seconds())
        if next_alert <= current < last_alert:
            return True
        if current >= last_alert:
            return False
        return current >= next_alert

    return current >= next_alert


def is_within_window(start: timedelta, stop: timedelta, current: timedelta) -> bool:
    """
    判断当前时刻是否位于告警时间窗 [start, stop) 内

    start == stop 时只在该时刻本身成立；start > stop 表示跨越午夜。
    """
    if start < stop:
        return start <= current < stop
    if start == stop:
        return current == start
    return current >= start or current < stop


def format_timestamp(value: datetime, tz_name: Optional[str] = None) -> str:
    """按指定时区格式化时间，用于告警消息展示"""
    local = ensure_utc(value).astimezone(resolve_timezone(tz_name))
    return local.strftime('%Y-%m-%d %H:%M:%S %Z')
