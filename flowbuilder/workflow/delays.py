""" Delay duration arithmetic for delay nodes. """

from datetime import datetime, timedelta
from typing import Dict

from .models import DelayData

UNIT_MILLIS: Dict[str, int] = {
    "minutes": 60_000,
    "hours": 3_600_000,
    "days": 86_400_000,
}


def delay_millis(data: DelayData, now: datetime) -> int:
    """
    Milliseconds to wait before the node after a delay may run.

    Absolute delays in the past yield 0 so execution continues immediately.
    """
    if data.mode == "absolute":
        if data.absolute_time is None:
            return 0
        remaining = (data.absolute_time - now) / timedelta(milliseconds=1)
        return max(0, int(remaining))
    if data.mode == "relative":
        unit = UNIT_MILLIS.get(data.relative_unit or "")
        if unit is None or not data.relative_value:
            return 0
        return max(0, int(data.relative_value * unit))
    return 0


def resume_time(data: DelayData, now: datetime) -> datetime:
    return now + timedelta(milliseconds=delay_millis(data, now))


def describe_delay(data: DelayData) -> str:
    if data.mode == "absolute":
        return f"until {data.absolute_time.isoformat() if data.absolute_time else 'unset'}"
    value = data.relative_value
    if value is not None and float(value).is_integer():
        value = int(value)
    return f"for {value} {data.relative_unit}"
