"""Time helpers shared by the strategies, queue builder and session runner."""

import math
from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def add_minutes(moment: datetime, minutes: int) -> datetime:
    return moment + timedelta(minutes=minutes)


def add_days(moment: datetime, days: int) -> datetime:
    return moment + timedelta(days=days)


def end_of_day(moment: datetime) -> datetime:
    """Last representable instant of ``moment``'s calendar day, in its own timezone."""
    return moment.replace(hour=23, minute=59, second=59, microsecond=999999)


def round_half_up(value: float) -> int:
    # round() uses banker's rounding; intervals must round 7.5 -> 8
    return int(math.floor(value + 0.5))
