# matecloud/utils/dates.py
import math
from datetime import datetime, timedelta, timezone

DAY_SECONDS = 24 * 60 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite devolve datetimes "naive"; tratamos como UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def plan_window(duration_days: int, start: datetime | None = None) -> tuple[datetime, datetime]:
    start = start or utcnow()
    return start, start + timedelta(days=duration_days)


def days_remaining(until: datetime, now: datetime | None = None) -> int:
    """Dias restantes arredondados para cima; 0 quando já venceu."""
    now = now or utcnow()
    seconds = (as_utc(until) - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / DAY_SECONDS)
