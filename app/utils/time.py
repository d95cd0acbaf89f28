"""Clock helpers shared by the caches and the credential services."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _start_of_next(unit: str, now: datetime) -> datetime:
    if unit == "minute":
        return now.replace(second=0, microsecond=0) + timedelta(minutes=1)
    if unit == "hour":
        return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    if unit == "day":
        return now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
    raise ValueError(f"Unsupported time unit: {unit!r}")


def seconds_until_next(unit: str = "day", *, now: datetime | None = None) -> int:
    """
    Whole seconds from ``now`` until the start of the next calendar ``unit``.

    Boundaries are computed in UTC. The result is at least one second so a
    value written just before a boundary is still readable once.
    """
    current = _ensure_aware(now or utcnow()).astimezone(timezone.utc)
    remaining = (_start_of_next(unit, current) - current).total_seconds()
    return max(int(remaining), 1)


def expires_at_from(expires_in: int, *, now: datetime | None = None) -> datetime:
    """Convert a provider-supplied lifetime into an absolute UTC timestamp."""
    return _ensure_aware(now or utcnow()) + timedelta(seconds=int(expires_in))


def is_expired(
    expires_at: datetime,
    *,
    now: datetime | None = None,
    leeway_seconds: int = 0,
) -> bool:
    """Strict ``now > expires_at`` check, optionally shifted earlier by a leeway."""
    current = _ensure_aware(now or utcnow())
    return current + timedelta(seconds=leeway_seconds) > _ensure_aware(expires_at)


__all__ = ["Clock", "expires_at_from", "is_expired", "seconds_until_next", "utcnow"]
