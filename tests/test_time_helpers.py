try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone

import pytest

from app.utils.time import expires_at_from, is_expired, seconds_until_next

NOON = datetime(2024, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


def test_seconds_until_next_day_counts_to_midnight_utc() -> None:
    assert seconds_until_next("day", now=NOON) == 12 * 3600


def test_seconds_until_next_day_uses_utc_for_offset_times() -> None:
    local = NOON.astimezone(timezone(timedelta(hours=5)))

    assert seconds_until_next("day", now=local) == 12 * 3600


def test_seconds_until_next_hour_and_minute() -> None:
    now = NOON.replace(minute=59, second=30)

    assert seconds_until_next("hour", now=now) == 30
    assert seconds_until_next("minute", now=now) == 30


def test_seconds_until_next_is_never_zero() -> None:
    just_before = datetime(2024, 3, 14, 23, 59, 59, 999000, tzinfo=timezone.utc)

    assert seconds_until_next("day", now=just_before) == 1


def test_unknown_unit_is_rejected() -> None:
    with pytest.raises(ValueError):
        seconds_until_next("week", now=NOON)


def test_expires_at_from_is_absolute() -> None:
    assert expires_at_from(3600, now=NOON) == NOON + timedelta(hours=1)


def test_is_expired_is_strict() -> None:
    assert not is_expired(NOON, now=NOON)
    assert is_expired(NOON, now=NOON + timedelta(microseconds=1))


def test_is_expired_with_leeway_refreshes_early() -> None:
    expires_at = NOON + timedelta(seconds=20)

    assert not is_expired(expires_at, now=NOON)
    assert is_expired(expires_at, now=NOON, leeway_seconds=30)


def test_naive_timestamps_are_treated_as_utc() -> None:
    assert is_expired(NOON.replace(tzinfo=None), now=NOON + timedelta(seconds=1))
