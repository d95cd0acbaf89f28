try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import threading

import pytest

from app.services.ttl_cache import TTLCache


def test_entry_is_readable_until_its_ttl_elapses(clock) -> None:
    cache: TTLCache[str] = TTLCache(clock=clock)
    cache.set("key", "value", 60)

    clock.advance(seconds=59)
    assert cache.get("key") == "value"

    clock.advance(seconds=1)
    assert cache.get("key") is None
    assert len(cache) == 0


def test_entries_expire_independently(clock) -> None:
    cache: TTLCache[int] = TTLCache(clock=clock)
    cache.set("short", 1, 10)
    cache.set("long", 2, 100)

    clock.advance(seconds=30)

    assert "short" not in cache
    assert "long" in cache


def test_pop_returns_value_once(clock) -> None:
    cache: TTLCache[str] = TTLCache(clock=clock)
    cache.set("key", "value", 60)

    assert cache.pop("key") == "value"
    assert cache.pop("key") is None


def test_pop_of_expired_entry_returns_none(clock) -> None:
    cache: TTLCache[str] = TTLCache(clock=clock)
    cache.set("key", "value", 5)
    clock.advance(seconds=6)

    assert cache.pop("key") is None


def test_delete_reports_whether_an_entry_was_removed(clock) -> None:
    cache: TTLCache[str] = TTLCache(clock=clock)
    cache.set("key", "value", 60)

    assert cache.delete("key") is True
    assert cache.delete("key") is False


def test_purge_expired_drops_only_stale_entries(clock) -> None:
    cache: TTLCache[str] = TTLCache(clock=clock)
    cache.set("a", "1", 10)
    cache.set("b", "2", 10)
    cache.set("c", "3", 1000)
    clock.advance(seconds=11)

    assert cache.purge_expired() == 2
    assert len(cache) == 1


def test_max_entries_evicts_soonest_expiring(clock) -> None:
    cache: TTLCache[str] = TTLCache(clock=clock, max_entries=2)
    cache.set("soon", "1", 10)
    cache.set("later", "2", 100)
    cache.set("new", "3", 50)

    assert "soon" not in cache
    assert "later" in cache
    assert "new" in cache


def test_set_drops_entries_that_were_never_read_again(clock) -> None:
    cache: TTLCache[int] = TTLCache(clock=clock)
    for index in range(200):
        cache.set(f"key-{index}", index, 10)
    cache.set("survivor", 0, 1000)

    clock.advance(seconds=11)
    cache.set("fresh", 1, 10)

    assert len(cache) == 2
    assert "survivor" in cache


def test_overwritten_key_keeps_its_latest_expiry(clock) -> None:
    cache: TTLCache[str] = TTLCache(clock=clock)
    cache.set("key", "old", 10)
    cache.set("key", "new", 100)

    clock.advance(seconds=11)
    cache.set("other", "value", 10)

    assert cache.get("key") == "new"


def test_churn_on_one_key_stays_bounded(clock) -> None:
    cache: TTLCache[int] = TTLCache(clock=clock, max_entries=1)
    for index in range(1000):
        cache.set("key", index, 3600)
        cache.delete("key")

    assert len(cache) == 0
    assert len(cache._expiries) <= 67


def test_max_entries_must_be_positive(clock) -> None:
    with pytest.raises(ValueError):
        TTLCache(clock=clock, max_entries=0)


def test_non_positive_ttl_is_rejected(clock) -> None:
    cache: TTLCache[str] = TTLCache(clock=clock)

    with pytest.raises(ValueError):
        cache.set("key", "value", 0)


def test_concurrent_pop_hands_out_a_value_once(clock) -> None:
    cache: TTLCache[str] = TTLCache(clock=clock)
    cache.set("state", "value", 60)
    results: list[str | None] = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        results.append(cache.pop("state"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count("value") == 1
    assert results.count(None) == 7
