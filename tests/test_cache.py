"""Tests for the per-day history cache."""

import json
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from gridwatch.cache import DayCache, FileDayStore, MemoryDayStore
from gridwatch.models import Sample

KYIV = ZoneInfo("Europe/Kyiv")
NOW = datetime(2026, 1, 29, 12, 0, tzinfo=timezone.utc)  # 14:00 in Kyiv


def clock():
    return NOW


@pytest.fixture
def store():
    return MemoryDayStore(clock=clock)


@pytest.fixture
def cache(store):
    return DayCache(store, tz=KYIV, clock=clock)


def local(year, month, day, hour, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=KYIV).astimezone(timezone.utc)


def test_today_key_uses_provider_timezone():
    late = datetime(2026, 1, 29, 23, 30, tzinfo=timezone.utc)  # already 01:30 on the 30th in Kyiv
    cache = DayCache(MemoryDayStore(), tz=KYIV, clock=lambda: late)

    assert cache.today_key() == "2026-01-30"


def test_put_compresses_and_get_returns_past_day(cache):
    samples = [Sample(local(2026, 1, 27, 0, m), m < 30) for m in range(60)]

    cache.put("2026-01-27", samples)
    result = cache.get("2026-01-27")

    assert [s.has_electricity for s in result] == [True, False, False]
    assert result[0].timestamp == samples[0].timestamp
    assert result[1].timestamp == samples[30].timestamp
    assert result[-1].timestamp == samples[-1].timestamp


def test_get_past_day_ignores_age(cache, store):
    samples = [Sample(local(2026, 1, 20, 10), True)]
    store.write("2026-01-20", [s.to_dict() for s in samples], modified=NOW - timedelta(days=9))

    assert cache.get("2026-01-20") == samples


def test_get_missing_key_is_miss(cache):
    assert cache.get("2026-01-01") is None


def test_get_today_fresh_and_stale(cache, store):
    payload = [Sample(local(2026, 1, 29, 9), True).to_dict()]

    store.write("2026-01-29", payload, modified=NOW - timedelta(minutes=30))
    assert cache.get("2026-01-29") is not None

    store.write("2026-01-29", payload, modified=NOW - timedelta(hours=2))
    assert cache.get("2026-01-29") is None
    assert cache.get("2026-01-29", max_age_for_today=timedelta(hours=3)) is not None


def test_is_complete_requires_late_sample(cache):
    cache.put("2026-01-27", [Sample(local(2026, 1, 27, 0), True), Sample(local(2026, 1, 27, 22, 59), True)])
    assert cache.is_complete("2026-01-27") is False

    cache.put("2026-01-27", [Sample(local(2026, 1, 27, 0), True), Sample(local(2026, 1, 27, 23, 0), True)])
    assert cache.is_complete("2026-01-27") is True


def test_is_complete_ignores_late_sample_from_another_day(cache):
    cache.put("2026-01-27", [Sample(local(2026, 1, 27, 0), True), Sample(local(2026, 1, 26, 23, 30), False)])

    assert cache.is_complete("2026-01-27") is False


def test_today_is_never_complete(cache):
    cache.put("2026-01-29", [Sample(local(2026, 1, 29, 23, 30), True)])

    assert cache.is_complete("2026-01-29") is False


def test_is_complete_missing_key(cache):
    assert cache.is_complete("2026-01-15") is False


def test_evict_older_than(cache, store):
    for key in ["2025-12-01", "2025-12-30", "2026-01-10", "2026-01-29", "not-a-date"]:
        store.write(key, [])

    removed = cache.evict_older_than(days=30)

    assert removed == 1
    assert store.keys() == ["2025-12-30", "2026-01-10", "2026-01-29", "not-a-date"]


def test_file_store_roundtrip(tmp_path):
    cache = DayCache(FileDayStore(tmp_path), tz=KYIV, clock=clock)
    samples = [Sample(local(2026, 1, 28, 8), True), Sample(local(2026, 1, 28, 23, 15), False)]

    cache.put("2026-01-28", samples)

    assert (tmp_path / "2026-01-28.json").exists()
    assert list(tmp_path.glob("*.tmp")) == []
    assert cache.get("2026-01-28") == samples
    assert cache.is_complete("2026-01-28") is True

    stored = json.loads((tmp_path / "2026-01-28.json").read_text())
    assert stored[0] == {"timestamp": samples[0].timestamp.isoformat(), "hasElectricity": True}


def test_file_store_corrupt_bucket_is_miss(tmp_path):
    (tmp_path / "2026-01-28.json").write_text("{not json")
    (tmp_path / "2026-01-27.json").write_text(json.dumps({"rows": []}))
    cache = DayCache(FileDayStore(tmp_path), tz=KYIV, clock=clock)

    assert cache.get("2026-01-28") is None
    assert cache.get("2026-01-27") is None
    assert cache.is_complete("2026-01-28") is False


def test_file_store_evicts_files(tmp_path):
    store = FileDayStore(tmp_path)
    store.write("2025-11-01", [])
    store.write("2026-01-28", [])
    cache = DayCache(store, tz=KYIV, clock=clock)

    assert cache.evict_older_than(days=30) == 1
    assert store.keys() == ["2026-01-28"]


def test_unusable_cache_dir_degrades_to_uncached(tmp_path):
    """A cache directory that cannot be created means misses and no-op writes."""
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    cache = DayCache(FileDayStore(blocker / "cache"), tz=KYIV, clock=clock)

    cache.put("2026-01-28", [Sample(local(2026, 1, 28, 8), True)])

    assert cache.get("2026-01-28") is None
    assert cache.is_complete("2026-01-28") is False
    assert cache.evict_older_than(days=30) == 0


@pytest.mark.parametrize("flag", ["false", 0, None])
def test_non_boolean_state_is_miss(cache, store, flag):
    store.write("2026-01-27", [{"timestamp": "2026-01-27T10:00:00+00:00", "hasElectricity": flag}])

    assert cache.get("2026-01-27") is None
    assert cache.is_complete("2026-01-27") is False
