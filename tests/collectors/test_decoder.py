"""Tests for history row decoding."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from gridwatch.collectors import decoder

KYIV = ZoneInfo("Europe/Kyiv")


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2026-01-29T10:00:00Z", datetime(2026, 1, 29, 10, 0, tzinfo=timezone.utc)),
        ("2026-01-29T12:00:00+02:00", datetime(2026, 1, 29, 10, 0, tzinfo=timezone.utc)),
        # Zone-less values are provider-local (Kyiv is UTC+2 in winter)
        ("2026-01-29T12:00:00", datetime(2026, 1, 29, 10, 0, tzinfo=timezone.utc)),
        ("2026-01-29 12:00:00", datetime(2026, 1, 29, 10, 0, tzinfo=timezone.utc)),
        ("  2026-07-01 12:00:00 ", datetime(2026, 7, 1, 9, 0, tzinfo=timezone.utc)),
    ],
)
def test_parse_timestamp_formats(value, expected):
    assert decoder.parse_timestamp(value, KYIV) == expected


@pytest.mark.parametrize("value", ["", "   ", None, 1738144800, "yesterday", "29/01/2026 10:00"])
def test_parse_timestamp_rejects(value):
    assert decoder.parse_timestamp(value, KYIV) is None


def test_strategies_decline_other_formats():
    assert decoder.parse_iso_with_zone("2026-01-29T10:00:00", KYIV) is None
    assert decoder.parse_iso_naive("2026-01-29 10:00:00", KYIV) is None
    assert decoder.parse_iso_naive("2026-01-29T10:00:00Z", KYIV) is None
    assert decoder.parse_space_separated("2026-01-29T10:00:00", KYIV) is None


@pytest.mark.parametrize(
    "value, expected",
    [(2300, 2300.0), ("2300", 2300.0), (0, 0.0), (None, 0.0), ("", 0.0), ("n/a", None), ([1], None)],
)
def test_parse_voltage(value, expected):
    assert decoder.parse_voltage(value) == expected


def test_decode_history_record():
    on = decoder.decode_history_record({"time": "2026-01-29 12:00:00", "vacr": 2301}, KYIV)
    off = decoder.decode_history_record({"time": "2026-01-29 12:01:00", "vacr": 0}, KYIV)
    missing = decoder.decode_history_record({"time": "2026-01-29 12:02:00"}, KYIV)

    assert on.has_electricity is True
    assert on.timestamp == datetime(2026, 1, 29, 10, 0, tzinfo=timezone.utc)
    assert off.has_electricity is False
    assert missing.has_electricity is False


def test_decode_history_record_bad_time_uses_now(caplog):
    before = datetime.now(timezone.utc)

    sample = decoder.decode_history_record({"time": "garbage", "vacr": 2300}, KYIV)

    assert sample.has_electricity is True
    assert sample.timestamp >= before
    assert "Undecodable history timestamp" in caplog.text


def test_decode_page_skips_bad_rows():
    rows = [
        {"time": "2026-01-29 12:00:00", "vacr": 2300},
        "not a row",
        {"time": "2026-01-29 12:01:00", "vacr": "broken"},
        {"time": "2026-01-29 12:02:00", "vacr": 0},
    ]

    samples = decoder.decode_page(rows, KYIV)

    assert [s.has_electricity for s in samples] == [True, False]
