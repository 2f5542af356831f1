"""Decoding of raw Luxpower history rows into samples.

The history endpoint is inconsistent about timestamp formatting. Rows have
been seen with:
    2026-01-29T10:00:00Z          (ISO-8601 with zone)
    2026-01-29T10:00:00           (ISO-8601, provider-local)
    2026-01-29 10:00:00           (space separated, provider-local)
"""

import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Mapping

from ..models import Sample

logger = logging.getLogger(__name__)

VOLTAGE_FIELD = "vacr"
TIME_FIELD = "time"


def parse_iso_with_zone(value: str, tz: tzinfo) -> datetime | None:
    """Parse ISO-8601 carrying 'Z' or an explicit offset."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed


def parse_iso_naive(value: str, tz: tzinfo) -> datetime | None:
    """Parse zone-less ISO-8601 as provider-local time."""
    if "T" not in value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        return None
    return parsed.replace(tzinfo=tz)


def parse_space_separated(value: str, tz: tzinfo) -> datetime | None:
    """Parse legacy 'YYYY-MM-DD HH:MM:SS' as provider-local time."""
    if " " not in value.strip():
        return None
    return parse_iso_naive(value.strip().replace(" ", "T", 1), tz)


PARSE_STRATEGIES: tuple[Callable[[str, tzinfo], datetime | None], ...] = (
    parse_iso_with_zone,
    parse_iso_naive,
    parse_space_separated,
)


def parse_timestamp(value: Any, tz: tzinfo) -> datetime | None:
    """Try each parse strategy in order. Returns a UTC datetime or None."""
    if not isinstance(value, str) or not value.strip():
        return None
    for strategy in PARSE_STRATEGIES:
        parsed = strategy(value.strip(), tz)
        if parsed is not None:
            return parsed.astimezone(timezone.utc)
    return None


def parse_voltage(value: Any) -> float | None:
    """Grid voltage as a float. Missing or empty counts as 0."""
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def decode_history_record(record: Any, tz: tzinfo) -> Sample | None:
    """Turn one upstream history row into a Sample.

    Returns None when the row cannot be decoded; callers skip it.
    """
    if not isinstance(record, Mapping):
        logger.debug("Skipping non-mapping history row: %r", record)
        return None

    voltage = parse_voltage(record.get(VOLTAGE_FIELD))
    if voltage is None:
        logger.debug("Skipping history row with bad voltage: %r", record.get(VOLTAGE_FIELD))
        return None

    raw_time = record.get(TIME_FIELD)
    timestamp = parse_timestamp(raw_time, tz)
    if timestamp is None:
        timestamp = datetime.now(timezone.utc)
        logger.warning("Undecodable history timestamp %r, using current time", raw_time)

    return Sample(timestamp=timestamp, has_electricity=voltage > 0)


def decode_page(rows: list[Any], tz: tzinfo) -> list[Sample]:
    """Decode a page of history rows, skipping undecodable ones."""
    samples = []
    for row in rows:
        sample = decode_history_record(row, tz)
        if sample is not None:
            samples.append(sample)
    return samples
