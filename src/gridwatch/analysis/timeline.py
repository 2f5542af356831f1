"""Timeline processing for charts and statistics."""

from datetime import datetime, timezone

from ..models import Sample, TimeRange
from .compression import compress


def time_range(timeline: list[Sample], now: datetime | None = None) -> TimeRange:
    """Time bounds of a timeline, extended to now.

    The upper bound is never earlier than now, so ongoing state is covered
    even when the last poll is old.
    """
    if not timeline:
        raise ValueError("Cannot compute the time range of an empty timeline")

    now = now or datetime.now(timezone.utc)
    timestamps = [s.timestamp for s in timeline]
    return TimeRange(min_time=min(timestamps), max_time=max(max(timestamps), now))


def merge_and_compress(timeline: list[Sample]) -> list[Sample]:
    """Sort and reduce a timeline assembled from several sources."""
    return compress(timeline)


def with_synthetic_now_point(
    timeline: list[Sample], now: datetime | None = None
) -> tuple[list[Sample], bool]:
    """Carry the last known state forward to now.

    Returns the (possibly extended) timeline and whether a synthetic point was
    appended. The input list is not modified.
    """
    if not timeline:
        return timeline, False

    now = now or datetime.now(timezone.utc)
    last = timeline[-1]
    if now > last.timestamp:
        return [*timeline, Sample(timestamp=now, has_electricity=last.has_electricity)], True
    return timeline, False
