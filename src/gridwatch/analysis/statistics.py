"""Duration-weighted on/off statistics."""

from datetime import datetime, timedelta, timezone

from ..models import Sample, StatsSnapshot


def format_percent(part: timedelta, total: timedelta) -> str:
    if total <= timedelta(0):
        return "0.0"
    return f"{part / total * 100:.1f}"


def calculate(
    timeline: list[Sample], has_synthetic_now: bool = False, now: datetime | None = None
) -> StatsSnapshot:
    """Sum how long the grid was on and off.

    Each interval between consecutive samples is credited to the earlier
    sample's state, and the time from the last real sample to now to the last
    state. A synthetic 'now' point at the end is ignored as an endpoint.
    """
    now = now or datetime.now(timezone.utc)
    points = timeline[:-1] if has_synthetic_now and timeline else timeline

    on_time = timedelta(0)
    off_time = timedelta(0)

    for current, following in zip(points, points[1:]):
        duration = following.timestamp - current.timestamp
        if current.has_electricity:
            on_time += duration
        else:
            off_time += duration

    if points:
        last = points[-1]
        until_now = max(now - last.timestamp, timedelta(0))
        if last.has_electricity:
            on_time += until_now
        else:
            off_time += until_now

    total = on_time + off_time
    return StatsSnapshot(
        on_time=on_time,
        off_time=off_time,
        on_percent=format_percent(on_time, total),
        off_percent=format_percent(off_time, total),
    )
