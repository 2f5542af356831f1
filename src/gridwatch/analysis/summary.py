"""Generate human and machine friendly summaries of a grid timeline."""

from datetime import datetime, timedelta, timezone, tzinfo

from ..models import Sample
from .statistics import calculate
from .timeline import merge_and_compress, time_range, with_synthetic_now_point


def format_duration(duration: timedelta) -> str:
    """Format a duration as e.g. '1d 2h 5m'. Seconds only show when nothing larger does."""
    total_seconds = max(int(duration.total_seconds()), 0)
    days, remainder = divmod(total_seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds and not parts:
        parts.append(f"{seconds}s")

    return " ".join(parts) if parts else "0s"


def get_outages(timeline: list[Sample], now: datetime | None = None) -> list[dict]:
    """List off intervals. An outage still in progress ends at None."""
    now = now or datetime.now(timezone.utc)
    points = merge_and_compress(timeline)
    outages = []
    outage_start = None

    for sample in points:
        if not sample.has_electricity and outage_start is None:
            outage_start = sample.timestamp
        elif sample.has_electricity and outage_start is not None:
            outages.append({
                "start": outage_start,
                "end": sample.timestamp,
                "duration": sample.timestamp - outage_start,
            })
            outage_start = None

    if outage_start is not None:
        outages.append({"start": outage_start, "end": None, "duration": now - outage_start})

    return outages


def build_window_summary(
    timeline: list[Sample], now: datetime | None = None, tz: tzinfo = timezone.utc
) -> dict:
    """Summarise a timeline: bounds, on/off totals, current state and outages."""
    now = now or datetime.now(timezone.utc)
    points = merge_and_compress(timeline)

    if not points:
        return {
            "points": 0,
            "range": None,
            "current": None,
            "on_time": "0s",
            "off_time": "0s",
            "on_percent": "0.0",
            "off_percent": "0.0",
            "outages": [],
        }

    extended, injected = with_synthetic_now_point(points, now)
    stats = calculate(extended, injected, now)
    bounds = time_range(points, now)

    return {
        "points": len(points),
        "range": {
            "start": bounds.min_time.astimezone(tz).isoformat(),
            "end": bounds.max_time.astimezone(tz).isoformat(),
        },
        "current": "on" if points[-1].has_electricity else "off",
        "on_time": format_duration(stats.on_time),
        "off_time": format_duration(stats.off_time),
        "on_percent": stats.on_percent,
        "off_percent": stats.off_percent,
        "outages": [
            {
                "start": o["start"].astimezone(tz).isoformat(),
                "end": o["end"].astimezone(tz).isoformat() if o["end"] else None,
                "duration": format_duration(o["duration"]),
            }
            for o in get_outages(points, now)
        ],
    }


def format_window_summary_text(summary: dict) -> str:
    """Format a window summary as human-readable text."""
    if not summary["points"]:
        return "No grid data available for this period"

    lines = [
        f"Grid Summary: {summary['range']['start']} to {summary['range']['end']}",
        f"- Current state: {summary['current'].upper()}",
        f"- With electricity: {summary['on_time']} ({summary['on_percent']}%)",
        f"- Without electricity: {summary['off_time']} ({summary['off_percent']}%)",
    ]

    if summary["outages"]:
        lines.append("")
        lines.append("Outages:")
        for outage in summary["outages"]:
            end = outage["end"] or "ongoing"
            lines.append(f"  - {outage['start']} → {end} ({outage['duration']})")
    else:
        lines.append("- Outages: none")

    return "\n".join(lines)
