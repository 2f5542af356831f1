"""Data models for grid samples, timelines and derived statistics."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any


@dataclass(frozen=True)
class Sample:
    """A single grid-state observation.

    Timestamps are timezone-aware and normalised to UTC.
    """

    timestamp: datetime
    has_electricity: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "hasElectricity": self.has_electricity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Sample":
        has_electricity = data["hasElectricity"]
        if not isinstance(has_electricity, bool):
            raise ValueError(f"hasElectricity must be a boolean, got {has_electricity!r}")
        timestamp = datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            timestamp=timestamp.astimezone(timezone.utc),
            has_electricity=has_electricity,
        )


@dataclass
class TimeRange:
    """Time bounds of a timeline, extended to 'now'."""

    min_time: datetime
    max_time: datetime

    @property
    def span(self) -> timedelta:
        return self.max_time - self.min_time


@dataclass
class StatsSnapshot:
    """Duration-weighted on/off totals for a timeline."""

    on_time: timedelta
    off_time: timedelta
    on_percent: str
    off_percent: str


@dataclass
class GridStatus:
    """Live grid status derived from an inverter runtime reply."""

    has_electricity: bool
    grid_power: float  # W, positive = export to grid, negative = import
    grid_voltage: float
    grid_frequency: float
    timestamp: datetime
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class StatusRecord:
    """Persisted live status, survives restarts."""

    current_status: bool | None
    status_change_time: datetime | None
    total_on_time: timedelta
    total_off_time: timedelta
    session_start_time: datetime
