"""Persisted live grid status.

Keeps the last observed grid state, when it changed and the accumulated
on/off totals across restarts, plus a log of every observed transition.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

from .db import get_connection, init_db
from .models import Sample, StatusRecord


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def load_status(db_path: Path | None = None) -> StatusRecord:
    """Load the persisted status, initialising it on first use."""
    init_db(db_path)
    with get_connection(db_path) as conn:
        row = conn.execute("SELECT * FROM grid_status WHERE id = 1").fetchone()
        if row is None:
            now = datetime.now(timezone.utc)
            conn.execute(
                "INSERT INTO grid_status (id, session_start_time) VALUES (1, ?)",
                (now.isoformat(),),
            )
            conn.commit()
            return StatusRecord(
                current_status=None,
                status_change_time=None,
                total_on_time=timedelta(0),
                total_off_time=timedelta(0),
                session_start_time=now,
            )

        return StatusRecord(
            current_status=None if row["current_status"] is None else bool(row["current_status"]),
            status_change_time=_parse_time(row["status_change_time"]),
            total_on_time=timedelta(seconds=row["total_on_seconds"]),
            total_off_time=timedelta(seconds=row["total_off_seconds"]),
            session_start_time=_parse_time(row["session_start_time"]),
        )


def update_status(
    new_status: bool, change_time: datetime, db_path: Path | None = None
) -> StatusRecord | None:
    """Record an observed grid state.

    Returns the previous record when the state changed (or was unknown),
    None when nothing changed. A flip credits the time spent in the previous
    state to its total and logs a transition event.
    """
    change_time = change_time.astimezone(timezone.utc)
    previous = load_status(db_path)
    if previous.current_status == new_status:
        return None

    on_time = previous.total_on_time
    off_time = previous.total_off_time
    elapsed = None
    if previous.current_status is not None and previous.status_change_time is not None:
        elapsed = max(change_time - previous.status_change_time, timedelta(0))
        if previous.current_status:
            on_time += elapsed
        else:
            off_time += elapsed

    with get_connection(db_path) as conn:
        conn.execute(
            """UPDATE grid_status
               SET current_status = ?, status_change_time = ?,
                   total_on_seconds = ?, total_off_seconds = ?
               WHERE id = 1""",
            (
                int(new_status),
                change_time.isoformat(),
                on_time.total_seconds(),
                off_time.total_seconds(),
            ),
        )
        if previous.current_status is not None:
            conn.execute(
                """INSERT OR IGNORE INTO grid_events
                   (timestamp, has_electricity, previous_duration_seconds)
                   VALUES (?, ?, ?)""",
                (
                    change_time.isoformat(),
                    int(new_status),
                    elapsed.total_seconds() if elapsed is not None else None,
                ),
            )
        conn.commit()

    return previous


def get_events(start: datetime, end: datetime, db_path: Path | None = None) -> list[Sample]:
    """Get observed transitions within a time period as samples."""
    init_db(db_path)
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT timestamp, has_electricity
               FROM grid_events
               WHERE timestamp >= ? AND timestamp <= ?
               ORDER BY timestamp""",
            (start.astimezone(timezone.utc).isoformat(), end.astimezone(timezone.utc).isoformat()),
        ).fetchall()

        return [
            Sample(
                timestamp=_parse_time(row["timestamp"]),
                has_electricity=bool(row["has_electricity"]),
            )
            for row in rows
        ]
