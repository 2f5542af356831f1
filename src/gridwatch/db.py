"""Database connection and schema management."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "gridwatch" / "gridwatch.db"

SCHEMA = """
-- Live grid status (single row, id = 1)
CREATE TABLE IF NOT EXISTS grid_status (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    current_status INTEGER,
    status_change_time TEXT,
    total_on_seconds REAL NOT NULL DEFAULT 0,
    total_off_seconds REAL NOT NULL DEFAULT 0,
    session_start_time TEXT NOT NULL
);

-- Observed grid transitions from the live monitor
CREATE TABLE IF NOT EXISTS grid_events (
    id INTEGER PRIMARY KEY,
    timestamp TEXT NOT NULL,
    has_electricity INTEGER NOT NULL,
    previous_duration_seconds REAL,
    UNIQUE(timestamp)
);

CREATE INDEX IF NOT EXISTS idx_grid_events_ts ON grid_events(timestamp);
"""


def get_db_path() -> Path:
    """Get the database path, creating parent directories if needed."""
    db_path = Path(DEFAULT_DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


@contextmanager
def get_connection(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with row factory enabled."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        conn.executescript(SCHEMA)
        conn.commit()


def get_stats(db_path: Path | None = None) -> dict:
    """Get database statistics."""
    with get_connection(db_path) as conn:
        stats = {}

        row = conn.execute(
            "SELECT COUNT(*) as count, MIN(timestamp) as earliest, MAX(timestamp) as latest FROM grid_events"
        ).fetchone()
        stats["grid_events"] = {
            "count": row["count"],
            "earliest": row["earliest"],
            "latest": row["latest"],
        }

        row = conn.execute(
            "SELECT COUNT(*) as count FROM grid_events WHERE has_electricity = 0"
        ).fetchone()
        stats["outages"] = {"count": row["count"]}

        row = conn.execute(
            "SELECT current_status, status_change_time FROM grid_status WHERE id = 1"
        ).fetchone()
        stats["status"] = {
            "current": None if row is None or row["current_status"] is None else bool(row["current_status"]),
            "since": row["status_change_time"] if row else None,
        }

        return stats
