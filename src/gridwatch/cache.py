"""Per-day history cache.

Each provider-local calendar day is stored as a compressed list of samples
under its date key (YYYY-MM-DD). The cache is an optimisation only: every
read or write failure is logged and treated as a miss or a no-op.
"""

import json
import logging
import os
import tempfile
from datetime import date, datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Any, Callable, Protocol

from .analysis.compression import compress, sort_samples
from .models import Sample

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".local" / "share" / "gridwatch" / "history-cache"
LATE_HOUR = 23


class DayStore(Protocol):
    """Key-value storage for day buckets."""

    def read(self, key: str) -> Any:
        """Return the decoded JSON payload, or None when absent."""
        ...

    def write(self, key: str, payload: list[dict[str, Any]]) -> None: ...

    def modified_at(self, key: str) -> datetime | None: ...

    def keys(self) -> list[str]: ...

    def delete(self, key: str) -> None: ...


class FileDayStore:
    """One JSON file per date key in a directory."""

    def __init__(self, cache_dir: Path | None = None):
        self.cache_dir = Path(cache_dir or DEFAULT_CACHE_DIR)

    def path_for(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def read(self, key: str) -> Any:
        path = self.path_for(key)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def write(self, key: str, payload: list[dict[str, Any]]) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        # Atomic: temp file in the same directory, then rename
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_name, self.path_for(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def modified_at(self, key: str) -> datetime | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

    def keys(self) -> list[str]:
        if not self.cache_dir.is_dir():
            return []
        return sorted(p.stem for p in self.cache_dir.glob("*.json"))

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


class MemoryDayStore:
    """In-memory store, used for tests and throwaway runs."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._data: dict[str, tuple[list[dict[str, Any]], datetime]] = {}

    def read(self, key: str) -> Any:
        entry = self._data.get(key)
        return json.loads(json.dumps(entry[0])) if entry else None

    def write(self, key: str, payload: list[dict[str, Any]], modified: datetime | None = None) -> None:
        self._data[key] = (json.loads(json.dumps(payload)), modified or self._clock())

    def modified_at(self, key: str) -> datetime | None:
        entry = self._data.get(key)
        return entry[1] if entry else None

    def keys(self) -> list[str]:
        return sorted(self._data)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


def date_key(day: date) -> str:
    return day.isoformat()


class DayCache:
    """Cache of compressed day buckets with a completeness heuristic."""

    def __init__(
        self,
        store: DayStore | None = None,
        tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store if store is not None else FileDayStore()
        self.tz = tz
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def today_key(self) -> str:
        return date_key(self._clock().astimezone(self.tz).date())

    def _load(self, key: str) -> list[Sample] | None:
        data = self.store.read(key)
        if data is None:
            return None
        if not isinstance(data, list):
            raise ValueError(f"cache payload for {key} is not a list")
        return sort_samples([Sample.from_dict(item) for item in data])

    def get(self, key: str, max_age_for_today: timedelta = timedelta(hours=1)) -> list[Sample] | None:
        """Return the cached bucket for a day, or None on a miss.

        Today's bucket is still accumulating upstream, so it counts as a miss
        once older than max_age_for_today.
        """
        try:
            if key == self.today_key():
                modified = self.store.modified_at(key)
                if modified is None:
                    return None
                if self._clock() - modified >= max_age_for_today:
                    logger.debug("Cache for %s is stale", key)
                    return None
            return self._load(key)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Error reading cache for %s: %s", key, e)
            return None

    def is_complete(self, key: str) -> bool:
        """Whether a cached past day looks fully ingested.

        Upstream pagination sometimes truncates a day before midnight, so a
        past day only counts as complete when it has a sample at 23:00 or later.
        Today is never complete.
        """
        if key == self.today_key():
            return False
        try:
            samples = self._load(key)
            if not samples:
                return False
            day = date.fromisoformat(key)
            for sample in samples:
                local = sample.timestamp.astimezone(self.tz)
                if local.date() == day and local.hour >= LATE_HOUR:
                    return True
            return False
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Error checking cache completeness for %s: %s", key, e)
            return False

    def put(self, key: str, timeline: list[Sample]) -> None:
        """Compress and store a day bucket, replacing any previous one."""
        try:
            compressed = compress(timeline)
            self.store.write(key, [sample.to_dict() for sample in compressed])
            if len(compressed) < len(timeline):
                logger.debug(
                    "Filtered %d points to %d change points for %s", len(timeline), len(compressed), key
                )
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Error saving cache for %s: %s", key, e)

    def evict_older_than(self, days: int = 30) -> int:
        """Delete buckets older than the retention horizon. Returns count removed."""
        removed = 0
        try:
            cutoff = self._clock().astimezone(self.tz).date() - timedelta(days=days)
            for key in self.store.keys():
                try:
                    day = date.fromisoformat(key)
                except ValueError:
                    continue
                if day < cutoff:
                    self.store.delete(key)
                    removed += 1
                    logger.debug("Deleted old cache bucket: %s", key)
        except OSError as e:
            logger.warning("Error clearing old cache: %s", e)
        return removed
