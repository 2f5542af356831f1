"""Live grid monitor.

Polls the inverter runtime endpoint, persists the observed state and reports
transitions to an optional callback (e.g. a notifier).
"""

import asyncio
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Awaitable, Callable

import httpx

from .cache import DayCache
from .collectors.luxpower import LuxpowerClient, LuxpowerError
from .collectors.session import AuthenticationError
from .models import GridStatus, StatusRecord
from .status import update_status

logger = logging.getLogger(__name__)

TransitionCallback = Callable[[GridStatus, StatusRecord], Awaitable[None]]

EVICTION_INTERVAL = timedelta(days=1)


class GridMonitor:
    """Detects grid on/off transitions by polling live status."""

    def __init__(
        self,
        client: LuxpowerClient,
        serial_num: str,
        db_path: Path | None = None,
        on_transition: TransitionCallback | None = None,
        cache: DayCache | None = None,
        cache_retention_days: int = 30,
    ):
        self.client = client
        self.serial_num = serial_num
        self.db_path = db_path
        self.on_transition = on_transition
        self.cache = cache
        self.cache_retention_days = cache_retention_days
        self._last_eviction: datetime | None = None

    async def check_once(self) -> GridStatus | None:
        """Poll once. Returns the observed status, or None if the poll failed."""
        try:
            status = await self.client.check_electricity_status(self.serial_num)
        except AuthenticationError as e:
            logger.error("Authentication failed, will retry next poll: %s", e)
            return None
        except (LuxpowerError, httpx.HTTPError, ValueError) as e:
            logger.error("Error checking electricity status: %s", e)
            return None

        state = "ON" if status.has_electricity else "OFF"
        try:
            previous = update_status(status.has_electricity, status.timestamp, self.db_path)
        except sqlite3.Error as e:
            logger.error("Error saving status: %s", e)
            return status

        if previous is None:
            logger.info("Status unchanged: Electricity %s (Grid Power: %.2f W)", state, status.grid_power)
        elif previous.current_status is None:
            logger.info("Initial status: Electricity %s (Grid Power: %.2f W)", state, status.grid_power)
        else:
            if status.has_electricity:
                logger.info("Electricity appeared! (Grid Power: %.2f W)", status.grid_power)
            else:
                logger.info("Electricity disappeared!")
            if self.on_transition is not None:
                try:
                    await self.on_transition(status, previous)
                except Exception:
                    logger.exception("Transition callback failed")

        return status

    def evict_cache_if_due(self, now: datetime | None = None) -> int:
        """Drop old history buckets at most once per EVICTION_INTERVAL."""
        if self.cache is None:
            return 0
        now = now or datetime.now(timezone.utc)
        if self._last_eviction is not None and now - self._last_eviction < EVICTION_INTERVAL:
            return 0
        self._last_eviction = now
        removed = self.cache.evict_older_than(self.cache_retention_days)
        if removed:
            logger.info("Removed %d old history cache bucket(s)", removed)
        return removed

    async def run(self, poll_interval: float = 60.0) -> None:
        """Poll forever."""
        logger.info("Starting electricity monitoring service...")
        logger.info("Polling interval: %s seconds", poll_interval)
        logger.info("Serial number: %s", self.serial_num)

        while True:
            await self.check_once()
            self.evict_cache_if_due()
            await asyncio.sleep(poll_interval)
