"""Luxpower web API collector.

Fetches live inverter runtime data and the per-day history of grid voltage
samples. History is retrieved one calendar day at a time, cache-first, with
a bounded number of days in flight, and compressed to change points.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any

import httpx

from ..analysis.compression import compress, sort_samples
from ..cache import DayCache, date_key
from ..models import GridStatus, Sample
from .decoder import decode_page
from .session import (
    AuthenticationError,
    Authenticator,
    LuxpowerAuthenticator,
    LuxpowerError,
    SessionHandle,
)

logger = logging.getLogger(__name__)

DEFAULT_API_ENDPOINT = "https://eu.luxpowertek.com"
RUNTIME_PATH = "/WManage/api/inverter/getInverterRuntime"
HISTORY_PATH = "/WManage/web/analyze/data/{date}"

PAGE_SIZE = 10000
PARALLEL_DAYS = 10
MAX_PAGES_PER_DAY = 100
REQUEST_TIMEOUT = 30.0

# Live status thresholds
MIN_GRID_VOLTAGE = 160.0
MIN_GRID_FREQUENCY = 45.0
MAX_GRID_FREQUENCY = 55.0

AUTH_FAILURE_CODES = (401, 403)
NO_DATA_CODES = (400, 404)


class LuxpowerAPIError(LuxpowerError):
    """The API answered but reported failure."""
    pass


class SessionExpired(Exception):
    """Internal signal: the upstream rejected the current session."""

    def __init__(self, token: str):
        super().__init__(token)
        self.token = token


def date_keys_between(start: datetime, end: datetime, tz: tzinfo) -> list[str]:
    """Every provider-local date key intersecting [start, end]."""
    current = start.astimezone(tz).date()
    last = end.astimezone(tz).date()
    keys = []
    while current <= last:
        keys.append(date_key(current))
        current += timedelta(days=1)
    return keys


def batched(items: list[str], size: int) -> list[list[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def parse_total(value: Any) -> int:
    """Row count reported by the history endpoint. Unusable values count as 0 (unknown)."""
    if isinstance(value, bool):
        return 0
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


def process_runtime_data(data: dict[str, Any], now: datetime | None = None) -> GridStatus:
    """Derive live grid status from a runtime reply.

    Voltage fields are in tenths of a volt, frequency in hundredths of a hertz.
    """
    vacr = float(data.get("vacr") or 0)
    vact = float(data.get("vact") or 0)
    raw_voltage = vacr if vacr > 0 else vact
    grid_voltage = round(raw_voltage / 10, 1) if raw_voltage > 0 else 0.0
    grid_frequency = float(data.get("fac") or 0) / 100

    power_to_grid = float(data.get("pToGrid") or 0)
    power_to_user = float(data.get("pToUser") or 0)

    has_electricity = (
        grid_voltage > MIN_GRID_VOLTAGE
        and MIN_GRID_FREQUENCY < grid_frequency < MAX_GRID_FREQUENCY
    )

    if power_to_grid > 0:
        grid_power = power_to_grid
    elif power_to_user > 0:
        grid_power = -power_to_user
    elif power_to_grid < 0:
        grid_power = power_to_grid
    elif power_to_user < 0:
        grid_power = -power_to_user
    else:
        grid_power = 0.0

    return GridStatus(
        has_electricity=has_electricity,
        grid_power=grid_power,
        grid_voltage=grid_voltage,
        grid_frequency=grid_frequency,
        timestamp=now or datetime.now(timezone.utc),
        raw=data,
    )


class LuxpowerClient:
    """Client for the Luxpower web monitoring API.

    Usage:
        async with LuxpowerClient(username, password) as client:
            timeline = await client.get_history(serial, start, end)
    """

    def __init__(
        self,
        username: str = "",
        password: str = "",
        api_endpoint: str = DEFAULT_API_ENDPOINT,
        cache: DayCache | None = None,
        tz: tzinfo = timezone.utc,
        authenticator: Authenticator | None = None,
        http_client: httpx.AsyncClient | None = None,
        page_size: int = PAGE_SIZE,
        parallel_days: int = PARALLEL_DAYS,
        cache_max_age: timedelta = timedelta(hours=1),
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.api_endpoint = api_endpoint.rstrip("/")
        self.client = http_client or httpx.AsyncClient(
            base_url=self.api_endpoint,
            timeout=timeout,
            headers={
                "Accept": "application/json, text/javascript, */*; q=0.01",
                "X-Requested-With": "XMLHttpRequest",
                "Origin": self.api_endpoint,
                "Referer": f"{self.api_endpoint}/WManage/web/monitor/inverter",
            },
        )
        self.session = SessionHandle(
            authenticator or LuxpowerAuthenticator(self.client, username, password)
        )
        self.cache = cache
        self.tz = tz
        self.page_size = page_size
        self.parallel_days = parallel_days
        self.cache_max_age = cache_max_age

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    # Live status

    async def get_runtime(self, serial_num: str) -> dict[str, Any]:
        """Fetch the inverter runtime reply, re-logging in once on expiry."""
        for attempt in range(2):
            token = await self.session.acquire()
            response = await self.client.post(
                RUNTIME_PATH,
                data={"serialNum": serial_num},
                headers=self.session.cookie_header(token),
            )
            if response.status_code in AUTH_FAILURE_CODES:
                self.session.invalidate(token)
                if attempt == 0:
                    logger.warning(
                        "Session rejected getting runtime (HTTP %s), logging in again",
                        response.status_code,
                    )
                    continue
                break
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict) or data.get("success") is False:
                raise LuxpowerAPIError("API returned success: false")
            return data
        raise AuthenticationError("Session rejected after re-login")

    async def check_electricity_status(self, serial_num: str) -> GridStatus:
        data = await self.get_runtime(serial_num)
        return process_runtime_data(data)

    # History

    async def get_history(self, serial_num: str, start: datetime, end: datetime) -> list[Sample]:
        """Fetch the change-point timeline for [start, end].

        Days are loaded cache-first and fetched in batches of parallel_days.
        A failing day contributes nothing; only AuthenticationError propagates.
        """
        await self.session.acquire()

        start = self._aware(start)
        end = self._aware(end)
        keys = date_keys_between(start, end, self.tz)
        samples: list[Sample] = []

        for batch in batched(keys, self.parallel_days):
            results = await asyncio.gather(*(self._load_day(serial_num, key) for key in batch))
            for day_samples in results:
                samples.extend(s for s in day_samples if start <= s.timestamp <= end)

        return compress(sort_samples(samples))

    def _aware(self, value: datetime) -> datetime:
        """Naive datetimes are taken as provider-local time."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value

    async def _load_day(self, serial_num: str, key: str) -> list[Sample]:
        cached = None
        if self.cache is not None:
            cached = self.cache.get(key, self.cache_max_age)
            if cached:
                # Today is governed by the freshness window alone
                if key == self.cache.today_key() or self.cache.is_complete(key):
                    return cached
                logger.info("Cache for %s is incomplete (missing 11 PM+ data), re-fetching...", key)

        day_samples = await self.fetch_day(serial_num, key)

        if not day_samples:
            return cached or []
        if self.cache is not None:
            self.cache.put(key, day_samples)
        return compress(day_samples)

    async def fetch_day(self, serial_num: str, key: str) -> list[Sample]:
        """Fetch all pages for one day from upstream.

        On a rejected session the day is retried once from page 1 with a fresh
        login. Other failures degrade to an empty day.
        """
        for attempt in range(2):
            try:
                return await self._fetch_pages(serial_num, key)
            except SessionExpired as e:
                self.session.invalidate(e.token)
                if attempt == 0:
                    logger.warning("Session expired fetching %s, logging in again", key)
                    continue
                logger.error("Session rejected again for %s after re-login, skipping day", key)
            except httpx.HTTPStatusError as e:
                if e.response.status_code in NO_DATA_CODES:
                    return []
                logger.warning("Error fetching data for %s: HTTP %s", key, e.response.status_code)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Error fetching data for %s: %s", key, e)
            return []
        return []

    async def _fetch_pages(self, serial_num: str, key: str) -> list[Sample]:
        token = await self.session.acquire()
        day_samples: list[Sample] = []

        for page in range(1, MAX_PAGES_PER_DAY + 1):
            response = await self.client.post(
                HISTORY_PATH.format(date=key),
                params={"serialNum": serial_num},
                data={"page": page, "rows": self.page_size},
                headers={
                    **self.session.cookie_header(token),
                    "Referer": f"{self.api_endpoint}/WManage/web/analyze/data",
                },
            )
            if response.status_code in AUTH_FAILURE_CODES:
                raise SessionExpired(token)
            response.raise_for_status()

            body = response.json()
            rows = body.get("rows") if isinstance(body, dict) else None
            if not isinstance(rows, list) or not rows:
                break

            day_samples.extend(decode_page(rows, self.tz))

            total = parse_total(body.get("total"))
            if len(rows) < self.page_size:
                break
            if total > 0 and page * self.page_size >= total:
                break
        else:
            logger.warning("Stopped paging %s after %d pages", key, MAX_PAGES_PER_DAY)

        return day_samples


async def fetch_history_range(
    client: LuxpowerClient, serial_num: str, hours: int, now: datetime | None = None
) -> list[Sample]:
    """Convenience wrapper: history for the last N hours."""
    end = now or datetime.now(timezone.utc)
    start = end - timedelta(hours=hours)
    return await client.get_history(serial_num, start, end)
