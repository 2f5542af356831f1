"""Runtime configuration.

Defaults come from an optional YAML file (config/gridwatch.yaml), and
environment variables (or a .env file) override them.
"""

import os
from dataclasses import dataclass, field, fields
from datetime import timedelta, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo

import yaml
from dotenv import load_dotenv

from .cache import DEFAULT_CACHE_DIR
from .db import DEFAULT_DB_PATH

# Load environment variables from .env file
load_dotenv()

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "gridwatch.yaml"
DEFAULT_API_ENDPOINT = "https://eu.luxpowertek.com"
DEFAULT_TIMEZONE = "Europe/Kyiv"

# Environment variable for each setting
ENV_VARS = {
    "username": "LUXPOWER_USERNAME",
    "password": "LUXPOWER_PASSWORD",
    "api_endpoint": "LUXPOWER_API_ENDPOINT",
    "serial_num": "LUXPOWER_SERIAL_NUM",
    "timezone": "GRIDWATCH_TIMEZONE",
    "cache_dir": "GRIDWATCH_CACHE_DIR",
    "db_path": "GRIDWATCH_DB_PATH",
    "cache_max_age_hours": "GRIDWATCH_CACHE_MAX_AGE_HOURS",
    "cache_retention_days": "GRIDWATCH_CACHE_RETENTION_DAYS",
    "page_size": "GRIDWATCH_PAGE_SIZE",
    "parallel_days": "GRIDWATCH_PARALLEL_DAYS",
    "request_timeout": "GRIDWATCH_REQUEST_TIMEOUT",
    "poll_interval": "GRIDWATCH_POLL_INTERVAL",
}


@dataclass
class Settings:
    """Settings for the collector, cache and monitor."""

    username: str = ""
    password: str = ""
    api_endpoint: str = DEFAULT_API_ENDPOINT
    serial_num: str = ""
    timezone: str = DEFAULT_TIMEZONE
    cache_dir: Path = field(default_factory=lambda: DEFAULT_CACHE_DIR)
    db_path: Path = field(default_factory=lambda: DEFAULT_DB_PATH)
    cache_max_age_hours: float = 1.0
    cache_retention_days: int = 30
    page_size: int = 10000
    parallel_days: int = 10
    request_timeout: float = 30.0
    poll_interval: float = 60.0

    def __post_init__(self) -> None:
        # Values from YAML or the environment arrive as strings
        for f in fields(self):
            value = getattr(self, f.name)
            if f.type is int:
                setattr(self, f.name, int(value))
            elif f.type is float:
                setattr(self, f.name, float(value))
            elif f.type is Path:
                setattr(self, f.name, Path(value).expanduser())
            else:
                setattr(self, f.name, "" if value is None else str(value))

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.timezone)

    @property
    def cache_max_age(self) -> timedelta:
        return timedelta(hours=self.cache_max_age_hours)


def load_settings(config_path: Path | None = None) -> Settings:
    """Build settings from the YAML file (if present) and the environment."""
    path = config_path or DEFAULT_CONFIG_PATH
    values: dict = {}

    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        values.update({k: v for k, v in data.items() if k in ENV_VARS and v is not None})

    for name, env_var in ENV_VARS.items():
        if os.environ.get(env_var):
            values[name] = os.environ[env_var]

    # LUXPOWER_PLANT_ID is accepted as an alias for the serial number
    if not values.get("serial_num") and os.environ.get("LUXPOWER_PLANT_ID"):
        values["serial_num"] = os.environ["LUXPOWER_PLANT_ID"]

    return Settings(**values)


def get_credentials(settings: Settings) -> tuple[str, str]:
    """Get Luxpower account credentials, failing with guidance if unset."""
    if not settings.username or not settings.password:
        raise ValueError(
            "LUXPOWER_USERNAME and LUXPOWER_PASSWORD must be set.\n"
            "Use the account you log in to https://eu.luxpowertek.com with.\n"
            "Then set them: export LUXPOWER_USERNAME='you@example.com' LUXPOWER_PASSWORD='...'"
        )
    return settings.username, settings.password


def get_serial_num(settings: Settings) -> str:
    """Get the inverter serial number, failing with guidance if unset."""
    if not settings.serial_num:
        raise ValueError(
            "LUXPOWER_SERIAL_NUM (or LUXPOWER_PLANT_ID) environment variable not set.\n"
            "Find it on the inverter page of the Luxpower web portal.\n"
            "Then set it: export LUXPOWER_SERIAL_NUM='1234567890'"
        )
    return settings.serial_num
