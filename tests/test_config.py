from datetime import timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from gridwatch import config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for env_var in [*config.ENV_VARS.values(), "LUXPOWER_PLANT_ID"]:
        monkeypatch.delenv(env_var, raising=False)


def test_defaults_without_file(tmp_path):
    settings = config.load_settings(tmp_path / "missing.yaml")

    assert settings.api_endpoint == "https://eu.luxpowertek.com"
    assert settings.tz == ZoneInfo("Europe/Kyiv")
    assert settings.page_size == 10000
    assert settings.cache_max_age == timedelta(hours=1)


def test_yaml_then_env_override(tmp_path, monkeypatch):
    path = tmp_path / "gridwatch.yaml"
    path.write_text(
        "timezone: UTC\n"
        "page_size: 500\n"
        "cache_dir: /var/cache/gridwatch\n"
        "poll_interval: 30\n"
        "unknown_key: ignored\n"
    )
    monkeypatch.setenv("GRIDWATCH_PAGE_SIZE", "250")
    monkeypatch.setenv("GRIDWATCH_CACHE_MAX_AGE_HOURS", "0.5")

    settings = config.load_settings(path)

    assert settings.timezone == "UTC"
    assert settings.page_size == 250
    assert settings.cache_dir == Path("/var/cache/gridwatch")
    assert settings.poll_interval == 30.0
    assert settings.cache_max_age == timedelta(minutes=30)


def test_plant_id_alias(tmp_path, monkeypatch):
    monkeypatch.setenv("LUXPOWER_PLANT_ID", "9876543210")

    settings = config.load_settings(tmp_path / "missing.yaml")

    assert config.get_serial_num(settings) == "9876543210"


def test_missing_credentials_raise_with_guidance(tmp_path):
    settings = config.load_settings(tmp_path / "missing.yaml")

    with pytest.raises(ValueError, match="LUXPOWER_USERNAME"):
        config.get_credentials(settings)
    with pytest.raises(ValueError, match="LUXPOWER_SERIAL_NUM"):
        config.get_serial_num(settings)


def test_credentials_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("LUXPOWER_USERNAME", "me@example.com")
    monkeypatch.setenv("LUXPOWER_PASSWORD", "hunter2")

    settings = config.load_settings(tmp_path / "missing.yaml")

    assert config.get_credentials(settings) == ("me@example.com", "hunter2")
