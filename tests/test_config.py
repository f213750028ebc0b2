"""Tests for environment-driven configuration."""

from zoneinfo import ZoneInfo

from src.dojo.config import DojoConfig, get_config, reset_config


def test_defaults(monkeypatch):
    for name in ("DOJO_DATA_DIR", "DOJO_SCHOOL_TIMEZONE", "DOJO_NEXT_CLASS_HORIZON_DAYS"):
        monkeypatch.delenv(name, raising=False)

    config = DojoConfig(_env_file=None)

    assert config.data_dir == "data"
    assert config.tz == ZoneInfo("America/Sao_Paulo")
    assert config.next_class_horizon_days == 60


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DOJO_SCHOOL_TIMEZONE", "America/Manaus")
    monkeypatch.setenv("DOJO_NOTIFICATIONS_ENABLED", "false")

    config = DojoConfig(_env_file=None)

    assert config.school_timezone == "America/Manaus"
    assert config.notifications_enabled is False


def test_get_config_is_cached(monkeypatch):
    reset_config()
    monkeypatch.setenv("DOJO_DATA_DIR", "/tmp/first")
    first = get_config()
    monkeypatch.setenv("DOJO_DATA_DIR", "/tmp/second")

    assert get_config() is first

    reset_config()
    assert get_config().data_dir == "/tmp/second"
    reset_config()
