from __future__ import annotations

from pathlib import Path

import allure
import pytest

from task_conductor.config import ChannelSettings, ConductorSettings, Settings

pytestmark = [
    allure.epic("Worker Coordination"),
    allure.feature("Configuration"),
]


def test_from_env_uses_defaults(monkeypatch) -> None:
    for name in (
        "TASK_CONDUCTOR_MAX_WORKERS",
        "TASK_CONDUCTOR_POLL_INTERVAL_SECONDS",
        "TASK_CONDUCTOR_WAIT_TIME_LIMIT_SECONDS",
        "TASK_CONDUCTOR_CHANNEL_PREFIX",
        "TASK_CONDUCTOR_CHANNEL_TTL_SECONDS",
        "TASK_CONDUCTOR_CHANNEL_DB_PATH",
        "TASK_CONDUCTOR_CHANNEL_BUSY_TIMEOUT_MS",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.conductor == ConductorSettings()
    assert settings.channel == ChannelSettings()
    settings.validate()


def test_from_env_reads_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TASK_CONDUCTOR_MAX_WORKERS", "3")
    monkeypatch.setenv("TASK_CONDUCTOR_POLL_INTERVAL_SECONDS", "0.2")
    monkeypatch.setenv("TASK_CONDUCTOR_WAIT_TIME_LIMIT_SECONDS", "30")
    monkeypatch.setenv("TASK_CONDUCTOR_CHANNEL_PREFIX", "batch")
    monkeypatch.setenv("TASK_CONDUCTOR_CHANNEL_TTL_SECONDS", "120")
    monkeypatch.setenv("TASK_CONDUCTOR_CHANNEL_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("TASK_CONDUCTOR_CHANNEL_BUSY_TIMEOUT_MS", "250")

    settings = Settings.from_env()

    assert settings.conductor == ConductorSettings(
        max_workers=3,
        poll_interval_seconds=0.2,
        wait_time_limit_seconds=30.0,
    )
    assert settings.channel == ChannelSettings(
        prefix="batch",
        ttl_seconds=120.0,
        db_path=tmp_path / "env.db",
        busy_timeout_ms=250,
    )


def test_explicit_db_path_wins_over_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TASK_CONDUCTOR_CHANNEL_DB_PATH", str(tmp_path / "env.db"))

    settings = Settings.from_env(db_path=tmp_path / "cli.db")

    assert settings.channel.db_path == tmp_path / "cli.db"


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        (Settings(conductor=ConductorSettings(max_workers=0)), "MAX_WORKERS must be a positive"),
        (Settings(conductor=ConductorSettings(max_workers=11)), "MAX_WORKERS must be <= 10"),
        (Settings(conductor=ConductorSettings(poll_interval_seconds=0)), "POLL_INTERVAL"),
        (Settings(conductor=ConductorSettings(wait_time_limit_seconds=-1)), "WAIT_TIME_LIMIT"),
        (Settings(channel=ChannelSettings(prefix="")), "CHANNEL_PREFIX"),
        (Settings(channel=ChannelSettings(busy_timeout_ms=0)), "BUSY_TIMEOUT_MS"),
    ],
)
def test_validate_rejects_invalid_values(settings: Settings, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        settings.validate()
