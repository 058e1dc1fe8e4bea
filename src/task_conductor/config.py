"""Runtime configuration for conductor runs and the result channel."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

MAX_WORKERS_CEILING = 10


@dataclass(slots=True)
class ConductorSettings:
    """Admission and polling settings."""

    max_workers: int = 5
    poll_interval_seconds: float = 0.05
    wait_time_limit_seconds: float = 10.0


@dataclass(slots=True)
class ChannelSettings:
    """Shared key/value channel settings."""

    prefix: str = "thread"
    ttl_seconds: float = 60.0
    db_path: Path = Path(".task_conductor.db")
    busy_timeout_ms: int = 5_000


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    conductor: ConductorSettings = field(default_factory=ConductorSettings)
    channel: ChannelSettings = field(default_factory=ChannelSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults suited to local runs."""

        return cls(
            conductor=ConductorSettings(
                max_workers=int(os.getenv("TASK_CONDUCTOR_MAX_WORKERS", "5")),
                poll_interval_seconds=float(
                    os.getenv("TASK_CONDUCTOR_POLL_INTERVAL_SECONDS", "0.05"),
                ),
                wait_time_limit_seconds=float(
                    os.getenv("TASK_CONDUCTOR_WAIT_TIME_LIMIT_SECONDS", "10.0"),
                ),
            ),
            channel=ChannelSettings(
                prefix=os.getenv("TASK_CONDUCTOR_CHANNEL_PREFIX", "thread"),
                ttl_seconds=float(os.getenv("TASK_CONDUCTOR_CHANNEL_TTL_SECONDS", "60")),
                db_path=db_path
                or Path(os.getenv("TASK_CONDUCTOR_CHANNEL_DB_PATH", ".task_conductor.db")),
                busy_timeout_ms=int(
                    os.getenv("TASK_CONDUCTOR_CHANNEL_BUSY_TIMEOUT_MS", "5000"),
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the conductor cannot honour."""

        if self.conductor.max_workers <= 0:
            raise ValueError("TASK_CONDUCTOR_MAX_WORKERS must be a positive integer.")
        if self.conductor.max_workers > MAX_WORKERS_CEILING:
            raise ValueError(
                f"TASK_CONDUCTOR_MAX_WORKERS must be <= {MAX_WORKERS_CEILING}, "
                f"got {self.conductor.max_workers}.",
            )
        if self.conductor.poll_interval_seconds <= 0:
            raise ValueError("TASK_CONDUCTOR_POLL_INTERVAL_SECONDS must be > 0.")
        if self.conductor.wait_time_limit_seconds < 0:
            raise ValueError("TASK_CONDUCTOR_WAIT_TIME_LIMIT_SECONDS must be >= 0.")
        if not self.channel.prefix:
            raise ValueError("TASK_CONDUCTOR_CHANNEL_PREFIX must not be empty.")
        if self.channel.busy_timeout_ms <= 0:
            raise ValueError("TASK_CONDUCTOR_CHANNEL_BUSY_TIMEOUT_MS must be > 0.")
