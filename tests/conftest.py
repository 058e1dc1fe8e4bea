"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from task_conductor.channel import MemoryChannel, SqliteChannel


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_channel(clock: FakeClock) -> MemoryChannel:
    return MemoryChannel(prefix="test", ttl_seconds=60, clock=clock)


@pytest.fixture()
def sqlite_channel(tmp_path: Path, clock: FakeClock) -> Iterator[SqliteChannel]:
    channel = SqliteChannel(tmp_path / "channel.db", prefix="test", ttl_seconds=60, clock=clock)
    channel.init_schema()
    yield channel
    channel.close()


@pytest.fixture(params=["memory", "sqlite"])
def channel(request, memory_channel: MemoryChannel, tmp_path: Path, clock: FakeClock):
    """Every channel backing, so contract tests run against both."""

    if request.param == "memory":
        yield memory_channel
        return
    sqlite = SqliteChannel(tmp_path / "contract.db", prefix="test", ttl_seconds=60, clock=clock)
    sqlite.init_schema()
    yield sqlite
    sqlite.close()
