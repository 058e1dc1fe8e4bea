"""Controllers for task-conductor CLI commands."""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from functools import partial
from pathlib import Path

from task_conductor.channel import Channel, SqliteChannel, build_channel
from task_conductor.config import Settings
from task_conductor.errors import PartialResults
from task_conductor.mapping import conduct_filter, conduct_map
from task_conductor.strategies import (
    ConcurrencyStrategy,
    InlineStrategy,
    ParallelWorkerStrategy,
)

SUPPORTED_STYLES = ("fork", "inline")
DEFAULT_SLEEP_WINDOWS = (("small", 2.0), ("medium", 4.0), ("large", 5.0), ("extra large", 10.0))
LARGEST_WINDOW_KEY = "largest_sleep_window"


@dataclass(slots=True)
class DemoCommand:
    """CLI input for the sleep-window demo."""

    db_path: Path | None
    style: str
    sleep_windows: tuple[tuple[str, float], ...]
    max_workers: int | None = None
    wait_limit_seconds: float | None = None
    poll_interval_seconds: float | None = None


@dataclass(slots=True)
class ChannelKeyCommand:
    """CLI input for single-key channel inspection."""

    db_path: Path | None
    key: str


@dataclass(slots=True)
class ChannelAdmissionCommand:
    """CLI input for admission counter maintenance."""

    db_path: Path | None


class ConductorCliController:
    """Coordinates demo runs and channel maintenance commands."""

    def run_demo(self, command: DemoCommand) -> list[str]:
        settings = _demo_settings(command)
        windows = dict(command.sleep_windows or DEFAULT_SLEEP_WINDOWS)

        lines: list[str] = []
        started = time.monotonic()
        with _channel(settings) as channel:
            try:
                results = conduct_map(
                    windows,
                    _slacker,
                    _strategy(command.style, channel, settings),
                    wait_time_limit_seconds=settings.conductor.wait_time_limit_seconds,
                    poll_interval_seconds=settings.conductor.poll_interval_seconds,
                )
            except PartialResults as incomplete:
                results = incomplete.results
                lines.append(str(incomplete))
        elapsed = time.monotonic() - started

        for name, seconds in windows.items():
            actual = results.get(name)
            lines.append(
                f'Sleep window "{name}" ({seconds:g}s): actual sleep: '
                f"{'[unknown]' if actual is None else f'{actual:g}s'}",
            )
        lines.append(
            f"Took {elapsed:.2f}s to process {len(windows)} windows "
            f"with the {command.style} style.",
        )
        return lines

    def run_filter_demo(self, command: DemoCommand) -> list[str]:
        """Keep each window larger than every window judged before it.

        Judges share the largest value seen through the channel without a lock,
        so with the fork style the survivors depend on scheduling.
        """

        settings = _demo_settings(command)
        windows = dict(command.sleep_windows or DEFAULT_SLEEP_WINDOWS)

        lines: list[str] = []
        started = time.monotonic()
        with _channel(settings) as channel:
            channel.delete(LARGEST_WINDOW_KEY)
            try:
                survivors = conduct_filter(
                    windows,
                    partial(_slacker_judge, channel),
                    _strategy(command.style, channel, settings),
                    wait_time_limit_seconds=settings.conductor.wait_time_limit_seconds,
                    poll_interval_seconds=settings.conductor.poll_interval_seconds,
                )
            except PartialResults as incomplete:
                survivors = incomplete.results
                lines.append(str(incomplete))
        elapsed = time.monotonic() - started

        for name, seconds in windows.items():
            verdict = "Survived" if name in survivors else "Removed"
            lines.append(f'Sleep window "{name}" ({seconds:g}s): {verdict}')
        lines.append(
            f"Took {elapsed:.2f}s to judge {len(windows)} windows "
            f"with the {command.style} style; {len(survivors)} survived.",
        )
        return lines

    def channel_get(self, command: ChannelKeyCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _channel(settings) as channel:
            value = channel.receive(command.key)
        if value is None:
            return [f"No live value for key {command.key!r}."]
        return [f"{command.key}: {value!r}"]

    def channel_clear(self, command: ChannelKeyCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _channel(settings) as channel:
            value = channel.flush_message(command.key)
        if value is None:
            return [f"No live value for key {command.key!r}."]
        return [f"Cleared {command.key}: {value!r}"]

    def reset_admission(self, command: ChannelAdmissionCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _channel(settings) as channel:
            strategy = ParallelWorkerStrategy(channel, max_workers=settings.conductor.max_workers)
            previous = strategy.active_worker_count()
            strategy.reset_admission()
        return [f"Admission counter reset (was {previous})."]


def _slacker(seconds: float) -> float:
    time.sleep(seconds)
    return seconds


def _slacker_judge(channel: Channel, seconds: float) -> bool:
    largest = channel.receive(LARGEST_WINDOW_KEY, default=0.0)
    if seconds > largest:
        channel.send(LARGEST_WINDOW_KEY, seconds)
        return True
    return False


def _demo_settings(command: DemoCommand) -> Settings:
    if command.style not in SUPPORTED_STYLES:
        raise ValueError(
            f"Unsupported style: {command.style!r}. Expected one of {SUPPORTED_STYLES}.",
        )
    settings = _with_overrides(Settings.from_env(db_path=command.db_path), command)
    settings.validate()
    return settings


def _strategy(style: str, channel: Channel, settings: Settings) -> ConcurrencyStrategy:
    if style == "fork":
        return ParallelWorkerStrategy(channel, max_workers=settings.conductor.max_workers)
    return InlineStrategy()


def _with_overrides(settings: Settings, command: DemoCommand) -> Settings:
    conductor = settings.conductor
    if command.max_workers is not None:
        conductor = replace(conductor, max_workers=command.max_workers)
    if command.wait_limit_seconds is not None:
        conductor = replace(conductor, wait_time_limit_seconds=command.wait_limit_seconds)
    if command.poll_interval_seconds is not None:
        conductor = replace(conductor, poll_interval_seconds=command.poll_interval_seconds)
    return replace(settings, conductor=conductor)


@contextmanager
def _channel(settings: Settings) -> Iterator[SqliteChannel]:
    channel = build_channel(settings)
    try:
        yield channel
    finally:
        channel.close()
