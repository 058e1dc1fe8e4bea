"""Shared key/value channels used to pass results between workers."""

from task_conductor.channel.base import Channel, PrefixedChannel
from task_conductor.channel.memory import MemoryChannel
from task_conductor.channel.sqlite import SqliteChannel
from task_conductor.config import Settings


def build_channel(settings: Settings) -> SqliteChannel:
    """Open the process-shared channel described by settings, creating tables if needed."""

    channel = SqliteChannel(
        settings.channel.db_path,
        prefix=settings.channel.prefix,
        ttl_seconds=settings.channel.ttl_seconds,
        busy_timeout_ms=settings.channel.busy_timeout_ms,
    )
    channel.init_schema()
    return channel


__all__ = [
    "Channel",
    "MemoryChannel",
    "PrefixedChannel",
    "SqliteChannel",
    "build_channel",
]
