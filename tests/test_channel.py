from __future__ import annotations

import os
import sqlite3
from pathlib import Path

import allure
import pytest

from task_conductor.channel import MemoryChannel, SqliteChannel

pytestmark = [
    allure.epic("Worker Coordination"),
    allure.feature("Shared Channel"),
]


def test_send_then_receive_returns_value_before_expiry(channel, clock) -> None:
    channel.send("answer", {"value": 42}, ttl=10)
    clock.advance(9)

    assert channel.receive("answer") == {"value": 42}


def test_receive_returns_default_after_expiry(channel, clock) -> None:
    channel.send("answer", 42, ttl=10)
    clock.advance(10)

    assert channel.receive("answer") is None
    assert channel.receive("answer", default="absent") == "absent"


def test_send_uses_channel_default_ttl(channel, clock) -> None:
    channel.send("answer", 42)
    clock.advance(59)
    assert channel.receive("answer") == 42

    clock.advance(1)
    assert channel.receive("answer") is None


def test_non_positive_ttl_never_expires(channel, clock) -> None:
    channel.send("forever", "kept", ttl=0)
    clock.advance(10_000_000)

    assert channel.receive("forever") == "kept"


def test_send_overwrites_previous_value(channel) -> None:
    channel.send("key", 1)
    channel.send("key", 2)

    assert channel.receive("key") == 2


def test_flush_message_returns_value_and_removes_it(channel) -> None:
    channel.send("key", [1, 2, 3])

    assert channel.flush_message("key") == [1, 2, 3]
    assert channel.receive("key") is None
    assert channel.flush_message("key", default="gone") == "gone"


def test_integer_and_string_keys_address_the_same_entry(channel) -> None:
    channel.send(1234, "from worker")

    assert channel.receive("1234") == "from worker"


def test_none_is_a_storable_value(channel) -> None:
    channel.send("nothing", None)

    assert channel.receive("nothing", default="absent") is None


def test_increment_counter_stops_at_ceiling(channel) -> None:
    assert channel.increment_counter("slots", ceiling=2) == 1
    assert channel.increment_counter("slots", ceiling=2) == 2
    assert channel.increment_counter("slots", ceiling=2) is None
    assert channel.read_counter("slots") == 2


def test_decrement_counter_never_goes_below_zero(channel) -> None:
    channel.increment_counter("slots", ceiling=5)

    assert channel.decrement_counter("slots") == 0
    assert channel.decrement_counter("slots") == 0
    assert channel.decrement_counter("never-set") == 0
    assert channel.read_counter("slots") == 0


def test_reset_counter_frees_every_slot(channel) -> None:
    channel.increment_counter("slots", ceiling=3)
    channel.increment_counter("slots", ceiling=3)

    channel.reset_counter("slots")

    assert channel.read_counter("slots") == 0
    assert channel.increment_counter("slots", ceiling=3) == 1


def test_counters_and_messages_do_not_collide(channel) -> None:
    channel.send("slots", "message")
    channel.increment_counter("slots", ceiling=3)

    assert channel.receive("slots") == "message"
    assert channel.read_counter("slots") == 1


def test_memory_channel_is_not_shared_across_processes() -> None:
    assert MemoryChannel.shared_across_processes is False
    assert SqliteChannel.shared_across_processes is True


def test_sqlite_channel_prefixes_stored_keys(sqlite_channel: SqliteChannel) -> None:
    sqlite_channel.send("42", "value")

    with sqlite3.connect(sqlite_channel.db_path) as connection:
        keys = [row[0] for row in connection.execute("SELECT key FROM channel_entries")]

    assert keys == ["test42"]


def test_sqlite_channel_is_visible_to_a_second_instance(tmp_path: Path, clock) -> None:
    db_path = tmp_path / "shared.db"
    writer = SqliteChannel(db_path, prefix="run", clock=clock)
    writer.init_schema()
    reader = SqliteChannel(db_path, prefix="run", clock=clock)

    writer.send("result", ("tuple", 1))
    writer.increment_counter("slots", ceiling=4)

    assert reader.receive("result") == ("tuple", 1)
    assert reader.read_counter("slots") == 1
    assert SqliteChannel(db_path, prefix="other", clock=clock).receive("result") is None
    writer.close()
    reader.close()


def test_sqlite_purge_expired_drops_only_stale_entries(sqlite_channel: SqliteChannel, clock) -> None:
    sqlite_channel.send("short", 1, ttl=5)
    sqlite_channel.send("long", 2, ttl=50)
    sqlite_channel.send("forever", 3, ttl=0)
    clock.advance(10)

    assert sqlite_channel.purge_expired() == 1
    assert sqlite_channel.receive("long") == 2
    assert sqlite_channel.receive("forever") == 3


def test_expired_read_does_not_delete_a_value_refreshed_meanwhile(tmp_path: Path, clock) -> None:
    db_path = tmp_path / "refresh.db"
    writer = SqliteChannel(db_path, prefix="run", ttl_seconds=10, clock=clock)
    writer.init_schema()

    class _RefreshBeforeDelete(SqliteChannel):
        def _delete_if_expired(self, key: str, now: float) -> None:
            writer.send("result", "fresh", ttl=0)
            super()._delete_if_expired(key, now)

    reader = _RefreshBeforeDelete(db_path, prefix="run", clock=clock)
    writer.send("result", "stale")
    clock.advance(10)

    assert reader.receive("result") is None
    assert writer.receive("result") == "fresh"
    writer.close()
    reader.close()


def _contend_for_slots(db_path: Path, *, rounds: int, ceiling: int) -> int:
    channel = SqliteChannel(db_path, prefix="race", busy_timeout_ms=30_000)
    for _ in range(rounds):
        taken = channel.increment_counter("slots", ceiling=ceiling)
        if taken is None:
            continue
        if taken > ceiling or channel.read_counter("slots") > ceiling:
            return 1
        channel.decrement_counter("slots")
    return 0


@pytest.mark.skipif(not hasattr(os, "fork"), reason="os.fork is unavailable")
def test_concurrent_processes_never_push_counter_past_ceiling(tmp_path: Path) -> None:
    db_path = tmp_path / "race.db"
    channel = SqliteChannel(db_path, prefix="race")
    channel.init_schema()

    pids = []
    for _ in range(8):
        pid = os.fork()
        if pid == 0:
            exit_code = 2
            try:
                exit_code = _contend_for_slots(db_path, rounds=30, ceiling=3)
            finally:
                os._exit(exit_code)
        pids.append(pid)

    exit_codes = [os.waitstatus_to_exitcode(os.waitpid(pid, 0)[1]) for pid in pids]

    assert exit_codes == [0] * 8
    assert channel.read_counter("slots") == 0
    channel.close()
