"""Channel persisted in a SQLite file, visible to every forked worker."""

from __future__ import annotations

import logging
import pickle
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from sqlalchemy import delete as sa_delete
from sqlalchemy import update as sa_update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, col, select

from task_conductor.channel.base import _MISSING, PrefixedChannel
from task_conductor.channel.storage import (
    ChannelCounter,
    ChannelEntry,
    build_sqlite_engine,
    create_channel_tables,
)

logger = logging.getLogger(__name__)


class SqliteChannel(PrefixedChannel):
    """Channel facade backed by SQLModel + SQLite.

    Every operation opens its own connection, so the same instance keeps
    working in a child process after ``fork``. Values are pickled.
    """

    shared_across_processes = True

    def __init__(
        self,
        db_path: Path,
        *,
        prefix: str = "thread",
        ttl_seconds: float = 60.0,
        busy_timeout_ms: int = 5_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(prefix=prefix, ttl_seconds=ttl_seconds, clock=clock)
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=busy_timeout_ms)

    def init_schema(self) -> None:
        """Create channel tables when missing."""

        create_channel_tables(self.engine)

    def close(self) -> None:
        """Release engine resources."""

        self.engine.dispose()

    def purge_expired(self) -> int:
        """Delete every expired entry and return how many were dropped."""

        with Session(self.engine) as session:
            result = session.exec(
                sa_delete(ChannelEntry).where(
                    col(ChannelEntry.expires_at).is_not(None),
                    col(ChannelEntry.expires_at) <= self._clock(),
                ),
            )
            session.commit()
            removed = result.rowcount or 0
        if removed:
            logger.debug("Purged %d expired channel entries from %s", removed, self.db_path)
        return removed

    def _store(self, key: str, value: Any, expires_at: float | None) -> None:
        payload = pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        statement = sqlite_insert(ChannelEntry).values(
            key=key,
            value=payload,
            expires_at=expires_at,
        )
        with Session(self.engine) as session:
            session.exec(
                statement.on_conflict_do_update(
                    index_elements=["key"],
                    set_={"value": payload, "expires_at": expires_at},
                ),
            )
            session.commit()

    def _fetch(self, key: str, now: float) -> Any:
        with Session(self.engine) as session:
            row = session.exec(select(ChannelEntry).where(ChannelEntry.key == key)).one_or_none()
            if row is None:
                return _MISSING
            payload, expires_at = row.value, row.expires_at
        if expires_at is not None and expires_at <= now:
            self._delete_if_expired(key, now)
            return _MISSING
        return pickle.loads(payload)  # noqa: S301

    def _delete_if_expired(self, key: str, now: float) -> None:
        # Own write transaction, never an upgrade of a WAL read transaction.
        with Session(self.engine) as session:
            session.exec(
                sa_delete(ChannelEntry).where(
                    col(ChannelEntry.key) == key,
                    col(ChannelEntry.expires_at).is_not(None),
                    col(ChannelEntry.expires_at) <= now,
                ),
            )
            session.commit()

    def _remove(self, key: str) -> None:
        with Session(self.engine) as session:
            session.exec(sa_delete(ChannelEntry).where(col(ChannelEntry.key) == key))
            session.commit()

    def read_counter(self, key: object) -> int:
        with Session(self.engine) as session:
            row = session.exec(
                select(ChannelCounter).where(ChannelCounter.key == self.message_key(key)),
            ).one_or_none()
            return 0 if row is None else row.value

    def increment_counter(self, key: object, *, ceiling: int) -> int | None:
        counter_key = self.message_key(key)
        with Session(self.engine) as session:
            session.exec(
                sqlite_insert(ChannelCounter)
                .values(key=counter_key, value=0)
                .on_conflict_do_nothing(index_elements=["key"]),
            )
            result = session.exec(
                sa_update(ChannelCounter)
                .where(
                    col(ChannelCounter.key) == counter_key,
                    col(ChannelCounter.value) < ceiling,
                )
                .values(value=col(ChannelCounter.value) + 1),
            )
            if result.rowcount != 1:
                session.rollback()
                return None
            row = session.exec(
                select(ChannelCounter).where(ChannelCounter.key == counter_key),
            ).one()
            value = row.value
            session.commit()
            return value

    def decrement_counter(self, key: object) -> int:
        counter_key = self.message_key(key)
        with Session(self.engine) as session:
            session.exec(
                sa_update(ChannelCounter)
                .where(col(ChannelCounter.key) == counter_key, col(ChannelCounter.value) > 0)
                .values(value=col(ChannelCounter.value) - 1),
            )
            row = session.exec(
                select(ChannelCounter).where(ChannelCounter.key == counter_key),
            ).one_or_none()
            value = 0 if row is None else row.value
            session.commit()
            return value

    def reset_counter(self, key: object) -> None:
        counter_key = self.message_key(key)
        with Session(self.engine) as session:
            session.exec(
                sqlite_insert(ChannelCounter)
                .values(key=counter_key, value=0)
                .on_conflict_do_update(index_elements=["key"], set_={"value": 0}),
            )
            session.commit()
