"""SQLModel tables and engine policy for the SQLite channel."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from sqlalchemy import Column, Float, LargeBinary, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlmodel import Field, SQLModel, create_engine


class ChannelEntry(SQLModel, table=True):
    __tablename__ = "channel_entries"  # type: ignore[bad-override]

    key: str = Field(primary_key=True)
    value: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    expires_at: float | None = Field(
        default=None,
        sa_column=Column(Float, nullable=True, index=True),
    )


class ChannelCounter(SQLModel, table=True):
    __tablename__ = "channel_counters"  # type: ignore[bad-override]

    key: str = Field(primary_key=True)
    value: int = Field(default=0)


def build_sqlite_engine(*, db_path: Path, busy_timeout_ms: int) -> Engine:
    """Build SQLAlchemy engine that forked workers can use without sharing connections."""

    db_url = f"sqlite:///{db_path}"
    engine = create_engine(
        db_url,
        connect_args={
            "check_same_thread": False,
            "timeout": max(1.0, busy_timeout_ms / 1000.0),
        },
        poolclass=NullPool,
    )
    event.listen(
        engine,
        "connect",
        lambda dbapi_connection, _: _apply_sqlite_pragmas(
            dbapi_connection,
            busy_timeout_ms=busy_timeout_ms,
        ),
    )
    return engine


def create_channel_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(
        engine,
        tables=[ChannelEntry.__table__, ChannelCounter.__table__],  # type: ignore[attr-defined]
    )


def _apply_sqlite_pragmas(dbapi_connection: sqlite3.Connection, *, busy_timeout_ms: int) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute(f"PRAGMA busy_timeout = {max(1, busy_timeout_ms)}")
    cursor.close()
