"""Common helpers for storage repositories."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlmodel import create_engine


def utc_now() -> datetime:
    """Current UTC timestamp."""

    return datetime.now(tz=UTC)


def to_db_datetime(value: datetime) -> datetime:
    """Convert to naive UTC, the representation SQLite columns round-trip."""

    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def to_utc_aware_datetime(value: datetime) -> datetime:
    """Attach UTC to naive values read back from SQLite."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


SQLITE_CONNECTION_PRAGMAS: tuple[str, ...] = ("journal_mode = WAL",)


def build_sqlite_engine(*, db_path: Path, busy_timeout_ms: int) -> Engine:
    """SQLite engine in WAL mode where every connection waits for the write lock."""

    busy_timeout_ms = max(1, busy_timeout_ms)
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False, "timeout": busy_timeout_ms / 1000.0},
        poolclass=NullPool,
    )

    @event.listens_for(engine, "connect")
    def _configure_connection(dbapi_connection: sqlite3.Connection, _: object) -> None:
        for pragma in (*SQLITE_CONNECTION_PRAGMAS, f"busy_timeout = {busy_timeout_ms}"):
            dbapi_connection.execute(f"PRAGMA {pragma}")

    return engine
