"""Engine and session helpers shared by every package that talks to the database.

Usage
-----
from db.client import session_scope

with session_scope(database_url=url) as s:
    s.execute(...)

Engines are cached per URL: the personnel lookups open sessions from worker
threads and tests run against one temporary SQLite file each, so a single
process-wide engine is not enough. SQLite connections get
``PRAGMA foreign_keys = ON`` so foreign-key rejections surface the same way
they do on Postgres.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

DATABASE_URL_ENV = "DATABASE_URL"

_lock = threading.Lock()
_engines: dict[str, tuple[Engine, sessionmaker[Session]]] = {}


def resolve_database_url(database_url: str | None = None) -> str:
    url = database_url or os.getenv(DATABASE_URL_ENV)
    if not url:
        raise RuntimeError(
            f"{DATABASE_URL_ENV} is not set; pass --database-url or define it in .env"
        )
    return url


def _enforce_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record) -> None:  # pragma: no cover - driver bridge
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys = ON")
        cur.close()


def _entry(url: str) -> tuple[Engine, sessionmaker[Session]]:
    with _lock:
        entry = _engines.get(url)
        if entry is None:
            engine = create_engine(url, pool_pre_ping=True)
            if engine.dialect.name == "sqlite":
                _enforce_sqlite_foreign_keys(engine)
            entry = (engine, sessionmaker(bind=engine, expire_on_commit=False, class_=Session))
            _engines[url] = entry
    return entry


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the cached engine for ``database_url`` (or ``$DATABASE_URL``)."""

    return _entry(resolve_database_url(database_url))[0]


def get_session(*, database_url: str | None = None) -> Session:
    return _entry(resolve_database_url(database_url))[1]()


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Commit on success, roll back and re-raise on any exception, always close."""

    session = get_session(database_url=database_url)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dispose_engines() -> None:
    """Dispose every cached engine and forget it."""

    with _lock:
        for engine, _maker in _engines.values():
            engine.dispose()
        _engines.clear()


__all__ = [
    "DATABASE_URL_ENV",
    "dispose_engines",
    "get_engine",
    "get_session",
    "resolve_database_url",
    "session_scope",
]
