"""SQLAlchemy engine/session helpers.

Usage
-----
from ledger_import.store.client import session_scope

with session_scope() as s:
    s.execute(...)
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ledger_import.config import load_settings

_ENGINE: Engine | None = None
_SESSION_MAKER: sessionmaker[Session] | None = None
_DB_URL: str | None = None


def _enable_sqlite_foreign_keys(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def create_ledger_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections get foreign key enforcement."""

    engine = create_engine(database_url, pool_pre_ping=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, class_=Session)


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the shared engine, creating it on first use."""

    global _ENGINE, _SESSION_MAKER, _DB_URL
    url = database_url or load_settings().database_url
    if _ENGINE is None:
        _ENGINE = create_ledger_engine(url)
        _SESSION_MAKER = make_session_factory(_ENGINE)
        _DB_URL = url
        return _ENGINE
    if _DB_URL is not None and url != _DB_URL:
        raise RuntimeError(
            "get_engine() already initialized with a different DATABASE_URL; "
            "restart the process or avoid passing a different URL"
        )
    return _ENGINE


def get_session_factory(*, database_url: str | None = None) -> sessionmaker[Session]:
    get_engine(database_url=database_url)
    assert _SESSION_MAKER is not None  # bound by get_engine
    return _SESSION_MAKER


@contextmanager
def session_scope(session_factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations.

    Everything done inside the block commits together or is rolled back
    together when an exception escapes.
    """

    factory = session_factory or get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "create_ledger_engine",
    "get_engine",
    "get_session_factory",
    "make_session_factory",
    "session_scope",
]
