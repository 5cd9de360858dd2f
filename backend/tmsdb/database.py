# backend/tmsdb/database.py
"""
Database wiring for the training portal.

Key goals:
- Engines and session factories are built once at process start by
  `init_database(settings)` and stored on `app.state`, never as module globals.
- Separate read and write factories (ready for a replica later).
- `transaction()` gives every mutation one commit boundary, so a business
  write and its audit row land together or not at all.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import Settings

# Declarative base for all models
Base = declarative_base()


@dataclass
class Database:
    write_engine: Engine
    read_engine: Engine
    write_session: sessionmaker
    read_session: sessionmaker

    def dispose(self) -> None:
        self.write_engine.dispose()
        if self.read_engine is not self.write_engine:
            self.read_engine.dispose()


def build_engine(url: str, settings: Settings) -> Engine:
    kwargs: Dict[str, Any] = {"pool_pre_ping": True, "future": True}
    if url.startswith("sqlite"):
        # SQLite uses a singleton/static pool; pool sizing does not apply.
        kwargs["connect_args"] = {"check_same_thread": False}
        engine = create_engine(url, **kwargs)
        _enable_sqlite_savepoints(engine)
        return engine

    kwargs.update(
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
    )
    return create_engine(url, **kwargs)


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """
    pysqlite defers BEGIN until the first DML statement, which breaks
    SAVEPOINT (used per row by bulk import). Emit BEGIN ourselves.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
        future=True,
    )


def init_database(settings: Settings) -> Database:
    write_engine = build_engine(settings.database_write_url, settings)
    if settings.read_url == settings.database_write_url:
        read_engine = write_engine
    else:
        read_engine = build_engine(settings.read_url, settings)

    return Database(
        write_engine=write_engine,
        read_engine=read_engine,
        write_session=build_session_factory(write_engine),
        read_session=build_session_factory(read_engine),
    )


# -------------------------------------------------------------------
# DEPENDENCIES (for FastAPI)
# -------------------------------------------------------------------


def get_write_db(request: Request) -> Iterator[Session]:
    """
    Dependency for endpoints that perform INSERT / UPDATE / DELETE.
    """
    db = request.app.state.database.write_session()
    try:
        yield db
    finally:
        db.close()


def get_read_db(request: Request) -> Iterator[Session]:
    """
    Dependency for read-only endpoints.

    Points at the same server until DATABASE_READ_URL names a replica.
    """
    db = request.app.state.database.read_session()
    try:
        yield db
    finally:
        db.close()


get_db = get_write_db


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Commit everything flushed inside the block, or roll all of it back.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
