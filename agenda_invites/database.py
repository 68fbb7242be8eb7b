from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import event
from sqlalchemy.engine import Engine, make_url
from sqlmodel import SQLModel, Session, create_engine

from .config import settings

logger = logging.getLogger(__name__)

# Every lock wait is bounded so a stuck writer surfaces as an OperationalError.
SQLITE_BUSY_TIMEOUT_MS = 5000
PG_STATEMENT_TIMEOUT_MS = 30000
PG_LOCK_TIMEOUT_MS = 10000

# Largest value a SQLite INTEGER / Postgres BIGINT key can hold.
MAX_ROW_ID = 2**63 - 1


def _make_sqlite_parent_dir(database_url: str) -> None:
    """
    File-backed SQLite (sqlite:///./data/x.sqlite, sqlite:////abs/x.sqlite)
    needs its folder to exist. In-memory URLs are left alone.
    """
    db_file = make_url(database_url).database
    if not db_file or db_file == ":memory:":
        return
    folder = os.path.dirname(db_file)
    if folder:
        os.makedirs(folder, exist_ok=True)


def _connect_statements(backend: str) -> list[str]:
    if backend == "sqlite":
        return [
            "PRAGMA journal_mode=WAL;",
            "PRAGMA synchronous=NORMAL;",
            "PRAGMA foreign_keys=ON;",
            f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS};",
        ]
    if backend == "postgresql":
        return [
            f"SET statement_timeout = {PG_STATEMENT_TIMEOUT_MS};",
            f"SET lock_timeout = {PG_LOCK_TIMEOUT_MS};",
        ]
    return []


def build_engine(database_url: str, **kwargs) -> Engine:
    """
    Engine for `database_url` with per-connection session settings applied.
    Extra kwargs go to create_engine (tests pass poolclass=StaticPool).
    """
    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        _make_sqlite_parent_dir(database_url)
        # FastAPI runs sync handlers in a threadpool
        kwargs.setdefault("connect_args", {"check_same_thread": False})

    eng = create_engine(database_url, echo=False, pool_pre_ping=True, **kwargs)

    statements = _connect_statements(backend)
    if statements:

        @event.listens_for(eng, "connect")
        def _on_connect(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            try:
                for sql in statements:
                    cursor.execute(sql)
            finally:
                cursor.close()

    return eng


def get_engine() -> Engine:
    return build_engine(settings.resolved_database_url)


engine: Engine = get_engine()


def register_models() -> None:
    """
    Import every table model so SQLModel.metadata knows about it.
    """
    from .models.agenda import Agenda  # noqa: F401
    from .models.invitation import Invitation  # noqa: F401
    from .models.user_account import UserAccount  # noqa: F401


def init_db(create_tables: bool = True, bind: Engine | None = None) -> None:
    """
    create_all only adds missing tables. Production deployments pass
    create_tables=False and own the schema through migrations.
    """
    register_models()
    if create_tables:
        SQLModel.metadata.create_all(bind or engine)
        logger.info("database tables ensured")


def get_db() -> Generator[Session, None, None]:
    """
    Request-scoped session for FastAPI routes (Depends(get_db)).
    """
    with Session(engine) as session:
        yield session


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Commit on success, roll back on error. For scripts and one-off jobs.
    """
    with Session(engine) as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
