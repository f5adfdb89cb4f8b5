import logging
import os
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from .config import is_create_all_enabled
from .errors import StoreError


logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_engine_url: Optional[str] = None


def _database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///./dev.db")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # noqa: ARG001
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def get_engine() -> Engine:
    """Return a SQLModel engine, creating it if needed."""
    global _engine, _engine_url
    database_url = _database_url()
    if _engine is None or database_url != _engine_url:
        connect_args = {}
        engine_kwargs = {"echo": False}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if database_url == "sqlite://":
                engine_kwargs["poolclass"] = StaticPool
        _engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)
        if database_url.startswith("sqlite"):
            # read_later rows cascade with their bookmark
            event.listen(_engine, "connect", _enable_sqlite_foreign_keys)
        _engine_url = database_url
    return _engine


def init_db() -> None:
    """Optionally create all tables in dev environments.

    In production, rely on Alembic migrations. Enable this dev helper by setting
    SQLMODEL_CREATE_ALL=1 (or 'true').
    """
    from . import models  # noqa: F401  registers tables on the metadata

    engine = get_engine()
    if _database_url() == "sqlite://":
        # In-memory sqlite for tests/dev: reset schema each init for isolation
        SQLModel.metadata.drop_all(engine)
        SQLModel.metadata.create_all(engine)
        return
    if is_create_all_enabled():
        SQLModel.metadata.create_all(engine)


def check_database() -> None:
    """Raise :class:`StoreError` when the database cannot be reached."""
    try:
        with get_session_ctx() as session:
            session.exec(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise StoreError(f"Database unreachable: {exc}") from exc


def _session_scope() -> Iterator[Session]:
    with Session(get_engine()) as session:
        yield session


@contextmanager
def get_session_ctx() -> Iterator[Session]:
    yield from _session_scope()


def get_session() -> Iterator[Session]:
    yield from _session_scope()


def is_postgres() -> bool:
    try:
        name = get_engine().url.get_backend_name()
    except Exception:  # noqa: BLE001
        # Fallback parse
        database_url = _database_url()
        name = (database_url.split(":", 1)[0] if ":" in database_url else "")
    return name.startswith("postgres")
