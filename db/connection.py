"""Engine and session plumbing shared by the API, the CLI and the worker."""

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session, sessionmaker

from config import DatabaseSettings, get_settings
from db.models import Base

logger = logging.getLogger(__name__)

REQUIRED_TABLES: tuple[str, ...] = tuple(Base.metadata.tables)

_SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys=ON",
    "PRAGMA journal_mode=WAL",
    "PRAGMA busy_timeout=30000",
    "PRAGMA synchronous=NORMAL",
)

_engine: Engine | None = None
_factory: sessionmaker[Session] | None = None


def enable_sqlite_savepoints(engine: Engine, pragmas: bool = True) -> None:
    """Hand BEGIN to SQLAlchemy on pysqlite.

    Ledger calls roll back through ``Session.begin_nested()``. pysqlite's own
    deferred BEGIN silently drops those savepoints.
    """

    @event.listens_for(engine, "connect")
    def _connect(dbapi_conn: Any, _record: Any) -> None:
        dbapi_conn.isolation_level = None
        if not pragmas:
            return
        cursor = dbapi_conn.cursor()
        for statement in _SQLITE_PRAGMAS:
            cursor.execute(statement)
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN")


def _build_engine(db: DatabaseSettings, echo: bool) -> Engine:
    if db.is_postgres:
        return create_engine(
            db.url,
            echo=echo,
            pool_size=db.pool_size,
            pool_timeout=db.pool_timeout,
            pool_recycle=db.pool_recycle,
            pool_pre_ping=True,
        )
    engine = create_engine(db.url, echo=echo)
    enable_sqlite_savepoints(engine)
    return engine


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = _build_engine(settings.database, settings.debug)
        logger.debug("Engine created for %s", settings.database.describe())
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    global _factory
    if _factory is None:
        _factory = sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)
    return _factory


def _unit_of_work() -> Iterator[Session]:
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """One committed unit of work; rolled back if the block raises."""
    yield from _unit_of_work()


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session for FastAPI ``Depends``."""
    yield from _unit_of_work()


def verify_required_tables(engine: Engine | None = None) -> list[str]:
    """Names from REQUIRED_TABLES absent in the database."""
    present = set(inspect(engine or get_engine()).get_table_names())
    return [name for name in REQUIRED_TABLES if name not in present]


def init_database(force: bool = False) -> None:
    """Create the ledger schema from the ORM metadata.

    Safe to repeat; with ``force`` every ledger table is dropped first.
    """
    engine = get_engine()
    if force:
        Base.metadata.drop_all(engine)
        logger.warning("Dropped ledger tables before init")

    created = verify_required_tables(engine)
    Base.metadata.create_all(engine)
    missing = verify_required_tables(engine)
    if missing:
        raise RuntimeError(f"Tables still missing after create_all: {missing}")
    logger.info("Schema ready (created: %s)", ", ".join(created) or "none")


def reset_engine() -> None:
    """Drop the cached engine so the next call rereads settings."""
    global _engine, _factory
    if _engine is not None:
        _engine.dispose()
    _engine, _factory = None, None
