"""
Database engine and session handling for the engagement lifecycle.

One engine per process.  ``init_engine_from_url`` picks the pool for the
backend named in the URL:

* ``postgresql://...``: a sized ``QueuePool`` at READ COMMITTED.  Status
  checks that race a concurrent writer lock their row with
  ``SELECT ... FOR UPDATE``.
* ``sqlite://``: one shared connection (``StaticPool``) so an in-memory
  database survives across sessions.  SQLite has a single writer and
  ignores ``FOR UPDATE``.

Services never commit.  ``session_scope`` (tests, sinks) and the
operation boundary own the transaction.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from bench_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_NOT_READY = "Database not initialised; call init_engine_from_url() first"

_engine: Engine | None = None
_factory: sessionmaker[Session] | None = None


def _sqlite_engine(url: str, echo: bool) -> Engine:
    engine = create_engine(
        url,
        echo=echo,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    _enable_sqlite_savepoints(engine)
    return engine


def _postgres_engine(url: str, echo: bool, pool: dict[str, Any]) -> Engine:
    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        isolation_level="READ COMMITTED",
        **pool,
    )


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite delays BEGIN until the first write, which turns an early
    # SAVEPOINT into the outer transaction.  Issue BEGIN ourselves.
    @event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """Create the process engine and session factory for ``database_url``.

    Pool arguments only apply to PostgreSQL.  Calling this again replaces
    the previous engine without disposing it; call ``reset_engine`` first
    when that matters.
    """
    global _engine, _factory

    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        engine = _sqlite_engine(database_url, echo)
    else:
        engine = _postgres_engine(
            database_url,
            echo,
            {
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_pre_ping": pool_pre_ping,
                "pool_timeout": pool_timeout,
                "pool_recycle": pool_recycle,
            },
        )

    _engine = engine
    _factory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": backend,
            "pool_size": 1 if backend == "sqlite" else pool_size,
            "echo": echo,
        },
    )
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_READY)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory the operation boundary opens one session per operation from."""
    if _factory is None:
        raise RuntimeError(_NOT_READY)
    return _factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """Commit on a clean exit, roll back and re-raise otherwise; always close."""
    session = (factory or get_session_factory())()
    try:
        yield session
    except Exception:
        session.rollback()
        logger.debug("transaction_rolled_back")
        raise
    else:
        session.commit()
        logger.debug("transaction_committed")
    finally:
        session.close()


def create_tables() -> None:
    """Create the kernel tables and those of every lifecycle module."""
    from bench_kernel.db.base import Base
    from bench_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    from bench_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the factory."""
    global _engine, _factory

    engine, _engine, _factory = _engine, None, None
    if engine is not None:
        engine.dispose()


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
