"""
Module: garage_kernel.db.engine
Responsibility: Process-wide SQLAlchemy engine and session factory for the
    read side of reconciliation.
Architecture position: Kernel > DB.  May import from db/base.py.
    create_tables/drop_tables import garage_kernel.models lazily so that
    every table is registered before DDL runs.

Backends:
    - PostgreSQL (production): QueuePool with pre-ping, READ COMMITTED.  Report
      fan-out opens one session per worker, so pool_size should cover
      ``reporting.max_workers``.
    - SQLite (tests, local tooling): one shared connection (StaticPool) so
      that an in-memory database is visible from every worker thread.

Failure modes:
    - RuntimeError if the engine is used before init_engine_from_url() or
      init_engine_from_config().
"""

from __future__ import annotations

import atexit
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from garage_kernel.logging_config import configure_logging, get_logger

if TYPE_CHECKING:
    from garage_config.schema import DatabaseConfig

logger = get_logger("db.engine")


class _Registry:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None


def _sqlite_options(**_: Any) -> dict[str, Any]:
    return {
        "poolclass": StaticPool,
        "connect_args": {"check_same_thread": False},
    }


def _pooled_options(
    *,
    pool_size: int,
    max_overflow: int,
    pool_pre_ping: bool,
    pool_timeout: int,
    pool_recycle: int,
) -> dict[str, Any]:
    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": pool_pre_ping,
        "pool_timeout": pool_timeout,
        "pool_recycle": pool_recycle,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the process-wide engine.  A second call replaces the first.

    Args:
        database_url: ``postgresql://...`` or ``sqlite://...``.
        echo: Log every SQL statement.
        pool_size, max_overflow, pool_pre_ping, pool_timeout, pool_recycle:
            Connection pool settings; ignored for SQLite.
    """
    backend = make_url(database_url).get_backend_name()
    build = _sqlite_options if backend == "sqlite" else _pooled_options
    options = build(
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
    )

    if _Registry.engine is not None:
        _Registry.engine.dispose()
    _Registry.engine = create_engine(database_url, echo=echo, **options)
    _Registry.sessions = sessionmaker(bind=_Registry.engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={
        "dialect": backend,
        "pool": options["poolclass"].__name__,
        "echo": echo,
    })
    return _Registry.engine


def init_engine_from_config(database: DatabaseConfig) -> Engine:
    """Create the process-wide engine from the ``database`` config section."""
    return init_engine_from_url(
        database.url,
        echo=database.echo,
        pool_size=database.pool_size,
    )


def get_engine() -> Engine:
    if _Registry.engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _Registry.engine


def get_session_factory() -> sessionmaker[Session]:
    """Session factory handed to SqlEventStore; one session per read."""
    if _Registry.sessions is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _Registry.sessions


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on success, roll back and re-raise on failure, always close.

    Used by seeding and maintenance code; the reconciliation read path never
    writes.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    from garage_kernel.db.base import Base
    import garage_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    from garage_kernel.db.base import Base
    import garage_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    if _Registry.engine is not None:
        _Registry.engine.dispose()
    _Registry.engine = None
    _Registry.sessions = None


atexit.register(reset_engine)
