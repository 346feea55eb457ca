"""
Module: billing_kernel.db.engine
Responsibility: The process-wide engine and session factory, and the
    commit-or-rollback scope every back-office operation runs in.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from domain/, services/, or outer layers (except create_tables,
    which imports the ORM registry so Base.metadata is complete).

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED with QueuePool and pre-ping.  The
      reconciliation workflow relies on conditional UPDATEs, not on a
      stronger isolation level.
    - SQLite is accepted for local use and tests.  Foreign keys are switched
      on per connection and every transaction begins IMMEDIATE, so two
      reviewers racing on one submission queue on the busy timeout instead
      of failing with "database is locked".

Failure modes:
    - RuntimeError if the engine is used before init_engine_from_url().
    - SQLAlchemy OperationalError / DBAPIError from the driver; the
      back-office facade turns these into PersistenceUnavailableError.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from billing_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _sqlite_on_connect(dbapi_connection, connection_record):
    # pysqlite must not open transactions itself or SAVEPOINT breaks.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _sqlite_on_begin(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def _build_sqlite_engine(database_url: str, echo: bool) -> Engine:
    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
        },
    )
    event.listen(engine, "connect", _sqlite_on_connect)
    event.listen(engine, "begin", _sqlite_on_begin)
    return engine


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the process-wide engine and session factory.

    Calling it again disposes the previous engine first.  Pool arguments
    apply to server databases only.

    Args:
        database_url: Any SQLAlchemy URL, e.g. ``postgresql://...`` or
            ``sqlite:///billing.db``.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    dialect = make_url(database_url).get_backend_name()
    if dialect == "sqlite":
        _engine = _build_sqlite_engine(database_url, echo)
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": dialect,
            "pool_size": None if dialect == "sqlite" else pool_size,
        },
    )
    return _engine


def _require_initialized() -> None:
    if _engine is None or _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")


def get_engine() -> Engine:
    _require_initialized()
    return _engine


def get_session() -> Session:
    """A new session from the process-wide factory."""
    _require_initialized()
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    The process-wide session factory.

    Each facade operation, and each thread in a concurrency test, opens its
    own session from it.
    """
    _require_initialized()
    return _SessionFactory


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    One transaction: commit on normal exit, roll back and re-raise otherwise.

    Usage:
        with session_scope(factory) as session:
            ReconciliationWorkflow(session, clock).approve(submission_id)
    """
    session = factory() if factory is not None else get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every billing table on the current engine."""
    from billing_kernel.db.base import Base
    from billing_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every billing table. Tests only."""
    from billing_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit():
    if _engine is not None:
        _engine.dispose()
