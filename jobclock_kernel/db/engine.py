"""
Module: jobclock_kernel.db.engine
Responsibility: Owns the process-wide SQLAlchemy engine and session factory
    and the commit-or-rollback helper built on them.
Architecture position: Kernel > DB.  May import from db/base.py and, for
    create_tables/drop_tables only, the models package.

Backends:
    - PostgreSQL: READ COMMITTED with a bounded connection pool.  Jobs and
      inventory rows are locked explicitly with SELECT ... FOR UPDATE by
      the transaction coordinator.
    - SQLite: FOR UPDATE is a no-op, so every transaction opens with
      BEGIN IMMEDIATE and writers queue on the database lock for up to
      the busy timeout.

Failure modes:
    - RuntimeError from any accessor before init_engine_from_url().
    - OperationalError("database is locked") on SQLite when the busy
      timeout expires.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from jobclock_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """
    Create the engine and session factory, replacing any previous ones.

    Pool arguments apply to server databases only.  ``sqlite_busy_timeout``
    is how many seconds a SQLite writer waits for the database lock.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": sqlite_busy_timeout},
        )
        _use_begin_immediate(engine)
        pool: dict[str, Any] = {"busy_timeout": sqlite_busy_timeout}
    else:
        pool = {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_timeout": pool_timeout,
            "pool_recycle": pool_recycle,
        }
        engine = create_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            isolation_level="READ COMMITTED",
            **pool,
        )

    _engine = engine
    _SessionFactory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": engine.dialect.name, "echo": echo, **pool},
    )
    return engine


def _use_begin_immediate(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _manual_transactions(dbapi_connection, connection_record):
        # pysqlite must not emit its own deferred BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Session factory; every thread or request opens its own session from it."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Yield a session that commits when the block exits cleanly.

    Any exception rolls the session back and is re-raised.  The session is
    always closed.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    from jobclock_kernel.db.base import Base
    import jobclock_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())
    logger.info(
        "tables_created",
        extra={"tables": [t.name for t in Base.metadata.sorted_tables]},
    )


def drop_tables() -> None:
    """Drop every kernel table.  Tests only."""
    from jobclock_kernel.db.base import Base
    import jobclock_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)
