"""
Module: clm_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and the transactional scope helper.  Single point of database connection
    configuration.
Architecture position: Kernel > DB.  May import from db/base.py and
    db/immutability.py; create_tables also imports models/ so every table is
    registered on Base.metadata.

Invariants enforced:
    - Repositories never commit.  session_scope() is the one place a
      transaction is committed or rolled back.
    - PostgreSQL runs at READ COMMITTED with a pre-pinged QueuePool.  SQLite
      (tests, local runs) keeps SQLAlchemy's default pool.

Failure modes:
    - RuntimeError if get_engine/get_session is called before
      init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from clm_config.schema import DatabaseSettings
from clm_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


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
    Initialize the module-level engine and session factory.

    A second call replaces the first.  Pool settings apply to server
    databases only.
    """
    global _engine, _SessionFactory

    dialect = make_url(database_url).get_backend_name()
    if dialect == "sqlite":
        _engine = create_sqlite_engine(database_url, echo=echo)
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

    logger.info(
        "engine_initialized",
        extra={"dialect": dialect, "pool_size": pool_size, "echo": echo},
    )
    return _engine


def init_engine_from_settings(settings: DatabaseSettings) -> Engine:
    """Initialize the engine from a resolved ``DatabaseSettings``."""
    return init_engine_from_url(
        settings.url,
        echo=settings.echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )


def create_sqlite_engine(database_url: str = "sqlite://", echo: bool = False) -> Engine:
    """
    SQLite engine with working SAVEPOINT support.

    pysqlite defers BEGIN on its own, which breaks nested transactions;
    the driver's transaction handling is switched off and SQLAlchemy emits
    BEGIN itself.  In-memory databases share one connection (StaticPool).
    """
    url = make_url(database_url)
    if url.database in (None, "", ":memory:"):
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(database_url, echo=echo)

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Transactional scope around a series of service calls.

    Commits on normal exit; rolls back and re-raises on exception.

    Usage:
        with session_scope() as session:
            services = build_services(session)
            services.contracts.approve(tenant_id, actor, contract_id)
    """
    session = get_session()
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


def create_tables(engine: Engine | None = None) -> None:
    """Create every CLM table and register the audit immutability listeners."""
    from clm_kernel.db.base import Base
    from clm_kernel.db.immutability import register_immutability_listeners
    import clm_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    target = engine or get_engine()
    Base.metadata.create_all(target)
    register_immutability_listeners()
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables(engine: Engine | None = None) -> None:
    """Drop all tables. Testing only."""
    from clm_kernel.db.base import Base

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None
    _SessionFactory = None


atexit.register(reset_engine)
