"""
Warehouse connection pool.

The engine is created lazily on first use so that a missing DATABASE_URL
surfaces as a DatabaseConfigError at request time instead of an import-time
crash. Callers receive the engine and pass it into the query layer.
"""

import logging
import threading

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url

from . import config
from .warehouse import create_sqlite_warehouse

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_engine_lock = threading.Lock()


class DatabaseConfigError(RuntimeError):
    """Raised when the warehouse connection string is not configured."""


def create_warehouse_engine(url: str, ssl: bool = True) -> Engine:
    """Build a pooled SQLAlchemy engine for the warehouse at `url`.

    Postgres URLs (``postgres://`` or ``postgresql://``) are routed through
    the psycopg driver with SSL required unless `ssl` is False. SQLite URLs
    open a local demo warehouse with the schema attached; any other backend
    uses SQLAlchemy defaults.
    """
    parsed = make_url(url.replace("postgres://", "postgresql://", 1))

    if parsed.get_backend_name() == "sqlite":
        return create_sqlite_warehouse(parsed.database or None)

    if parsed.get_backend_name() != "postgresql":
        return create_engine(parsed)

    if parsed.drivername == "postgresql":
        parsed = parsed.set(drivername="postgresql+psycopg")

    engine = create_engine(
        parsed,
        pool_size=config.POOL_SIZE,
        max_overflow=0,
        pool_recycle=config.POOL_RECYCLE_SECONDS,
        pool_pre_ping=True,
        connect_args={
            "sslmode": "require" if ssl else "disable",
            "connect_timeout": config.CONNECT_TIMEOUT_SECONDS,
        },
    )

    @event.listens_for(engine, "handle_error")
    def _log_driver_error(context):
        logger.error(
            "Warehouse driver error (disconnect=%s): %s",
            context.is_disconnect,
            context.original_exception,
        )

    logger.info("Created warehouse engine for %s", parsed.render_as_string(hide_password=True))
    return engine


def get_engine() -> Engine:
    """Return the process-wide warehouse engine, creating it on first call."""
    global _engine

    if _engine is not None:
        return _engine

    with _engine_lock:
        if _engine is not None:
            return _engine

        url = config.database_url()
        if not url:
            raise DatabaseConfigError(config.MISSING_DATABASE_URL_MESSAGE)

        _engine = create_warehouse_engine(url, ssl=not config.ssl_disabled())
        return _engine


def dispose_engine() -> None:
    """Dispose of the pooled connections and forget the engine."""
    global _engine

    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
            logger.info("Disposed warehouse engine")
        _engine = None
