"""Storage layer: one store class per SQL backend behind shared interfaces."""

from __future__ import annotations

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from timing_remote.config import Settings
from timing_remote.core.exceptions import ConfigurationError
from timing_remote.core.logging import get_logger
from timing_remote.core.time import Clock, utcnow
from timing_remote.db.migrations import MigrationRunner
from timing_remote.db.mysql import MySQLStore
from timing_remote.db.postgres import PostgresStore
from timing_remote.db.protocols import (
    AccountStore,
    KeyStore,
    NotificationStore,
    ReadStore,
    SettingsStore,
)
from timing_remote.db.sqlite import SQLiteStore
from timing_remote.db.store import SQLStore

logger = get_logger(__name__)

_BACKENDS: dict[str, tuple[type[SQLStore], str]] = {
    "sqlite": (SQLiteStore, "pysqlite"),
    "postgresql": (PostgresStore, "psycopg"),
    "mysql": (MySQLStore, "pymysql"),
}


def open_store(settings: Settings, clock: Clock = utcnow) -> SQLStore:
    """Build the store for ``settings.database_url``.

    Bare ``postgresql://`` and ``mysql://`` URLs are pointed at the psycopg
    and PyMySQL drivers.
    """
    if not settings.database_url:
        raise ConfigurationError("DATABASE_URL is not set")
    try:
        url = make_url(settings.database_url)
    except ArgumentError as exc:
        raise ConfigurationError("DATABASE_URL could not be parsed") from exc

    backend = url.get_backend_name()
    if backend not in _BACKENDS:
        raise ConfigurationError(f"Unsupported database backend: {backend}")
    store_cls, driver = _BACKENDS[backend]
    if url.get_driver_name() != driver:
        url = url.set(drivername=f"{backend}+{driver}")

    engine = store_cls.create_engine(url.render_as_string(hide_password=False), settings)
    logger.info(
        "Database store opened",
        data={"backend": backend, "database": url.database},
    )
    return store_cls(
        engine,
        max_login_attempts=settings.max_login_attempts,
        clock=clock,
    )


__all__ = [
    "AccountStore",
    "KeyStore",
    "MigrationRunner",
    "MySQLStore",
    "NotificationStore",
    "PostgresStore",
    "ReadStore",
    "SQLStore",
    "SQLiteStore",
    "SettingsStore",
    "open_store",
]
