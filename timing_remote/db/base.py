"""Shared plumbing for the SQL-backed stores.

Each backend subclass owns one SQLAlchemy engine (and therefore one
connection pool). Every public store call runs inside
:meth:`SQLStoreBase._transaction`, which commits on success, rolls back on
any exception and translates driver failures into the
:mod:`timing_remote.core.exceptions` hierarchy.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from timing_remote.core.exceptions import (
    ConflictError,
    DatabaseConnectionError,
    StorageError,
    StorageTimeout,
    TimingRemoteError,
)
from timing_remote.core.logging import get_logger
from timing_remote.core.time import Clock, ensure_utc, utcnow
from timing_remote.db.schema import DialectSchema

logger = get_logger(__name__)

VERSION_SETTING = "version"


class SQLStoreBase:
    """Engine ownership, transactions, error translation and the settings table."""

    #: Backend name as reported by ``make_url(url).get_backend_name()``
    backend: str = ""
    #: DDL catalog for this backend
    schema: DialectSchema
    #: ``INSERT`` for the settings table that overwrites an existing name
    upsert_setting_sql: str = ""

    def __init__(
        self,
        engine: Engine,
        max_login_attempts: int = 4,
        clock: Clock = utcnow,
    ):
        self.engine = engine
        self.max_login_attempts = max_login_attempts
        self.clock = clock

    # -- lifecycle ---------------------------------------------------------

    def ping(self) -> None:
        """Check the database answers; raise DatabaseConnectionError if not."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except (DBAPIError, PoolTimeoutError) as exc:
            raise DatabaseConnectionError(
                "Unable to connect to database",
                details={"backend": self.backend, "error": type(exc).__name__},
            ) from exc

    def close(self) -> None:
        """Release every pooled connection."""
        self.engine.dispose()

    # -- transactions ------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except TimingRemoteError:
            raise
        except PoolTimeoutError as exc:
            logger.warning("Connection pool exhausted", data={"operation": operation})
            raise StorageTimeout(operation=operation) from exc
        except IntegrityError as exc:
            raise ConflictError(f"{operation}: constraint violated") from exc
        except OperationalError as exc:
            if self._is_timeout(exc):
                logger.warning("Statement timed out", data={"operation": operation})
                raise StorageTimeout(operation=operation) from exc
            logger.error(
                "Storage operation failed",
                data={"operation": operation, "error": str(exc.orig)},
            )
            raise StorageError(f"{operation} failed", operation=operation) from exc
        except DBAPIError as exc:
            logger.error(
                "Storage operation failed",
                data={"operation": operation, "error": str(exc.orig)},
            )
            raise StorageError(f"{operation} failed", operation=operation) from exc

    def _is_timeout(self, exc: OperationalError) -> bool:
        """Whether the driver error is the backend's statement timeout."""
        return False

    # -- inserts that need the generated id --------------------------------

    def _insert_returning_id(
        self, conn: Connection, sql: str, params: dict, id_column: str
    ) -> int:
        return conn.execute(text(sql), params).lastrowid

    # -- time encoding -----------------------------------------------------

    def _encode_time(self, value: Optional[datetime]) -> Any:
        """Convert an aware datetime into what the driver should bind."""
        return ensure_utc(value)

    def _decode_time(self, value: Any) -> Optional[datetime]:
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        return ensure_utc(value)

    # -- settings table ----------------------------------------------------

    def get_setting(self, name: str) -> Optional[str]:
        with self._transaction("get_setting") as conn:
            return conn.execute(
                text("SELECT value FROM settings WHERE name = :name"),
                {"name": name},
            ).scalar_one_or_none()

    def set_setting(self, name: str, value: str) -> None:
        with self._transaction("set_setting") as conn:
            self._upsert_setting(conn, name, value)

    def _upsert_setting(self, conn: Connection, name: str, value: str) -> None:
        conn.execute(text(self.upsert_setting_sql), {"name": name, "value": value})

    def _read_version(self) -> int:
        """Stored schema version, or -1 when it is missing or unreadable."""
        try:
            with self.engine.connect() as conn:
                raw = conn.execute(
                    text("SELECT value FROM settings WHERE name = :name"),
                    {"name": VERSION_SETTING},
                ).scalar_one_or_none()
        except (DBAPIError, PoolTimeoutError) as exc:
            logger.debug("Schema version unreadable", data={"error": str(exc)})
            return -1
        if raw is None:
            return -1
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning("Schema version unparsable", data={"value": raw})
            return -1
