"""MySQL backend (PyMySQL)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, OperationalError

from timing_remote.config import Settings
from timing_remote.core.time import ensure_utc
from timing_remote.db.schema import DialectSchema, Migration
from timing_remote.db.store import SQLStore

# lock wait timeout, lost connection mid-query (read timeout), max_execution_time
_TIMEOUT_ERRNOS = {1205, 2013, 3024}
_DUPLICATE_ENTRY = 1062


def _errno(exc) -> Optional[int]:
    args = getattr(exc.orig, "args", ())
    return args[0] if args else None


# Binary collation keeps email and key comparisons case-sensitive
_CREATE_V1 = (
    "CREATE TABLE IF NOT EXISTS settings ("
    "name VARCHAR(200) NOT NULL, "
    "value VARCHAR(200) NOT NULL, "
    "UNIQUE (name)) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_bin",
    "CREATE TABLE IF NOT EXISTS account ("
    "account_id BIGINT NOT NULL AUTO_INCREMENT, "
    "account_name VARCHAR(100) NOT NULL, "
    "account_email VARCHAR(100) NOT NULL, "
    "account_password VARCHAR(300) NOT NULL, "
    "account_type VARCHAR(20) NOT NULL, "
    "account_wrong_pass INT NOT NULL DEFAULT 0, "
    "account_locked BOOL NOT NULL DEFAULT FALSE, "
    "account_token VARCHAR(1000) NOT NULL DEFAULT '', "
    "account_refresh_token VARCHAR(1000) NOT NULL DEFAULT '', "
    "account_created_at DATETIME DEFAULT CURRENT_TIMESTAMP, "
    "account_updated_at DATETIME DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP, "
    "account_deleted BOOL NOT NULL DEFAULT FALSE, "
    "UNIQUE (account_email), "
    "PRIMARY KEY (account_id)) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_bin",
    "CREATE TABLE IF NOT EXISTS api_key ("
    "account_id BIGINT NOT NULL, "
    "key_name VARCHAR(100) NOT NULL DEFAULT '', "
    "key_value VARCHAR(100) NOT NULL, "
    "key_type VARCHAR(20) NOT NULL, "
    "reader_name VARCHAR(100) NOT NULL, "
    "valid_until DATETIME DEFAULT NULL, "
    "key_deleted BOOL NOT NULL DEFAULT FALSE, "
    "key_created_at DATETIME DEFAULT CURRENT_TIMESTAMP, "
    "key_updated_at DATETIME DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP, "
    # NULL for deleted keys, so reader names only collide among live keys
    "live_reader_name VARCHAR(100) AS (IF(key_deleted, NULL, reader_name)) STORED, "
    "UNIQUE (key_value), "
    "UNIQUE (account_id, live_reader_name), "
    "FOREIGN KEY (account_id) REFERENCES account(account_id)) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_bin",
    "CREATE TABLE IF NOT EXISTS a_read ("
    "key_value VARCHAR(100) NOT NULL, "
    "identifier VARCHAR(100) NOT NULL, "
    "seconds BIGINT NOT NULL DEFAULT 0, "
    "milliseconds INT NOT NULL DEFAULT 0, "
    "ident_type VARCHAR(25) NOT NULL DEFAULT 'chip', "
    "type VARCHAR(25) NOT NULL DEFAULT '', "
    "antenna INT NOT NULL DEFAULT 0, "
    "reader VARCHAR(50) NOT NULL DEFAULT '', "
    "rssi VARCHAR(10) NOT NULL DEFAULT '', "
    "read_created_at DATETIME DEFAULT CURRENT_TIMESTAMP, "
    "UNIQUE (key_value, identifier, seconds, milliseconds, ident_type), "
    "FOREIGN KEY (key_value) REFERENCES api_key(key_value)) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_bin",
)

_CREATE_V2 = (
    "CREATE TABLE IF NOT EXISTS notification ("
    "notification_id BIGINT NOT NULL AUTO_INCREMENT, "
    "key_value VARCHAR(100) NOT NULL, "
    "notification_type VARCHAR(100) NOT NULL, "
    "notification_when BIGINT NOT NULL, "
    "notification_created_at DATETIME DEFAULT CURRENT_TIMESTAMP, "
    "UNIQUE (key_value, notification_when), "
    "FOREIGN KEY (key_value) REFERENCES api_key(key_value), "
    "PRIMARY KEY (notification_id)) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_bin",
)

SCHEMA = DialectSchema(
    name="mysql",
    create=_CREATE_V1 + _CREATE_V2,
    upgrades=(Migration(1, 2, "add notification table", _CREATE_V2),),
)


class MySQLStore(SQLStore):
    """MySQL store.

    DDL commits implicitly in MySQL, so a failed schema step cannot be rolled
    back; every statement is guarded with IF NOT EXISTS so the step can be
    retried.
    """

    backend = "mysql"
    schema = SCHEMA

    upsert_setting_sql = (
        "INSERT INTO settings (name, value) VALUES (:name, :value) "
        "ON DUPLICATE KEY UPDATE value = VALUES(value)"
    )
    insert_read_sql = (
        "INSERT INTO a_read (key_value, identifier, seconds, milliseconds, ident_type, type, antenna, reader, rssi) "
        "VALUES (:key_value, :identifier, :seconds, :milliseconds, :ident_type, :kind, :antenna, :reader, :rssi) "
        "ON DUPLICATE KEY UPDATE key_value = key_value"
    )
    insert_notification_sql = (
        "INSERT INTO notification (key_value, notification_type, notification_when) "
        "VALUES (:key_value, :type, :when)"
    )

    @classmethod
    def create_engine(cls, url: str, settings: Settings) -> Engine:
        timeout = max(1, int(settings.db_statement_timeout_seconds))
        return create_engine(
            url,
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle_seconds,
            pool_timeout=settings.db_statement_timeout_seconds,
            connect_args={
                "connect_timeout": timeout,
                "read_timeout": timeout,
                "write_timeout": timeout,
                "charset": "utf8mb4",
                "init_command": "SET time_zone = '+00:00'",
            },
        )

    def _is_timeout(self, exc: OperationalError) -> bool:
        return _errno(exc) in _TIMEOUT_ERRNOS

    def _encode_time(self, value: Optional[datetime]) -> Any:
        # DATETIME has no zone; store naive UTC
        value = ensure_utc(value)
        return value.replace(tzinfo=None) if value else None

    def _insert_notification(self, conn: Connection, params: dict) -> bool:
        # ON DUPLICATE KEY reports a matched row either way under
        # CLIENT_FOUND_ROWS, so insert plainly and treat 1062 as the duplicate.
        try:
            conn.execute(text(self.insert_notification_sql), params)
        except IntegrityError as exc:
            if _errno(exc) == _DUPLICATE_ENTRY:
                return False
            raise
        return True
