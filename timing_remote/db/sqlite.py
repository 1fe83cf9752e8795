"""SQLite backend."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from timing_remote.config import Settings
from timing_remote.core.time import ensure_utc
from timing_remote.db.schema import DialectSchema, Migration
from timing_remote.db.store import SQLStore

_CREATE_V1 = (
    "CREATE TABLE IF NOT EXISTS settings ("
    "name VARCHAR(200) NOT NULL, "
    "value VARCHAR(200) NOT NULL, "
    "UNIQUE (name))",
    "CREATE TABLE IF NOT EXISTS account ("
    "account_id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "account_name VARCHAR(100) NOT NULL, "
    "account_email VARCHAR(100) NOT NULL, "
    "account_password VARCHAR(300) NOT NULL, "
    "account_type VARCHAR(20) NOT NULL, "
    "account_wrong_pass INTEGER NOT NULL DEFAULT 0, "
    "account_locked BOOLEAN NOT NULL DEFAULT FALSE, "
    "account_token VARCHAR(1000) NOT NULL DEFAULT '', "
    "account_refresh_token VARCHAR(1000) NOT NULL DEFAULT '', "
    "account_created_at DATETIME DEFAULT CURRENT_TIMESTAMP, "
    "account_updated_at DATETIME DEFAULT CURRENT_TIMESTAMP, "
    "account_deleted BOOLEAN NOT NULL DEFAULT FALSE, "
    "UNIQUE (account_email))",
    "CREATE TABLE IF NOT EXISTS api_key ("
    "account_id INTEGER NOT NULL, "
    "key_name VARCHAR(100) NOT NULL DEFAULT '', "
    "key_value VARCHAR(100) NOT NULL, "
    "key_type VARCHAR(20) NOT NULL, "
    "reader_name VARCHAR(100) NOT NULL, "
    "valid_until DATETIME DEFAULT NULL, "
    "key_deleted BOOLEAN NOT NULL DEFAULT FALSE, "
    "key_created_at DATETIME DEFAULT CURRENT_TIMESTAMP, "
    "key_updated_at DATETIME DEFAULT CURRENT_TIMESTAMP, "
    "UNIQUE (key_value), "
    "FOREIGN KEY (account_id) REFERENCES account(account_id))",
    # reader names only need to be unique among live keys
    "CREATE UNIQUE INDEX IF NOT EXISTS api_key_live_reader "
    "ON api_key (account_id, reader_name) WHERE key_deleted = FALSE",
    "CREATE TABLE IF NOT EXISTS a_read ("
    "key_value VARCHAR(100) NOT NULL, "
    "identifier VARCHAR(100) NOT NULL, "
    "seconds BIGINT NOT NULL DEFAULT 0, "
    "milliseconds INTEGER NOT NULL DEFAULT 0, "
    "ident_type VARCHAR(25) NOT NULL DEFAULT 'chip', "
    "type VARCHAR(25) NOT NULL DEFAULT '', "
    "antenna INTEGER NOT NULL DEFAULT 0, "
    "reader VARCHAR(50) NOT NULL DEFAULT '', "
    "rssi VARCHAR(10) NOT NULL DEFAULT '', "
    "read_created_at DATETIME DEFAULT CURRENT_TIMESTAMP, "
    "UNIQUE (key_value, identifier, seconds, milliseconds, ident_type), "
    "FOREIGN KEY (key_value) REFERENCES api_key(key_value))",
    "CREATE TRIGGER IF NOT EXISTS account_updated_at "
    "AFTER UPDATE ON account FOR EACH ROW BEGIN "
    "UPDATE account SET account_updated_at = CURRENT_TIMESTAMP "
    "WHERE account_id = NEW.account_id; END",
    "CREATE TRIGGER IF NOT EXISTS key_updated_at "
    "AFTER UPDATE ON api_key FOR EACH ROW BEGIN "
    "UPDATE api_key SET key_updated_at = CURRENT_TIMESTAMP "
    "WHERE key_value = NEW.key_value; END",
)

_CREATE_V2 = (
    "CREATE TABLE IF NOT EXISTS notification ("
    "notification_id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "key_value VARCHAR(100) NOT NULL, "
    "notification_type VARCHAR(100) NOT NULL, "
    "notification_when BIGINT NOT NULL, "
    "notification_created_at DATETIME DEFAULT CURRENT_TIMESTAMP, "
    "UNIQUE (key_value, notification_when), "
    "FOREIGN KEY (key_value) REFERENCES api_key(key_value))",
)

SCHEMA = DialectSchema(
    name="sqlite",
    create=_CREATE_V1 + _CREATE_V2,
    upgrades=(Migration(1, 2, "add notification table", _CREATE_V2),),
)

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class SQLiteStore(SQLStore):
    backend = "sqlite"
    schema = SCHEMA

    upsert_setting_sql = (
        "INSERT INTO settings (name, value) VALUES (:name, :value) "
        "ON CONFLICT (name) DO UPDATE SET value = excluded.value"
    )
    insert_read_sql = (
        "INSERT INTO a_read (key_value, identifier, seconds, milliseconds, ident_type, type, antenna, reader, rssi) "
        "VALUES (:key_value, :identifier, :seconds, :milliseconds, :ident_type, :kind, :antenna, :reader, :rssi) "
        "ON CONFLICT (key_value, identifier, seconds, milliseconds, ident_type) DO NOTHING"
    )
    insert_notification_sql = (
        "INSERT INTO notification (key_value, notification_type, notification_when) "
        "VALUES (:key_value, :type, :when) "
        "ON CONFLICT (key_value, notification_when) DO NOTHING"
    )

    @classmethod
    def create_engine(cls, url: str, settings: Settings) -> Engine:
        engine = create_engine(
            url,
            pool_pre_ping=True,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.db_statement_timeout_seconds,
            },
        )

        # pysqlite's own transaction handling skips DDL; take it over so
        # schema creation commits or rolls back as a unit.
        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return engine

    def _is_timeout(self, exc: OperationalError) -> bool:
        message = str(exc.orig).lower()
        return "database is locked" in message or "database is busy" in message

    def _encode_time(self, value: Optional[datetime]) -> Any:
        value = ensure_utc(value)
        return value.strftime(_TIME_FORMAT) if value else None
