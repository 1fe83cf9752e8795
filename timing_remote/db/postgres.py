"""PostgreSQL backend (psycopg 3)."""

from __future__ import annotations

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError

from timing_remote.config import Settings
from timing_remote.db.schema import DialectSchema, Migration
from timing_remote.db.store import SQLStore

# query_canceled (statement_timeout) and lock_not_available
_TIMEOUT_SQLSTATES = {"57014", "55P03"}

_CREATE_V1 = (
    "CREATE TABLE IF NOT EXISTS settings ("
    "name VARCHAR(200) NOT NULL, "
    "value VARCHAR(200) NOT NULL, "
    "UNIQUE (name))",
    "CREATE TABLE IF NOT EXISTS account ("
    "account_id BIGSERIAL NOT NULL, "
    "account_name VARCHAR(100) NOT NULL, "
    "account_email VARCHAR(100) NOT NULL, "
    "account_password VARCHAR(300) NOT NULL, "
    "account_type VARCHAR(20) NOT NULL, "
    "account_wrong_pass INT NOT NULL DEFAULT 0, "
    "account_locked BOOL NOT NULL DEFAULT FALSE, "
    "account_token VARCHAR(1000) NOT NULL DEFAULT '', "
    "account_refresh_token VARCHAR(1000) NOT NULL DEFAULT '', "
    "account_created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP, "
    "account_updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP, "
    "account_deleted BOOL NOT NULL DEFAULT FALSE, "
    "UNIQUE (account_email), "
    "PRIMARY KEY (account_id))",
    "CREATE TABLE IF NOT EXISTS api_key ("
    "account_id BIGINT NOT NULL, "
    "key_name VARCHAR(100) NOT NULL DEFAULT '', "
    "key_value VARCHAR(100) NOT NULL, "
    "key_type VARCHAR(20) NOT NULL, "
    "reader_name VARCHAR(100) NOT NULL, "
    "valid_until TIMESTAMPTZ DEFAULT NULL, "
    "key_deleted BOOL NOT NULL DEFAULT FALSE, "
    "key_created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP, "
    "key_updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP, "
    "UNIQUE (key_value), "
    "FOREIGN KEY (account_id) REFERENCES account(account_id))",
    # reader names only need to be unique among live keys
    "CREATE UNIQUE INDEX IF NOT EXISTS api_key_live_reader "
    "ON api_key (account_id, reader_name) WHERE key_deleted = FALSE",
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
    "read_created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP, "
    "UNIQUE (key_value, identifier, seconds, milliseconds, ident_type), "
    "FOREIGN KEY (key_value) REFERENCES api_key(key_value))",
    "CREATE OR REPLACE FUNCTION account_timestamp_column() "
    "RETURNS TRIGGER AS $$ "
    "BEGIN NEW.account_updated_at = now(); RETURN NEW; END; "
    "$$ LANGUAGE plpgsql",
    "CREATE OR REPLACE FUNCTION key_timestamp_column() "
    "RETURNS TRIGGER AS $$ "
    "BEGIN NEW.key_updated_at = now(); RETURN NEW; END; "
    "$$ LANGUAGE plpgsql",
    "DROP TRIGGER IF EXISTS update_account_timestamp ON account",
    "CREATE TRIGGER update_account_timestamp BEFORE UPDATE ON account "
    "FOR EACH ROW EXECUTE PROCEDURE account_timestamp_column()",
    "DROP TRIGGER IF EXISTS update_key_timestamp ON api_key",
    "CREATE TRIGGER update_key_timestamp BEFORE UPDATE ON api_key "
    "FOR EACH ROW EXECUTE PROCEDURE key_timestamp_column()",
)

_CREATE_V2 = (
    "CREATE TABLE IF NOT EXISTS notification ("
    "notification_id BIGSERIAL NOT NULL, "
    "key_value VARCHAR(100) NOT NULL, "
    "notification_type VARCHAR(100) NOT NULL, "
    "notification_when BIGINT NOT NULL, "
    "notification_created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP, "
    "UNIQUE (key_value, notification_when), "
    "FOREIGN KEY (key_value) REFERENCES api_key(key_value), "
    "PRIMARY KEY (notification_id))",
)

SCHEMA = DialectSchema(
    name="postgresql",
    create=_CREATE_V1 + _CREATE_V2,
    upgrades=(Migration(1, 2, "add notification table", _CREATE_V2),),
)


class PostgresStore(SQLStore):
    backend = "postgresql"
    schema = SCHEMA

    upsert_setting_sql = (
        "INSERT INTO settings (name, value) VALUES (:name, :value) "
        "ON CONFLICT (name) DO UPDATE SET value = EXCLUDED.value"
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
        timeout = settings.db_statement_timeout_seconds
        connect_args = {
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
        if settings.db_require_ssl:
            connect_args["sslmode"] = "require"
        return create_engine(
            url,
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle_seconds,
            pool_timeout=timeout,
            connect_args=connect_args,
        )

    def _is_timeout(self, exc: OperationalError) -> bool:
        return getattr(exc.orig, "sqlstate", None) in _TIMEOUT_SQLSTATES

    def _insert_returning_id(
        self, conn: Connection, sql: str, params: dict, id_column: str
    ) -> int:
        return conn.execute(text(f"{sql} RETURNING {id_column}"), params).scalar_one()
