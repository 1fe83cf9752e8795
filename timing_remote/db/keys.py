"""Key rows: scoped bearer credentials bound to an account and a reader name."""

from __future__ import annotations

from typing import Optional, Union

from sqlalchemy import text

from timing_remote.core.exceptions import RowCountError
from timing_remote.core.logging import get_logger
from timing_remote.db.accounts import _ACCOUNT_COLUMNS, _row_to_account
from timing_remote.db.types import Key, KeyAndAccount

logger = get_logger(__name__)

_KEY_FIELDS = "k.key_name, k.key_value, k.key_type, k.reader_name, k.valid_until"
_KEY_COLUMNS = f"k.account_id, {_KEY_FIELDS}"


class KeyQueries:
    """Key store operations plus the joint key+account lookup."""

    def _row_to_key(self, row) -> Key:
        return Key(
            account_id=row.account_id,
            name=row.key_name,
            value=row.key_value,
            scope=row.key_type,
            reader_name=row.reader_name,
            valid_until=self._decode_time(row.valid_until),
        )

    def _key_params(self, key: Key) -> dict:
        return {
            "account_id": key.account_id,
            "name": key.name,
            "value": key.value,
            "scope": key.scope.value,
            "reader_name": key.reader_name,
            "valid_until": self._encode_time(key.valid_until),
        }

    def add_key(self, key: Key) -> None:
        """Insert a key. Duplicate value, duplicate reader name or unknown account raise ConflictError."""
        with self._transaction("add_key") as conn:
            conn.execute(
                text(
                    "INSERT INTO api_key (account_id, key_name, key_value, key_type, reader_name, valid_until) "
                    "VALUES (:account_id, :name, :value, :scope, :reader_name, :valid_until)"
                ),
                self._key_params(key),
            )
        logger.info(
            "Key added",
            data={"account_id": key.account_id, "reader": key.reader_name, "scope": key.scope.value},
        )

    def get_key(self, value: str) -> Optional[Key]:
        with self._transaction("get_key") as conn:
            row = conn.execute(
                text(
                    f"SELECT {_KEY_COLUMNS} FROM api_key k "
                    "WHERE k.key_value = :value AND k.key_deleted = FALSE"
                ),
                {"value": value},
            ).first()
            return self._row_to_key(row) if row else None

    def list_account_keys(self, account: Union[int, str]) -> list[Key]:
        """Keys of an account given its id or its email."""
        if isinstance(account, int):
            where, params = "a.account_id = :id", {"id": account}
        else:
            where, params = "a.account_email = :email", {"email": account}
        with self._transaction("list_account_keys") as conn:
            rows = conn.execute(
                text(
                    f"SELECT {_KEY_COLUMNS} FROM api_key k "
                    "JOIN account a ON a.account_id = k.account_id "
                    f"WHERE {where} AND a.account_deleted = FALSE AND k.key_deleted = FALSE "
                    "ORDER BY k.reader_name"
                ),
                params,
            ).all()
            return [self._row_to_key(row) for row in rows]

    def list_sibling_keys(self, value: str) -> list[Key]:
        """Every live key of the account that owns ``value``, itself included."""
        with self._transaction("list_sibling_keys") as conn:
            rows = conn.execute(
                text(
                    f"SELECT {_KEY_COLUMNS} FROM api_key k "
                    "WHERE k.account_id = (SELECT o.account_id FROM api_key o WHERE o.key_value = :value) "
                    "AND k.key_deleted = FALSE ORDER BY k.reader_name"
                ),
                {"value": value},
            ).all()
            return [self._row_to_key(row) for row in rows]

    def update_key(self, key: Key) -> None:
        """Persist name, scope, reader name and expiration for ``key.value``."""
        params = self._key_params(key)
        del params["account_id"]
        with self._transaction("update_key") as conn:
            result = conn.execute(
                text(
                    "UPDATE api_key SET key_name = :name, key_type = :scope, "
                    "reader_name = :reader_name, valid_until = :valid_until "
                    "WHERE key_value = :value AND key_deleted = FALSE"
                ),
                params,
            )
            if result.rowcount != 1:
                raise RowCountError(1, result.rowcount, "update_key")

    def delete_key(self, value: str) -> None:
        """Soft-delete a key. Its reads and notifications are kept."""
        with self._transaction("delete_key") as conn:
            result = conn.execute(
                text(
                    "UPDATE api_key SET key_deleted = TRUE "
                    "WHERE key_value = :value AND key_deleted = FALSE"
                ),
                {"value": value},
            )
            if result.rowcount != 1:
                raise RowCountError(1, result.rowcount, "delete_key")

    def resolve_key(self, value: str) -> Optional[KeyAndAccount]:
        """Fetch a live key together with its live owning account in one query."""
        with self._transaction("resolve_key") as conn:
            row = conn.execute(
                text(
                    # a.account_id doubles as the key owner column
                    f"SELECT {_KEY_FIELDS}, {_ACCOUNT_COLUMNS} FROM api_key k "
                    "JOIN account a ON a.account_id = k.account_id "
                    "WHERE k.key_value = :value AND k.key_deleted = FALSE "
                    "AND a.account_deleted = FALSE"
                ),
                {"value": value},
            ).first()
        if row is None:
            return None
        return KeyAndAccount(key=self._row_to_key(row), account=_row_to_account(row))
