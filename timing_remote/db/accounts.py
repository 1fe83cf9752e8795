"""Account rows: credentials, lock state, tokens and soft deletion."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from timing_remote.auth.password import digest_looks_hashed
from timing_remote.core.exceptions import (
    AccountLockedError,
    AccountNotLockedError,
    ConflictError,
    DuplicateEmailError,
    NotFoundError,
    RowCountError,
    ValidationError,
)
from timing_remote.core.logging import get_logger
from timing_remote.db.types import Account

logger = get_logger(__name__)

_ACCOUNT_COLUMNS = (
    "a.account_id, a.account_name, a.account_email, a.account_password, "
    "a.account_type, a.account_wrong_pass, a.account_locked, "
    "a.account_token, a.account_refresh_token"
)


def _row_to_account(row) -> Account:
    return Account(
        id=row.account_id,
        name=row.account_name,
        email=row.account_email,
        password=row.account_password,
        type=row.account_type,
        wrong_pass=row.account_wrong_pass,
        locked=bool(row.account_locked),
        token=row.account_token,
        refresh_token=row.account_refresh_token,
    )


class AccountQueries:
    """Account store operations. Mixed into every backend store."""

    def add_account(self, account: Account) -> int:
        """Insert a new account and return its id.

        The password must already be a digest; plain text is refused.
        """
        if not digest_looks_hashed(account.password):
            raise ValidationError("Password must be hashed before storage")
        try:
            with self._transaction("add_account") as conn:
                account_id = self._insert_returning_id(
                    conn,
                    "INSERT INTO account (account_name, account_email, account_password, account_type) "
                    "VALUES (:name, :email, :password, :type)",
                    {
                        "name": account.name,
                        "email": account.email,
                        "password": account.password,
                        "type": account.type.value,
                    },
                    "account_id",
                )
        except ConflictError as exc:
            raise DuplicateEmailError(account.email) from exc
        account.id = account_id
        logger.info("Account added", data={"account_id": account_id, "type": account.type.value})
        return account_id

    def _select_account(self, conn: Connection, where: str, params: dict) -> Optional[Account]:
        row = conn.execute(
            text(f"SELECT {_ACCOUNT_COLUMNS} FROM account a WHERE {where}"), params
        ).first()
        return _row_to_account(row) if row else None

    def get_account_by_email(self, email: str) -> Optional[Account]:
        with self._transaction("get_account_by_email") as conn:
            return self._select_account(
                conn, "a.account_email = :email AND a.account_deleted = FALSE", {"email": email}
            )

    def get_account_by_id(self, account_id: int) -> Optional[Account]:
        with self._transaction("get_account_by_id") as conn:
            return self._select_account(
                conn, "a.account_id = :id AND a.account_deleted = FALSE", {"id": account_id}
            )

    def get_account_by_key(self, key_value: str) -> Optional[Account]:
        with self._transaction("get_account_by_key") as conn:
            row = conn.execute(
                text(
                    f"SELECT {_ACCOUNT_COLUMNS} FROM account a "
                    "JOIN api_key k ON k.account_id = a.account_id "
                    "WHERE k.key_value = :key AND k.key_deleted = FALSE "
                    "AND a.account_deleted = FALSE"
                ),
                {"key": key_value},
            ).first()
            return _row_to_account(row) if row else None

    def get_deleted_account(self, email: str) -> Optional[Account]:
        with self._transaction("get_deleted_account") as conn:
            return self._select_account(
                conn, "a.account_email = :email AND a.account_deleted = TRUE", {"email": email}
            )

    def list_accounts(self) -> list[Account]:
        with self._transaction("list_accounts") as conn:
            rows = conn.execute(
                text(
                    f"SELECT {_ACCOUNT_COLUMNS} FROM account a "
                    "WHERE a.account_deleted = FALSE ORDER BY a.account_id"
                )
            ).all()
            return [_row_to_account(row) for row in rows]

    def count_accounts(self) -> int:
        with self._transaction("count_accounts") as conn:
            return conn.execute(
                text("SELECT COUNT(*) FROM account WHERE account_deleted = FALSE")
            ).scalar_one()

    def delete_account(self, account_id: int) -> None:
        """Soft-delete an account and every key it owns, atomically."""
        with self._transaction("delete_account") as conn:
            result = conn.execute(
                text(
                    "UPDATE account SET account_deleted = TRUE "
                    "WHERE account_id = :id AND account_deleted = FALSE"
                ),
                {"id": account_id},
            )
            if result.rowcount != 1:
                raise RowCountError(1, result.rowcount, "delete_account")
            keys_deleted = conn.execute(
                text("UPDATE api_key SET key_deleted = TRUE WHERE account_id = :id"),
                {"id": account_id},
            ).rowcount
        logger.info(
            "Account deleted",
            data={"account_id": account_id, "keys_deleted": keys_deleted},
        )

    def resurrect_account(self, email: str) -> None:
        """Clear the soft-delete flag. Keys deleted with the account stay deleted."""
        with self._transaction("resurrect_account") as conn:
            result = conn.execute(
                text(
                    "UPDATE account SET account_deleted = FALSE "
                    "WHERE account_email = :email AND account_deleted = TRUE"
                ),
                {"email": email},
            )
            if result.rowcount != 1:
                raise RowCountError(1, result.rowcount, "resurrect_account")

    def update_account(self, account: Account) -> None:
        """Persist name and type, matched by email."""
        with self._transaction("update_account") as conn:
            result = conn.execute(
                text(
                    "UPDATE account SET account_name = :name, account_type = :type "
                    "WHERE account_email = :email AND account_deleted = FALSE"
                ),
                {"name": account.name, "type": account.type.value, "email": account.email},
            )
            if result.rowcount != 1:
                raise RowCountError(1, result.rowcount, "update_account")

    def change_password(self, email: str, digest: str, force_logout: bool = False) -> None:
        if not digest_looks_hashed(digest):
            raise ValidationError("Password must be hashed before storage")
        sql = "UPDATE account SET account_password = :password"
        if force_logout:
            sql += ", account_token = '', account_refresh_token = ''"
        sql += " WHERE account_email = :email AND account_deleted = FALSE"
        with self._transaction("change_password") as conn:
            result = conn.execute(text(sql), {"password": digest, "email": email})
            if result.rowcount != 1:
                raise RowCountError(1, result.rowcount, "change_password")

    def change_email(self, old_email: str, new_email: str) -> None:
        """Move an account to a new email and log it out everywhere."""
        try:
            with self._transaction("change_email") as conn:
                result = conn.execute(
                    text(
                        "UPDATE account SET account_email = :new_email, "
                        "account_token = '', account_refresh_token = '' "
                        "WHERE account_email = :old_email AND account_deleted = FALSE"
                    ),
                    {"new_email": new_email, "old_email": old_email},
                )
                if result.rowcount != 1:
                    raise RowCountError(1, result.rowcount, "change_email")
        except DuplicateEmailError:
            raise
        except ConflictError as exc:
            raise DuplicateEmailError(new_email) from exc

    def record_invalid_password(self, account: Account) -> Account:
        """Count a failed login; the attempt that reaches the limit locks the account.

        Locking also clears both tokens. Returns the refreshed account.
        """
        with self._transaction("record_invalid_password") as conn:
            # MySQL evaluates SET left to right, so the counter goes last.
            result = conn.execute(
                text(
                    "UPDATE account SET "
                    "account_locked = CASE WHEN account_wrong_pass + 1 >= :max "
                    "THEN TRUE ELSE account_locked END, "
                    "account_token = CASE WHEN account_wrong_pass + 1 >= :max "
                    "THEN '' ELSE account_token END, "
                    "account_refresh_token = CASE WHEN account_wrong_pass + 1 >= :max "
                    "THEN '' ELSE account_refresh_token END, "
                    "account_wrong_pass = account_wrong_pass + 1 "
                    "WHERE account_id = :id AND account_deleted = FALSE"
                ),
                {"id": account.id, "max": self.max_login_attempts},
            )
            if result.rowcount != 1:
                raise NotFoundError("Account not found")
            updated = self._select_account(conn, "a.account_id = :id", {"id": account.id})
        if updated.locked and not account.locked:
            logger.warning(
                "Account locked after repeated failed logins",
                data={"account_id": account.id, "attempts": updated.wrong_pass},
            )
        return updated

    def record_valid_password(self, account: Account) -> None:
        """Reset the failure counter; refused while the account is locked."""
        with self._transaction("record_valid_password") as conn:
            result = conn.execute(
                text(
                    "UPDATE account SET account_wrong_pass = 0 "
                    "WHERE account_id = :id AND account_locked = FALSE "
                    "AND account_deleted = FALSE"
                ),
                {"id": account.id},
            )
            if result.rowcount == 1:
                return
            current = self._select_account(
                conn, "a.account_id = :id AND a.account_deleted = FALSE", {"id": account.id}
            )
        if current is None:
            raise NotFoundError("Account not found")
        raise AccountLockedError()

    def unlock_account(self, account: Account) -> None:
        with self._transaction("unlock_account") as conn:
            result = conn.execute(
                text(
                    "UPDATE account SET account_locked = FALSE, account_wrong_pass = 0 "
                    "WHERE account_id = :id AND account_locked = TRUE "
                    "AND account_deleted = FALSE"
                ),
                {"id": account.id},
            )
            if result.rowcount == 1:
                logger.info("Account unlocked", data={"account_id": account.id})
                return
            current = self._select_account(
                conn, "a.account_id = :id AND a.account_deleted = FALSE", {"id": account.id}
            )
        if current is None:
            raise NotFoundError("Account not found")
        raise AccountNotLockedError()

    def update_tokens(self, account: Account) -> None:
        with self._transaction("update_tokens") as conn:
            result = conn.execute(
                text(
                    "UPDATE account SET account_token = :token, "
                    "account_refresh_token = :refresh_token "
                    "WHERE account_id = :id AND account_deleted = FALSE"
                ),
                {
                    "token": account.token,
                    "refresh_token": account.refresh_token,
                    "id": account.id,
                },
            )
            if result.rowcount != 1:
                raise RowCountError(1, result.rowcount, "update_tokens")
