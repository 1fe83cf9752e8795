"""Capability interfaces the SQL stores satisfy."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol, Union, runtime_checkable

from timing_remote.db.types import (
    Account,
    Key,
    KeyAndAccount,
    Notification,
    NotificationType,
    Read,
)


@runtime_checkable
class AccountStore(Protocol):
    def add_account(self, account: Account) -> int: ...
    def get_account_by_email(self, email: str) -> Optional[Account]: ...
    def get_account_by_id(self, account_id: int) -> Optional[Account]: ...
    def get_account_by_key(self, key_value: str) -> Optional[Account]: ...
    def get_deleted_account(self, email: str) -> Optional[Account]: ...
    def list_accounts(self) -> list[Account]: ...
    def count_accounts(self) -> int: ...
    def delete_account(self, account_id: int) -> None: ...
    def resurrect_account(self, email: str) -> None: ...
    def update_account(self, account: Account) -> None: ...
    def change_password(self, email: str, digest: str, force_logout: bool = False) -> None: ...
    def change_email(self, old_email: str, new_email: str) -> None: ...
    def record_invalid_password(self, account: Account) -> Account: ...
    def record_valid_password(self, account: Account) -> None: ...
    def unlock_account(self, account: Account) -> None: ...
    def update_tokens(self, account: Account) -> None: ...


@runtime_checkable
class KeyStore(Protocol):
    def add_key(self, key: Key) -> None: ...
    def get_key(self, value: str) -> Optional[Key]: ...
    def list_account_keys(self, account: Union[int, str]) -> list[Key]: ...
    def list_sibling_keys(self, value: str) -> list[Key]: ...
    def update_key(self, key: Key) -> None: ...
    def delete_key(self, value: str) -> None: ...
    def resolve_key(self, value: str) -> Optional[KeyAndAccount]: ...


@runtime_checkable
class ReadStore(Protocol):
    def add_reads(self, key_value: str, reads: Iterable[Read]) -> list[Read]: ...
    def get_reads(self, account_id: int, reader_name: str, start: int, end: int) -> list[Read]: ...
    def delete_reads(self, account_id: int, reader_name: str, start: int, end: int) -> int: ...
    def delete_reads_before(self, account_id: int, reader_name: str, end: int) -> int: ...
    def delete_reader_reads(self, account_id: int, reader_name: str) -> int: ...
    def delete_key_reads(self, key_value: str) -> int: ...


@runtime_checkable
class NotificationStore(Protocol):
    def save_notification(
        self,
        type: Union[str, NotificationType],
        when: Union[str, datetime],
        key_value: str,
    ) -> bool: ...
    def get_notification(self, account_id: int, reader_name: str) -> Optional[Notification]: ...


@runtime_checkable
class SettingsStore(Protocol):
    def get_setting(self, name: str) -> Optional[str]: ...
    def set_setting(self, name: str, value: str) -> None: ...
