"""Domain records handed between the stores and their callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from timing_remote.core.time import ensure_utc, utcnow


class AccountType(str, Enum):
    FREE = "free"
    PAID = "paid"
    ADMIN = "admin"


class KeyScope(str, Enum):
    """The single capability a key grants."""
    READ = "read"
    WRITE = "write"
    DELETE = "delete"


class IdentType(str, Enum):
    CHIP = "chip"
    BIB = "bib"


class ReadKind(str, Enum):
    READER = "reader"
    MANUAL = "manual"


class NotificationType(str, Enum):
    """Device-health events a reader may report."""
    UPS_DISCONNECTED = "UPS_DISCONNECTED"
    UPS_CONNECTED = "UPS_CONNECTED"
    UPS_ON_BATTERY = "UPS_ON_BATTERY"
    UPS_LOW_BATTERY = "UPS_LOW_BATTERY"
    UPS_ONLINE = "UPS_ONLINE"
    SHUTTING_DOWN = "SHUTTING_DOWN"
    RESTARTING = "RESTARTING"
    HIGH_TEMP = "HIGH_TEMP"
    MAX_TEMP = "MAX_TEMP"


@dataclass
class Account:
    name: str
    email: str
    password: str
    type: AccountType = AccountType.FREE
    id: Optional[int] = None
    wrong_pass: int = 0
    locked: bool = False
    token: str = ""
    refresh_token: str = ""

    def __post_init__(self):
        self.type = AccountType(self.type)


@dataclass
class Key:
    """A scoped bearer credential bound to one account and one reader name.

    ``valid_until`` is normalized to UTC and truncated to whole seconds, the
    coarsest precision any backend stores.
    """
    account_id: int
    name: str
    value: str
    scope: KeyScope
    reader_name: str
    valid_until: Optional[datetime] = None

    def __post_init__(self):
        self.scope = KeyScope(self.scope)
        valid_until = ensure_utc(self.valid_until)
        self.valid_until = valid_until.replace(microsecond=0) if valid_until else None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.valid_until is None:
            return False
        now = ensure_utc(now) if now is not None else utcnow()
        return self.valid_until <= now


@dataclass(frozen=True)
class Read:
    identifier: str
    seconds: int
    milliseconds: int
    ident_type: IdentType = IdentType.CHIP
    kind: ReadKind = ReadKind.READER
    antenna: int = 0
    reader: str = ""
    rssi: str = ""

    def __post_init__(self):
        object.__setattr__(self, "ident_type", IdentType(self.ident_type))
        object.__setattr__(self, "kind", ReadKind(self.kind))


@dataclass(frozen=True)
class Notification:
    key_value: str
    type: NotificationType
    when: int
    id: Optional[int] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "type", NotificationType(self.type))


@dataclass(frozen=True)
class KeyAndAccount:
    """Result of the joint key+account lookup."""
    key: Key
    account: Account
