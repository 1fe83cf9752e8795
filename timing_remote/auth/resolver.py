"""Turns a bearer header into an authorized key and account."""

from __future__ import annotations

from enum import Enum

from timing_remote.auth.bearer import parse_bearer
from timing_remote.core.exceptions import UnauthorizedError
from timing_remote.core.logging import get_logger
from timing_remote.core.time import Clock, utcnow
from timing_remote.db.protocols import KeyStore
from timing_remote.db.types import KeyAndAccount, KeyScope

logger = get_logger(__name__)


class Access(str, Enum):
    """What a data-plane call needs from the presented key."""
    QUERY = "query"
    INGEST = "ingest"
    DELETE = "delete"


# Scopes are disjoint: a delete key may ingest but a write key may not delete.
ALLOWED_SCOPES: dict[Access, frozenset[KeyScope]] = {
    Access.QUERY: frozenset({KeyScope.READ, KeyScope.WRITE, KeyScope.DELETE}),
    Access.INGEST: frozenset({KeyScope.WRITE, KeyScope.DELETE}),
    Access.DELETE: frozenset({KeyScope.DELETE}),
}


class Authorizer:
    def __init__(self, store: KeyStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    def authorize(self, header: str | None, required: Access) -> KeyAndAccount:
        """Resolve the header's key and check it is live, unexpired and scoped for ``required``."""
        value = parse_bearer(header)
        resolved = self.store.resolve_key(value)
        if resolved is None:
            logger.info("Unknown key presented", data={"access": required.value})
            raise UnauthorizedError("Key/Account Not Found")
        if resolved.key.is_expired(self.clock()):
            logger.info(
                "Expired key presented",
                data={"account_id": resolved.account.id, "reader": resolved.key.reader_name},
            )
            raise UnauthorizedError("Expired Key")
        if resolved.key.scope not in ALLOWED_SCOPES[required]:
            logger.info(
                "Key scope refused",
                data={
                    "account_id": resolved.account.id,
                    "scope": resolved.key.scope.value,
                    "access": required.value,
                },
            )
            raise UnauthorizedError("Unauthorized")
        return resolved
