"""Data-plane operations for readers and their clients.

Each call takes the raw ``Authorization`` header, authorizes the key for the
kind of access it needs and only then touches the read or notification
tables. An HTTP layer maps the returned models to bodies and the raised
:class:`~timing_remote.core.exceptions.TimingRemoteError` to status codes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from timing_remote.auth.resolver import Access, Authorizer
from timing_remote.core.logging import get_logger, log_context
from timing_remote.core.time import Clock, utcnow
from timing_remote.db.store import SQLStore
from timing_remote.db.types import KeyScope, NotificationType
from timing_remote.schemas import (
    DeleteReadsResponse,
    GetNotificationResponse,
    GetReadersResponse,
    GetReadsResponse,
    NotificationOut,
    ReadIn,
    ReadOut,
    UploadReadsResponse,
)

logger = get_logger(__name__)


def validate_reads(reads: Iterable[Union[ReadIn, dict[str, Any]]]) -> tuple[list[ReadIn], int]:
    """Split uploaded reads into valid ones and a count of rejected ones."""
    accepted: list[ReadIn] = []
    rejected = 0
    for raw in reads:
        if isinstance(raw, ReadIn):
            accepted.append(raw)
            continue
        try:
            accepted.append(ReadIn.model_validate(raw))
        except PydanticValidationError as exc:
            rejected += 1
            logger.debug("Read rejected", data={"errors": exc.errors(include_url=False)})
    return accepted, rejected


class DataPlaneService:
    def __init__(self, store: SQLStore, clock: Clock = utcnow):
        self.store = store
        self.authorizer = Authorizer(store, clock=clock)

    def get_reads(
        self, authorization: Optional[str], reader_name: str, start: int, end: int
    ) -> GetReadsResponse:
        resolved = self.authorizer.authorize(authorization, Access.QUERY)
        account_id = resolved.account.id
        reads = self.store.get_reads(account_id, reader_name, start, end)
        notification = self.store.get_notification(account_id, reader_name)
        return GetReadsResponse(
            count=len(reads),
            reads=[ReadOut.from_read(read) for read in reads],
            notification=NotificationOut.from_notification(notification) if notification else None,
        )

    def add_reads(
        self, authorization: Optional[str], reads: Iterable[Union[ReadIn, dict[str, Any]]]
    ) -> UploadReadsResponse:
        """Store the valid reads of an upload; invalid ones are dropped.

        The count is the number of valid reads submitted, duplicates of
        stored reads included.
        """
        resolved = self.authorizer.authorize(authorization, Access.INGEST)
        accepted, rejected = validate_reads(reads)
        token = log_context.set({"account_id": resolved.account.id, "reader": resolved.key.reader_name})
        try:
            if rejected:
                logger.info("Invalid reads dropped from upload", data={"rejected": rejected})
            stored = self.store.add_reads(
                resolved.key.value, [read.to_read() for read in accepted]
            )
        finally:
            log_context.reset(token)
        return UploadReadsResponse(count=len(stored))

    def delete_reads(
        self,
        authorization: Optional[str],
        reader_name: str,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> DeleteReadsResponse:
        """Delete a reader's reads in ``[start, end]``, up to ``end``, or all of them."""
        resolved = self.authorizer.authorize(authorization, Access.DELETE)
        account_id = resolved.account.id
        if start is not None and end is not None:
            count = self.store.delete_reads(account_id, reader_name, start, end)
        elif end is not None:
            count = self.store.delete_reads_before(account_id, reader_name, end)
        else:
            count = self.store.delete_reader_reads(account_id, reader_name)
        return DeleteReadsResponse(count=count)

    def save_notification(
        self,
        authorization: Optional[str],
        type: Union[str, NotificationType],
        when: Union[str, datetime],
    ) -> bool:
        resolved = self.authorizer.authorize(authorization, Access.INGEST)
        return self.store.save_notification(type, when, resolved.key.value)

    def get_notification(
        self, authorization: Optional[str], reader_name: str
    ) -> Optional[GetNotificationResponse]:
        """Latest fresh notification of a reader, or None for an empty response."""
        resolved = self.authorizer.authorize(authorization, Access.QUERY)
        notification = self.store.get_notification(resolved.account.id, reader_name)
        if notification is None:
            return None
        return GetNotificationResponse(
            reader=reader_name,
            notification=NotificationOut.from_notification(notification),
        )

    def get_readers(self, authorization: Optional[str]) -> GetReadersResponse:
        """Reader names that hold a write key on the caller's account.

        Entries are the keys' reader names, not their display names, so they
        can be passed straight back to get_reads.
        """
        resolved = self.authorizer.authorize(authorization, Access.QUERY)
        keys = self.store.list_account_keys(resolved.account.id)
        return GetReadersResponse(
            readers=[key.reader_name for key in keys if key.scope == KeyScope.WRITE]
        )
