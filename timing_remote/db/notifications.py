"""Notification rows: append-only device-health events."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import text
from sqlalchemy.engine import Connection

from timing_remote.core.exceptions import ValidationError
from timing_remote.core.logging import get_logger
from timing_remote.db.types import Notification, NotificationType

logger = get_logger(__name__)

# Only notifications newer than this many seconds are reported
FRESHNESS_SECONDS = 300

_RFC3339 = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})"
)


def parse_when(when: Union[str, datetime]) -> int:
    """RFC 3339 timestamp (or aware datetime) to Unix seconds."""
    if isinstance(when, str):
        raw = when.strip()
        if not _RFC3339.fullmatch(raw):
            raise ValidationError("Invalid notification time", details={"when": when})
        try:
            when = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise ValidationError("Invalid notification time", details={"when": when}) from exc
    if not isinstance(when, datetime) or when.tzinfo is None:
        raise ValidationError("Notification time must carry a UTC offset")
    return int(when.timestamp())


def parse_notification_type(value: Union[str, NotificationType]) -> NotificationType:
    try:
        return NotificationType(value)
    except ValueError as exc:
        raise ValidationError(
            "Unknown notification type", details={"type": str(value)}
        ) from exc


class NotificationQueries:
    """Notification store operations."""

    #: Backend-specific INSERT that skips an existing (key_value, notification_when)
    insert_notification_sql: str = ""

    def save_notification(
        self,
        type: Union[str, NotificationType],
        when: Union[str, datetime],
        key_value: str,
    ) -> bool:
        """Store an event. Returns False when the key already has one at ``when``."""
        notification_type = parse_notification_type(type)
        when_seconds = parse_when(when)
        with self._transaction("save_notification") as conn:
            created = self._insert_notification(
                conn,
                {
                    "key_value": key_value,
                    "type": notification_type.value,
                    "when": when_seconds,
                },
            )
        if not created:
            logger.info(
                "Duplicate notification ignored",
                data={"type": notification_type.value, "when": when_seconds},
            )
        return created

    def _insert_notification(self, conn: Connection, params: dict) -> bool:
        return conn.execute(text(self.insert_notification_sql), params).rowcount == 1

    def get_notification(self, account_id: int, reader_name: str) -> Optional[Notification]:
        """Newest notification of any key of the reader, if it is still fresh."""
        cutoff = int(self.clock().timestamp()) - FRESHNESS_SECONDS
        with self._transaction("get_notification") as conn:
            row = conn.execute(
                text(
                    "SELECT n.notification_id, n.key_value, n.notification_type, n.notification_when "
                    "FROM notification n JOIN api_key k ON k.key_value = n.key_value "
                    "WHERE k.account_id = :account_id AND k.reader_name = :reader_name "
                    "AND n.notification_when > :cutoff "
                    "ORDER BY n.notification_when DESC, n.notification_id DESC "
                    "LIMIT 1"
                ),
                {"account_id": account_id, "reader_name": reader_name, "cutoff": cutoff},
            ).first()
        if row is None:
            return None
        return Notification(
            id=row.notification_id,
            key_value=row.key_value,
            type=row.notification_type,
            when=row.notification_when,
        )
