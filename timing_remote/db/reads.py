"""Read rows: idempotent bulk insert, windowed select and bulk deletes.

Reads are attached to a key value on insert but selected and deleted by
(account id, reader name), so reads stored under an older, since deleted key
for the same reader are still returned.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import text

from timing_remote.core.exceptions import InvalidRangeError
from timing_remote.core.logging import get_logger
from timing_remote.db.types import Read

logger = get_logger(__name__)

# Window used when a query's end precedes its start
DEFAULT_WINDOW_SECONDS = 360

_READER_KEYS = (
    "SELECT k.key_value FROM api_key k "
    "WHERE k.account_id = :account_id AND k.reader_name = :reader_name"
)


class ReadQueries:
    """Read store operations."""

    #: Backend-specific INSERT that skips rows hitting the composite unique key
    insert_read_sql: str = ""

    def add_reads(self, key_value: str, reads: Iterable[Read]) -> list[Read]:
        """Store a batch in one transaction.

        Duplicates of already stored reads are absorbed. Any other failure
        rolls the whole batch back.
        """
        reads = list(reads)
        if not reads:
            return reads
        params = [
            {
                "key_value": key_value,
                "identifier": read.identifier,
                "seconds": read.seconds,
                "milliseconds": read.milliseconds,
                "ident_type": read.ident_type.value,
                "kind": read.kind.value,
                "antenna": read.antenna,
                "reader": read.reader,
                "rssi": read.rssi,
            }
            for read in reads
        ]
        with self._transaction("add_reads") as conn:
            conn.execute(text(self.insert_read_sql), params)
        logger.debug("Reads stored", data={"count": len(reads)})
        return reads

    def get_reads(self, account_id: int, reader_name: str, start: int, end: int) -> list[Read]:
        """Reads for a reader with ``start <= seconds <= end``, oldest first."""
        if end < start:
            end = start + DEFAULT_WINDOW_SECONDS
        with self._transaction("get_reads") as conn:
            rows = conn.execute(
                text(
                    "SELECT r.identifier, r.seconds, r.milliseconds, r.ident_type, r.type, "
                    "r.antenna, r.reader, r.rssi "
                    "FROM a_read r JOIN api_key k ON k.key_value = r.key_value "
                    "WHERE k.account_id = :account_id AND k.reader_name = :reader_name "
                    "AND r.seconds >= :start AND r.seconds <= :end "
                    "ORDER BY r.seconds, r.milliseconds, r.identifier"
                ),
                {
                    "account_id": account_id,
                    "reader_name": reader_name,
                    "start": start,
                    "end": end,
                },
            ).all()
        return [
            Read(
                identifier=row.identifier,
                seconds=row.seconds,
                milliseconds=row.milliseconds,
                ident_type=row.ident_type,
                kind=row.type,
                antenna=row.antenna,
                reader=row.reader,
                rssi=row.rssi,
            )
            for row in rows
        ]

    def _delete_reads(self, operation: str, condition: str, params: dict) -> int:
        with self._transaction(operation) as conn:
            count = conn.execute(text(f"DELETE FROM a_read WHERE {condition}"), params).rowcount
        logger.info("Reads deleted", data={"operation": operation, "count": count})
        return count

    def delete_reads(self, account_id: int, reader_name: str, start: int, end: int) -> int:
        if end < start:
            raise InvalidRangeError(start, end)
        return self._delete_reads(
            "delete_reads",
            f"key_value IN ({_READER_KEYS}) AND seconds >= :start AND seconds <= :end",
            {"account_id": account_id, "reader_name": reader_name, "start": start, "end": end},
        )

    def delete_reads_before(self, account_id: int, reader_name: str, end: int) -> int:
        return self._delete_reads(
            "delete_reads_before",
            f"key_value IN ({_READER_KEYS}) AND seconds <= :end",
            {"account_id": account_id, "reader_name": reader_name, "end": end},
        )

    def delete_reader_reads(self, account_id: int, reader_name: str) -> int:
        return self._delete_reads(
            "delete_reader_reads",
            f"key_value IN ({_READER_KEYS})",
            {"account_id": account_id, "reader_name": reader_name},
        )

    def delete_key_reads(self, key_value: str) -> int:
        return self._delete_reads(
            "delete_key_reads", "key_value = :key_value", {"key_value": key_value}
        )
