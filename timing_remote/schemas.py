"""Request and response payloads of the data-plane calls."""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from timing_remote.db.types import IdentType, Notification, NotificationType, Read, ReadKind


class ReadIn(BaseModel):
    """One uploaded read. ``type`` is the read kind (reader or manual)."""

    model_config = ConfigDict(extra="ignore")

    identifier: str = Field(min_length=1, max_length=100)
    seconds: int = Field(ge=0)
    milliseconds: int = Field(default=0, ge=0, le=999)
    ident_type: IdentType = IdentType.CHIP
    type: ReadKind = ReadKind.READER
    antenna: int = Field(default=0, ge=0)
    reader: str = Field(default="", max_length=50)
    rssi: str = Field(default="", max_length=10)

    def to_read(self) -> Read:
        return Read(
            identifier=self.identifier,
            seconds=self.seconds,
            milliseconds=self.milliseconds,
            ident_type=self.ident_type,
            kind=self.type,
            antenna=self.antenna,
            reader=self.reader,
            rssi=self.rssi,
        )


class ReadOut(BaseModel):
    identifier: str
    seconds: int
    milliseconds: int
    ident_type: IdentType
    type: ReadKind
    antenna: int
    reader: str
    rssi: str

    @classmethod
    def from_read(cls, read: Read) -> "ReadOut":
        return cls(
            identifier=read.identifier,
            seconds=read.seconds,
            milliseconds=read.milliseconds,
            ident_type=read.ident_type,
            type=read.kind,
            antenna=read.antenna,
            reader=read.reader,
            rssi=read.rssi,
        )


class NotificationOut(BaseModel):
    type: NotificationType
    when: datetime

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationOut":
        return cls(
            type=notification.type,
            when=datetime.fromtimestamp(notification.when, tz=timezone.utc),
        )


class GetReadsResponse(BaseModel):
    count: int
    reads: List[ReadOut]
    notification: Optional[NotificationOut] = None


class UploadReadsResponse(BaseModel):
    count: int


class DeleteReadsResponse(BaseModel):
    count: int


class GetNotificationResponse(BaseModel):
    reader: str
    notification: NotificationOut


class GetReadersResponse(BaseModel):
    readers: List[str]
