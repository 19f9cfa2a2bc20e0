"""Domain records for transfer sessions."""

import datetime as dt
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from qrsync.utils.types import SessionStatus


@dataclass(frozen=True)
class UploadRecord:
    """A stored file as known to the session record."""

    filename: str
    original_name: str
    size: int
    uploaded_at: dt.datetime


@dataclass(frozen=True)
class MessageRecord:
    """A free-text note sent into a session."""

    text: str
    sent_at: dt.datetime


@dataclass(frozen=True)
class DiskEntry:
    """One file found in a session directory."""

    name: str
    size: int
    modified_at: dt.datetime


@dataclass(frozen=True)
class SessionRecord:
    """Persisted state of a transfer session."""

    id: uuid.UUID
    created_at: dt.datetime
    expires_at: Optional[dt.datetime] = None
    status: SessionStatus = SessionStatus.WAITING
    connection_created: bool = False
    uploads: List[UploadRecord] = field(default_factory=list)
    messages: List[MessageRecord] = field(default_factory=list)

    def is_past_deadline(self, now: dt.datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    @property
    def is_expired(self) -> bool:
        return self.status == SessionStatus.EXPIRED
