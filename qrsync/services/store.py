"""Session Store: persistence port and its SQLAlchemy implementation."""

import datetime as dt
import uuid
from typing import Any, Dict, List, Optional, Protocol

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from qrsync.db.models.transfer_session import TransferSession
from qrsync.domain.sessions import MessageRecord, SessionRecord, UploadRecord
from qrsync.errors import SessionExistsError
from qrsync.utils.types import SessionStatus


class SessionStore(Protocol):
    """Persistence interface for transfer sessions."""

    async def insert(self, record: SessionRecord) -> None:
        """Persist a new session. Raises SessionExistsError if the id is taken."""

    async def get(self, session_id: uuid.UUID) -> Optional[SessionRecord]:
        """Return a session by id, if present."""

    async def update(
        self,
        session_id: uuid.UUID,
        *,
        status: Optional[SessionStatus] = None,
        uploads: Optional[List[UploadRecord]] = None,
        connection_created: Optional[bool] = None,
    ) -> None:
        """Overwrite the given fields, leaving the others untouched."""

    async def append_upload(self, session_id: uuid.UUID, upload: UploadRecord) -> None:
        """Append an upload and move a waiting session to completed."""

    async def append_message(self, session_id: uuid.UUID, message: MessageRecord) -> None:
        """Append a message without touching the status."""

    async def list_expirable(self, now: dt.datetime, limit: int = 100) -> List[uuid.UUID]:
        """Return ids of sessions past their deadline that are not expired yet."""


def _as_utc(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


def upload_to_json(upload: UploadRecord) -> Dict[str, Any]:
    return {
        "filename": upload.filename,
        "originalName": upload.original_name,
        "size": upload.size,
        "uploadedAt": upload.uploaded_at.isoformat(),
    }


def upload_from_json(data: Dict[str, Any]) -> UploadRecord:
    return UploadRecord(
        filename=data["filename"],
        original_name=data.get("originalName") or data["filename"],
        size=int(data["size"]),
        uploaded_at=_as_utc(dt.datetime.fromisoformat(data["uploadedAt"])),
    )


def message_to_json(message: MessageRecord) -> Dict[str, Any]:
    return {"text": message.text, "sentAt": message.sent_at.isoformat()}


def message_from_json(data: Dict[str, Any]) -> MessageRecord:
    return MessageRecord(
        text=data["text"],
        sent_at=_as_utc(dt.datetime.fromisoformat(data["sentAt"])),
    )


def _to_record(row: TransferSession) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        created_at=_as_utc(row.created_at),
        expires_at=_as_utc(row.expires_at),
        status=SessionStatus(row.status),
        connection_created=bool(row.connection_created),
        uploads=[upload_from_json(item) for item in row.uploads or []],
        messages=[message_from_json(item) for item in row.messages or []],
    )


class SqlSessionStore(SessionStore):
    """SQLAlchemy implementation of the session store.

    Every call opens its own short-lived database session, so a store instance
    can be shared freely between requests and background tasks.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def insert(self, record: SessionRecord) -> None:
        async with self.sessionmaker() as db:
            db.add(
                TransferSession(
                    id=record.id,
                    status=record.status.value,
                    connection_created=record.connection_created,
                    uploads=[upload_to_json(u) for u in record.uploads],
                    messages=[message_to_json(m) for m in record.messages],
                    created_at=record.created_at,
                    expires_at=record.expires_at,
                )
            )
            try:
                await db.commit()
            except IntegrityError as e:
                raise SessionExistsError(f"Session {record.id} already exists.") from e

    async def get(self, session_id: uuid.UUID) -> Optional[SessionRecord]:
        async with self.sessionmaker() as db:
            row = await db.scalar(sa.select(TransferSession).where(TransferSession.id == session_id))
            return _to_record(row) if row is not None else None

    async def update(
        self,
        session_id: uuid.UUID,
        *,
        status: Optional[SessionStatus] = None,
        uploads: Optional[List[UploadRecord]] = None,
        connection_created: Optional[bool] = None,
    ) -> None:
        values: Dict[str, Any] = {}
        if status is not None:
            values["status"] = status.value
        if uploads is not None:
            values["uploads"] = [upload_to_json(u) for u in uploads]
        if connection_created is not None:
            values["connection_created"] = connection_created

        if not values:
            return

        async with self.sessionmaker() as db:
            await db.execute(
                sa.update(TransferSession)
                .where(TransferSession.id == session_id)
                .values(**values)
            )
            await db.commit()

    async def _locked_row(self, db: AsyncSession, session_id: uuid.UUID) -> Optional[TransferSession]:
        return await db.scalar(
            sa.select(TransferSession)
            .where(TransferSession.id == session_id)
            .with_for_update()
        )

    async def append_upload(self, session_id: uuid.UUID, upload: UploadRecord) -> None:
        async with self.sessionmaker() as db:
            row = await self._locked_row(db, session_id)
            if row is None:
                return

            row.uploads = [*(row.uploads or []), upload_to_json(upload)]
            if row.status == SessionStatus.WAITING.value:
                row.status = SessionStatus.COMPLETED.value

            await db.commit()

    async def append_message(self, session_id: uuid.UUID, message: MessageRecord) -> None:
        async with self.sessionmaker() as db:
            row = await self._locked_row(db, session_id)
            if row is None:
                return

            row.messages = [*(row.messages or []), message_to_json(message)]
            await db.commit()

    async def list_expirable(self, now: dt.datetime, limit: int = 100) -> List[uuid.UUID]:
        async with self.sessionmaker() as db:
            result = await db.scalars(
                sa.select(TransferSession.id)
                .where(
                    TransferSession.expires_at.is_not(None),
                    TransferSession.expires_at < now,
                    TransferSession.status != SessionStatus.EXPIRED.value,
                )
                .limit(limit)
            )
            return list(result)
