import datetime as dt
import logging
import uuid
from typing import Callable, Optional

from qrsync.domain.sessions import MessageRecord, SessionRecord, UploadRecord
from qrsync.errors import InvalidInputError, SessionNotFoundError
from qrsync.services.mirror import FileMirror
from qrsync.services.session_service import utcnow
from qrsync.services.store import SessionStore
from qrsync.utils.files import AsyncReadable, stored_filename

logger = logging.getLogger(__name__)


class UploadService:
    def __init__(
            self,
            store: SessionStore,
            mirror: FileMirror,
            max_file_size: int,
            clock: Callable[[], dt.datetime] = utcnow,
    ):
        self.store = store
        self.mirror = mirror
        self.max_file_size = max_file_size
        self.clock = clock

    async def _existing_session(self, session_id: uuid.UUID) -> SessionRecord:
        record = await self.store.get(session_id)
        if record is None:
            raise SessionNotFoundError("Session not found.")

        if record.is_expired or record.is_past_deadline(self.clock()):
            # Kept until the next read purges the session.
            logger.info("Write to expired session %s", session_id)

        return record

    async def accept(
            self,
            session_id: uuid.UUID,
            stream: AsyncReadable,
            original_name: Optional[str],
    ) -> UploadRecord:
        if stream is None or not original_name:
            raise InvalidInputError("No file uploaded.")

        await self._existing_session(session_id)

        filename, size = await self.mirror.store(
            session_id,
            stream,
            lambda: stored_filename(original_name),
            self.max_file_size,
        )

        upload = UploadRecord(
            filename=filename,
            original_name=original_name,
            size=size,
            uploaded_at=self.clock(),
        )
        await self.store.append_upload(session_id, upload)

        logger.info("Stored %s (%d bytes) for session %s as %s", original_name, size, session_id, filename)
        return upload

    async def accept_message(self, session_id: uuid.UUID, text: Optional[str]) -> MessageRecord:
        if not text or not text.strip():
            raise InvalidInputError("Message text is required.")

        await self._existing_session(session_id)

        message = MessageRecord(text=text.strip(), sent_at=self.clock())
        await self.store.append_message(session_id, message)

        logger.info("Stored message (%d chars) for session %s", len(message.text), session_id)
        return message
