"""Session lifecycle: creation, reconciliation against disk, expiry."""

import datetime as dt
import logging
import uuid
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from qrsync.domain.sessions import DiskEntry, SessionRecord, UploadRecord
from qrsync.errors import SessionExistsError, SessionNotFoundError, StorageFailureError
from qrsync.services.mirror import FileMirror
from qrsync.services.store import SessionStore
from qrsync.utils.types import SessionStatus

logger = logging.getLogger(__name__)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def parse_session_id(value: str) -> uuid.UUID:
    """Parse a client-supplied session id. Malformed ids are unknown sessions."""
    try:
        return uuid.UUID(value)
    except (TypeError, ValueError) as e:
        raise SessionNotFoundError("Session not found.") from e


def uploads_from_disk(entries: List[DiskEntry], known: List[UploadRecord]) -> List[UploadRecord]:
    """Build the upload list from a directory listing.

    Existence and size come from disk; the original name and arrival time are
    kept from the stored record when the file is already known.
    """
    by_name: Dict[str, UploadRecord] = {u.filename: u for u in known}

    uploads: List[UploadRecord] = []
    for entry in entries:
        previous = by_name.get(entry.name)
        uploads.append(
            UploadRecord(
                filename=entry.name,
                original_name=previous.original_name if previous else entry.name,
                size=entry.size,
                uploaded_at=previous.uploaded_at if previous else entry.modified_at,
            )
        )
    return uploads


class SessionService:
    def __init__(
            self,
            store: SessionStore,
            mirror: FileMirror,
            default_ttl_seconds: Optional[int] = None,
            clock: Callable[[], dt.datetime] = utcnow,
    ):
        self.store = store
        self.mirror = mirror
        self.default_ttl_seconds = default_ttl_seconds
        self.clock = clock

    def _deadline(self, now: dt.datetime, ttl_seconds: Optional[int]) -> Optional[dt.datetime]:
        if not ttl_seconds or ttl_seconds <= 0:
            return None
        return now + dt.timedelta(seconds=ttl_seconds)

    async def create(self, ttl_seconds: Optional[int] = None) -> SessionRecord:
        now = self.clock()
        record = SessionRecord(
            id=uuid.uuid4(),
            created_at=now,
            expires_at=self._deadline(now, ttl_seconds),
        )
        await self.store.insert(record)

        logger.info("Created session %s (expires_at=%s)", record.id, record.expires_at)
        return record

    async def get(self, session_id: uuid.UUID) -> SessionRecord:
        record = await self.store.get(session_id)
        if record is None:
            raise SessionNotFoundError("Session not found.")
        return record

    async def _recover(self, session_id: uuid.UUID) -> SessionRecord:
        entries = await self.mirror.list_entries(session_id)
        if not entries:
            raise SessionNotFoundError("Session not found.")

        now = self.clock()
        record = SessionRecord(
            id=session_id,
            created_at=now,
            expires_at=self._deadline(now, self.default_ttl_seconds),
            status=SessionStatus.COMPLETED,
            uploads=uploads_from_disk(entries, []),
        )
        try:
            await self.store.insert(record)
        except SessionExistsError:
            # Another request recovered it first.
            return await self.get(session_id)

        logger.warning("Recovered session %s from %d file(s) on disk", session_id, len(entries))
        return record

    async def reconcile(self, session_id: uuid.UUID) -> SessionRecord:
        """Bring the stored record in line with the clock and the disk."""
        record = await self.store.get(session_id)
        if record is None:
            record = await self._recover(session_id)

        if record.is_expired or record.is_past_deadline(self.clock()):
            return await self.purge_expired(session_id, record)

        entries = await self.mirror.list_entries(session_id)
        known = {u.filename for u in record.uploads}
        if len(entries) != len(record.uploads) or {e.name for e in entries} != known:
            uploads = uploads_from_disk(entries, record.uploads)
            status = record.status
            if uploads and status == SessionStatus.WAITING:
                status = SessionStatus.COMPLETED

            await self.store.update(session_id, status=status, uploads=uploads)
            record = replace(record, status=status, uploads=uploads)

        return record

    async def mark_connected(self, record: SessionRecord, is_peer_read: bool) -> SessionRecord:
        if record.connection_created or not is_peer_read:
            return record

        await self.store.update(record.id, connection_created=True)
        logger.info("Peer connected to session %s", record.id)
        return replace(record, connection_created=True)

    async def purge_expired(
            self,
            session_id: uuid.UUID,
            record: Optional[SessionRecord] = None
    ) -> SessionRecord:
        if record is None:
            record = await self.get(session_id)

        if not record.is_expired or record.uploads:
            await self.store.update(session_id, status=SessionStatus.EXPIRED, uploads=[])
            record = replace(record, status=SessionStatus.EXPIRED, uploads=[])
            logger.info("Expired session %s", session_id)

        # Files left behind here are removed again on the next read.
        try:
            await self.mirror.remove(session_id)
        except (StorageFailureError, OSError) as e:
            logger.warning("Could not remove files of expired session %s: %s", session_id, e)

        return record

    async def sweep_expired(self, limit: int = 100) -> int:
        session_ids = await self.store.list_expirable(self.clock(), limit)
        for session_id in session_ids:
            await self.purge_expired(session_id)
        return len(session_ids)
