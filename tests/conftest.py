"""Shared test fixtures."""

import datetime as dt
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from qrsync.dependencies import get_file_mirror, get_session_store
from qrsync.domain.sessions import DiskEntry, MessageRecord, SessionRecord, UploadRecord
from qrsync.errors import FileTooLargeError, SessionExistsError
from qrsync.services.mirror import DiskMirror, FileMirror
from qrsync.services.session_service import SessionService
from qrsync.services.store import SessionStore
from qrsync.services.upload_service import UploadService
from qrsync.utils.types import SessionStatus

T0 = dt.datetime(2024, 5, 1, 12, 0, 0, tzinfo=dt.timezone.utc)


@dataclass
class FakeClock:
    """Manually advanced UTC clock."""

    now: dt.datetime = T0

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + dt.timedelta(seconds=seconds)


@dataclass
class InMemorySessionStore(SessionStore):
    """In-memory session store for tests."""

    sessions: Dict[uuid.UUID, SessionRecord] = field(default_factory=dict)
    writes: int = 0

    async def insert(self, record: SessionRecord) -> None:
        if record.id in self.sessions:
            raise SessionExistsError(f"Session {record.id} already exists.")
        self.sessions[record.id] = record
        self.writes += 1

    async def get(self, session_id: uuid.UUID) -> Optional[SessionRecord]:
        return self.sessions.get(session_id)

    async def update(
        self,
        session_id: uuid.UUID,
        *,
        status: Optional[SessionStatus] = None,
        uploads: Optional[List[UploadRecord]] = None,
        connection_created: Optional[bool] = None,
    ) -> None:
        record = self.sessions[session_id]
        self.sessions[session_id] = replace(
            record,
            status=status if status is not None else record.status,
            uploads=list(uploads) if uploads is not None else record.uploads,
            connection_created=(
                connection_created if connection_created is not None else record.connection_created
            ),
        )
        self.writes += 1

    async def append_upload(self, session_id: uuid.UUID, upload: UploadRecord) -> None:
        record = self.sessions[session_id]
        status = SessionStatus.COMPLETED if record.status == SessionStatus.WAITING else record.status
        self.sessions[session_id] = replace(record, uploads=[*record.uploads, upload], status=status)
        self.writes += 1

    async def append_message(self, session_id: uuid.UUID, message: MessageRecord) -> None:
        record = self.sessions[session_id]
        self.sessions[session_id] = replace(record, messages=[*record.messages, message])
        self.writes += 1

    async def list_expirable(self, now: dt.datetime, limit: int = 100) -> List[uuid.UUID]:
        return [
            record.id
            for record in self.sessions.values()
            if record.is_past_deadline(now) and not record.is_expired
        ][:limit]


@dataclass
class FakeMirror(FileMirror):
    """Filesystem stub keeping file bytes in memory."""

    files: Dict[uuid.UUID, Dict[str, bytes]] = field(default_factory=dict)
    mtime: dt.datetime = T0
    removed: List[uuid.UUID] = field(default_factory=list)

    def put(self, session_id: uuid.UUID, name: str, content: bytes) -> None:
        self.files.setdefault(session_id, {})[name] = content

    async def list_entries(self, session_id: uuid.UUID) -> List[DiskEntry]:
        return [
            DiskEntry(name=name, size=len(content), modified_at=self.mtime)
            for name, content in sorted(self.files.get(session_id, {}).items())
        ]

    async def store(self, session_id, stream, name_factory: Callable[[], str], max_file_size: int):
        content = await stream.read()
        if len(content) > max_file_size:
            raise FileTooLargeError("too large")
        existing = self.files.setdefault(session_id, {})
        name = name_factory()
        while name in existing:
            name = name_factory()
        existing[name] = content
        return name, len(content)

    async def remove(self, session_id: uuid.UUID) -> bool:
        self.removed.append(session_id)
        return self.files.pop(session_id, None) is not None

    def resolve(self, session_id: uuid.UUID, filename: str) -> Optional[Path]:
        return None


class BytesStream:
    """Minimal async stream over a bytes payload."""

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    async def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = len(self._data) - self._pos
        chunk = self._data[self._pos:self._pos + size]
        self._pos += len(chunk)
        return chunk


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def mirror() -> FakeMirror:
    return FakeMirror()


@pytest.fixture
def disk_mirror(tmp_path: Path) -> DiskMirror:
    return DiskMirror(tmp_path / "uploads")


@pytest.fixture
def session_service(store: InMemorySessionStore, mirror: FakeMirror, clock: FakeClock) -> SessionService:
    return SessionService(store, mirror, default_ttl_seconds=900, clock=clock)


@pytest.fixture
def upload_service(store: InMemorySessionStore, disk_mirror: DiskMirror, clock: FakeClock) -> UploadService:
    return UploadService(store, disk_mirror, max_file_size=1024, clock=clock)


@pytest.fixture
def client(store: InMemorySessionStore, disk_mirror: DiskMirror) -> TestClient:
    from main import create_app

    app = create_app()
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_file_mirror] = lambda: disk_mirror
    return TestClient(app)
