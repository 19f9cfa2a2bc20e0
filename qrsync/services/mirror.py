"""Filesystem Mirror: one directory of uploaded bytes per session."""

import logging
import uuid
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from qrsync.domain.sessions import DiskEntry
from qrsync.errors import StorageFailureError
from qrsync.utils.files import AsyncReadable, STAGING_PREFIX, delete_tree, list_dir, store_stream

logger = logging.getLogger(__name__)


class FileMirror(Protocol):
    """Filesystem operations used by the session services."""

    async def list_entries(self, session_id: uuid.UUID) -> List[DiskEntry]:
        """List stored files, oldest first. A missing directory lists as empty."""

    async def store(
        self,
        session_id: uuid.UUID,
        stream: AsyncReadable,
        name_factory: Callable[[], str],
        max_file_size: int,
    ) -> tuple[str, int]:
        """Store a stream under a name that does not exist yet; returns (name, size)."""

    async def remove(self, session_id: uuid.UUID) -> bool:
        """Delete the session directory recursively."""

    def resolve(self, session_id: uuid.UUID, filename: str) -> Optional[Path]:
        """Return the path of a stored file, or None."""


class DiskMirror(FileMirror):
    def __init__(self, root: Path):
        self.root = Path(root)

    def session_dir(self, session_id: uuid.UUID) -> Path:
        return self.root / str(session_id)

    async def list_entries(self, session_id: uuid.UUID) -> List[DiskEntry]:
        return await list_dir(self.session_dir(session_id))

    async def store(
        self,
        session_id: uuid.UUID,
        stream: AsyncReadable,
        name_factory: Callable[[], str],
        max_file_size: int,
    ) -> tuple[str, int]:
        target_dir = self.session_dir(session_id)
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            return await store_stream(stream, target_dir, name_factory, max_file_size)
        except OSError as e:
            logger.exception("Failed to store upload for session %s", session_id)
            raise StorageFailureError(f"Could not write file: {e}") from e

    async def remove(self, session_id: uuid.UUID) -> bool:
        try:
            return await delete_tree(self.session_dir(session_id))
        except OSError as e:
            logger.exception("Failed to remove upload directory for session %s", session_id)
            raise StorageFailureError(f"Could not remove files: {e}") from e

    def resolve(self, session_id: uuid.UUID, filename: str) -> Optional[Path]:
        if not filename or filename != Path(filename).name or filename.startswith(STAGING_PREFIX):
            return None

        path = self.session_dir(session_id) / filename
        return path if path.is_file() else None
