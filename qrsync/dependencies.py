from fastapi import Depends

from qrsync.config import config
from qrsync.db.session import SessionLocal
from qrsync.services.mirror import DiskMirror, FileMirror
from qrsync.services.session_service import SessionService
from qrsync.services.status_service import StatusService
from qrsync.services.store import SessionStore, SqlSessionStore
from qrsync.services.upload_service import UploadService


def get_session_store() -> SessionStore:
    return SqlSessionStore(SessionLocal)


def get_file_mirror() -> FileMirror:
    return DiskMirror(config.STORAGE_PATH)


def get_session_service(
        store: SessionStore = Depends(get_session_store),
        mirror: FileMirror = Depends(get_file_mirror),
) -> SessionService:
    return SessionService(store, mirror, default_ttl_seconds=config.SESSION_TTL_SECONDS)


def get_upload_service(
        store: SessionStore = Depends(get_session_store),
        mirror: FileMirror = Depends(get_file_mirror),
) -> UploadService:
    return UploadService(store, mirror, max_file_size=config.MAX_FILE_SIZE)


def get_status_service(sessions: SessionService = Depends(get_session_service)) -> StatusService:
    return StatusService(
        sessions,
        origin_prefixes=config.COMPANION_ORIGIN_PREFIXES,
        user_agent_markers=config.COMPANION_USER_AGENT_MARKERS,
    )
