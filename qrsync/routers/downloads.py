import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse, HTMLResponse
from fastapi.templating import Jinja2Templates

from qrsync.dependencies import get_file_mirror, get_session_service
from qrsync.errors import SessionNotFoundError
from qrsync.services.mirror import FileMirror
from qrsync.services.session_service import SessionService, parse_session_id
from qrsync.services.status_service import COMPANION_RETRY_INTERVAL

router = APIRouter(tags=["downloads"])

templates = Jinja2Templates(directory=Path(__file__).resolve().parent.parent / "templates")


@router.get("/downloads/{session_id}", response_class=HTMLResponse)
async def downloads_page(
        request: Request,
        session_id: str,
        sessions: SessionService = Depends(get_session_service),
):
    try:
        record = await sessions.reconcile(parse_session_id(session_id))
    except SessionNotFoundError:
        return HTMLResponse("<h1>Session not found</h1>", status_code=status.HTTP_404_NOT_FOUND)

    if record.is_expired:
        record = await sessions.purge_expired(record.id, record)

    return templates.TemplateResponse(
        request,
        "downloads.html",
        {
            "session": record,
            "poll_interval_ms": int(COMPANION_RETRY_INTERVAL * 1000),
        },
    )


def _stored_file(mirror: FileMirror, session_id: uuid.UUID, filename: str) -> Path:
    path = mirror.resolve(session_id, filename)
    if path is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="File not found.")
    return path


@router.get("/download/{session_id}/{filename}")
async def download_file(
        session_id: str,
        filename: str,
        mirror: FileMirror = Depends(get_file_mirror),
):
    path = _stored_file(mirror, parse_session_id(session_id), filename)
    return FileResponse(path, filename=filename, content_disposition_type="attachment")


@router.get("/preview/{session_id}/{filename}")
async def preview_file(
        session_id: str,
        filename: str,
        mirror: FileMirror = Depends(get_file_mirror),
):
    path = _stored_file(mirror, parse_session_id(session_id), filename)
    return FileResponse(path, filename=filename, content_disposition_type="inline")
