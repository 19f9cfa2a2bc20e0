import datetime as dt
import uuid
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Header, Response, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from qrsync.config import config
from qrsync.domain.sessions import SessionRecord
from qrsync.services.qr_service import render_qr_png
from qrsync.dependencies import get_session_service, get_status_service
from qrsync.services.session_service import SessionService, parse_session_id
from qrsync.services.status_service import StatusService

router = APIRouter(tags=["sessions"])


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateSessionIn(CamelModel):
    # None -> server default, 0 -> never expires
    ttl_seconds: Optional[int] = Field(default=None, ge=0)


class CreateSessionOut(CamelModel):
    session_id: uuid.UUID
    upload_url: str
    status_url: str
    expires_at: Optional[dt.datetime]


class UploadOut(CamelModel):
    filename: str
    original_name: str
    size: int
    uploaded_at: dt.datetime
    url: str
    preview_url: str


class MessageOut(CamelModel):
    text: str
    sent_at: dt.datetime


class SessionStatusOut(CamelModel):
    session_id: uuid.UUID
    status: str
    connection_created: bool
    uploads: List[UploadOut]
    expires_at: Optional[dt.datetime]
    messages: List[MessageOut]

    @classmethod
    def from_record(cls, record: SessionRecord) -> "SessionStatusOut":
        return cls(
            session_id=record.id,
            status=record.status.value,
            connection_created=record.connection_created,
            uploads=[
                UploadOut(
                    filename=u.filename,
                    original_name=u.original_name,
                    size=u.size,
                    uploaded_at=u.uploaded_at,
                    url=f"/download/{record.id}/{quote(u.filename)}",
                    preview_url=f"/preview/{record.id}/{quote(u.filename)}",
                )
                for u in record.uploads
            ],
            expires_at=record.expires_at,
            messages=[MessageOut(text=m.text, sent_at=m.sent_at) for m in record.messages],
        )


def status_url(session_id: uuid.UUID) -> str:
    return f"{config.PUBLIC_BASE_URL}/{session_id}/status"


@router.post("/", response_model=CreateSessionOut, status_code=status.HTTP_200_OK)
async def create_session(
        body: Optional[CreateSessionIn] = None,
        sessions: SessionService = Depends(get_session_service),
):
    ttl_seconds = config.SESSION_TTL_SECONDS
    if body is not None and body.ttl_seconds is not None:
        ttl_seconds = body.ttl_seconds

    record = await sessions.create(ttl_seconds)

    return CreateSessionOut(
        session_id=record.id,
        upload_url=f"{config.PUBLIC_BASE_URL}/api/upload/{record.id}",
        status_url=status_url(record.id),
        expires_at=record.expires_at,
    )


@router.get("/{session_id}/status", response_model=SessionStatusOut, status_code=status.HTTP_200_OK)
async def get_status(
        session_id: str,
        origin: Optional[str] = Header(None),
        user_agent: Optional[str] = Header(None),
        poller: StatusService = Depends(get_status_service),
):
    record = await poller.poll(parse_session_id(session_id), origin=origin, user_agent=user_agent)
    return SessionStatusOut.from_record(record)


@router.get("/{session_id}/qr.png", status_code=status.HTTP_200_OK)
async def get_qr(session_id: str):
    return Response(content=render_qr_png(status_url(parse_session_id(session_id))), media_type="image/png")
