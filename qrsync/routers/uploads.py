from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from pydantic import BaseModel

from qrsync.dependencies import get_upload_service
from qrsync.services.session_service import parse_session_id
from qrsync.services.upload_service import UploadService

router = APIRouter(prefix="/api", tags=["uploads"])


class MessageIn(BaseModel):
    text: Optional[str] = None


class UploadOut(BaseModel):
    success: bool
    file: str
    savedTo: str


class SuccessOut(BaseModel):
    success: bool


@router.post("/upload/{session_id}", response_model=UploadOut, status_code=status.HTTP_200_OK)
async def upload(
        session_id: str,
        file: Optional[UploadFile] = File(None),
        uploads: UploadService = Depends(get_upload_service),
):
    sid = parse_session_id(session_id)
    record = await uploads.accept(
        sid,
        file,
        file.filename if file is not None else None,
    )
    return UploadOut(success=True, file=record.original_name, savedTo=f"{sid}/{record.filename}")


@router.post("/message/{session_id}", response_model=SuccessOut, status_code=status.HTTP_200_OK)
async def message(
        session_id: str,
        body: MessageIn,
        uploads: UploadService = Depends(get_upload_service),
):
    await uploads.accept_message(parse_session_id(session_id), body.text)
    return SuccessOut(success=True)


@router.get("/health", status_code=status.HTTP_200_OK)
async def health():
    return {"status": "OK"}
