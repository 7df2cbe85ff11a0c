"""Scratch upload endpoint used by the agent popup."""

import structlog
from fastapi import APIRouter, Depends, File, Query, UploadFile

from ticket_bridge.api.deps import get_temp_files
from ticket_bridge.schemas.ticket import TempUploadResponse
from ticket_bridge.services.files.temp_store import TempFileStore

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])


@router.post("/temp", response_model=TempUploadResponse)
async def upload_temp(
    file: UploadFile | None = File(None),
    session_id: str | None = Query(None, alias="sessionId"),
    temp_files: TempFileStore = Depends(get_temp_files),
) -> TempUploadResponse:
    """Store raw recording bytes; the returned url goes into the session status update."""
    stored = await temp_files.save_upload(file)
    logger.info(
        "temp_upload_received",
        session_id=session_id,
        filename=stored.filename,
        size=stored.size,
    )
    return TempUploadResponse(
        url=stored.url,
        filename=stored.filename,
        mimetype=stored.content_type,
        size=stored.size,
        session_id=session_id,
    )
