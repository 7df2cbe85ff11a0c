"""Direct ticket submission endpoint (no recording session)."""

import structlog
from fastapi import APIRouter, Depends, File, Form, UploadFile

from ticket_bridge.api.deps import get_temp_files, get_ticket_pipeline
from ticket_bridge.schemas.ticket import SubmitTicketResponse
from ticket_bridge.services.files.temp_store import TempFileStore
from ticket_bridge.services.tickets.pipeline import (
    TicketSubmission,
    TicketSubmissionPipeline,
    parse_metadata,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.post("", response_model=SubmitTicketResponse)
async def submit_ticket(
    link_code: str | None = Form(None, alias="linkCode"),
    description: str | None = Form(None),
    metadata: str | None = Form(None),
    video_url: str | None = Form(None, alias="videoUrl"),
    file: UploadFile | None = File(None),
    temp_files: TempFileStore = Depends(get_temp_files),
    pipeline: TicketSubmissionPipeline = Depends(get_ticket_pipeline),
) -> SubmitTicketResponse:
    """Create an item from a multipart form: inline file or a previously uploaded videoUrl."""
    parsed_metadata = parse_metadata(metadata)
    video_file = await temp_files.save_upload(file) if file is not None else None

    logger.info(
        "ticket_submit_received",
        link_code=link_code,
        has_description=bool(description),
        has_inline_file=video_file is not None,
        has_video_url=bool(video_url),
    )
    result = await pipeline.submit(
        TicketSubmission(
            link_code=link_code,
            description=description,
            metadata=parsed_metadata,
            video_file=video_file,
            video_url=video_url,
        )
    )
    return SubmitTicketResponse(success=True, item_id=result.item_id, message=result.message)
