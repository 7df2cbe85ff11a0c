"""Recording session endpoints.

Three parties talk to the same session record:
the requester tab (create, poll, stop, cancel, submit), the agent popup
(poll for stop, report status) and the submission pipeline.
"""

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from ticket_bridge.api.deps import (
    get_session_registry,
    get_settings,
    get_temp_files,
    get_ticket_pipeline,
)
from ticket_bridge.core.config import Settings
from ticket_bridge.schemas.session import (
    CreateSessionRequest,
    CreateSessionResponse,
    SessionStateResponse,
    StopSessionResponse,
    UpdateSessionStatusRequest,
    UpdateSessionStatusResponse,
)
from ticket_bridge.schemas.ticket import SubmitTicketResponse
from ticket_bridge.services.files.temp_store import TempFileStore
from ticket_bridge.services.sessions.registry import (
    RecordingSession,
    SessionRegistry,
    TicketContext,
)
from ticket_bridge.services.tickets.pipeline import TicketSubmissionPipeline, parse_metadata

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])

_MAX_WAIT_SECONDS = 30.0


def _epoch_ms(timestamp: float | None) -> int | None:
    return int(timestamp * 1000) if timestamp is not None else None


def _state(session: RecordingSession) -> SessionStateResponse:
    return SessionStateResponse(
        session_id=session.session_id,
        status=session.status,
        video_url=session.video_reference,
        stop_requested=session.stop_requested,
        created_at=_epoch_ms(session.created_at),
        completed_at=_epoch_ms(session.completed_at),
        version=session.version,
    )


@router.post("", response_model=CreateSessionResponse)
async def create_session(
    body: CreateSessionRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    settings: Settings = Depends(get_settings),
) -> CreateSessionResponse:
    """Open a recording session with a snapshot of the requester's form."""
    metadata = parse_metadata(body.metadata)
    session = registry.create(
        TicketContext(
            description=body.description,
            metadata=metadata.model_dump(by_alias=True, exclude_none=True),
            link_code=body.link_code,
        )
    )
    return CreateSessionResponse(
        session_id=session.session_id,
        agent_url=f"{settings.agent_path}?session={session.session_id}",
    )


@router.get(
    "/{session_id}",
    response_model=SessionStateResponse,
    response_model_exclude_none=True,
)
async def get_session(
    session_id: str,
    wait_seconds: float = Query(0.0, alias="waitSeconds", ge=0, le=_MAX_WAIT_SECONDS),
    since_version: int | None = Query(None, alias="sinceVersion"),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionStateResponse:
    """Poll a session. With sinceVersion and waitSeconds, long-poll for a change."""
    if since_version is not None and wait_seconds > 0:
        session = await registry.wait_for_change(session_id, since_version, wait_seconds)
    else:
        session = registry.get(session_id)
    return _state(session)


@router.put("/{session_id}/status", response_model=UpdateSessionStatusResponse)
async def update_session_status(
    session_id: str,
    body: UpdateSessionStatusRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> UpdateSessionStatusResponse:
    """Agent popup reports progress (and the uploaded video once done)."""
    session = registry.set_status(session_id, body.status, body.video_url)
    return UpdateSessionStatusResponse(session_id=session_id, status=session.status)


@router.post("/{session_id}/stop", response_model=StopSessionResponse)
async def stop_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> StopSessionResponse:
    registry.request_stop(session_id)
    return StopSessionResponse(session_id=session_id)


@router.post("/{session_id}/cancel", response_model=UpdateSessionStatusResponse)
async def cancel_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> UpdateSessionStatusResponse:
    session = registry.cancel(session_id)
    return UpdateSessionStatusResponse(session_id=session_id, status=session.status)


@router.post("/{session_id}/submit", response_model=SubmitTicketResponse)
async def submit_session(
    session_id: str,
    description: str | None = Form(None),
    file: UploadFile | None = File(None),
    temp_files: TempFileStore = Depends(get_temp_files),
    pipeline: TicketSubmissionPipeline = Depends(get_ticket_pipeline),
) -> SubmitTicketResponse:
    """Submit the ticket captured by a session, optionally with an inline file."""
    video_file = await temp_files.save_upload(file) if file is not None else None
    logger.info(
        "session_submit_received",
        session_id=session_id,
        has_description=bool(description),
        has_inline_file=video_file is not None,
    )
    result = await pipeline.submit_session(
        session_id,
        description=description,
        video_file=video_file,
    )
    return SubmitTicketResponse(success=True, item_id=result.item_id, message=result.message)
