"""Recording session request/response schemas."""

from enum import Enum
from typing import Any

from ticket_bridge.schemas.common import CamelModel


class SessionStatus(str, Enum):
    PENDING = "pending"
    RECORDING = "recording"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class CreateSessionRequest(CamelModel):
    """POST /api/sessions request body: snapshot of the requester's form."""

    description: str | None = None
    metadata: dict[str, Any] | str | None = None
    link_code: str | None = None


class CreateSessionResponse(CamelModel):
    success: bool = True
    session_id: str
    agent_url: str


class SessionStateResponse(CamelModel):
    """GET /api/sessions/{session_id} response body."""

    success: bool = True
    session_id: str
    status: SessionStatus
    video_url: str | None = None
    stop_requested: bool = False
    created_at: int
    completed_at: int | None = None
    version: int


class UpdateSessionStatusRequest(CamelModel):
    """PUT /api/sessions/{session_id}/status request body (sent by the agent)."""

    status: SessionStatus
    video_url: str | None = None


class UpdateSessionStatusResponse(CamelModel):
    success: bool = True
    session_id: str
    status: SessionStatus


class StopSessionResponse(CamelModel):
    success: bool = True
    session_id: str
