"""Ticket submission and temp upload schemas."""

from pydantic import ConfigDict

from ticket_bridge.schemas.common import CamelModel


class TicketMetadata(CamelModel):
    """Context collected from the requester's monday.com board view.

    Unknown keys are kept so newer clients can send more context without
    a server change.
    """

    model_config = ConfigDict(extra="allow")

    requester_name: str | None = None
    user_name: str | None = None
    user_email: str | None = None
    account_id: str | None = None
    account_name: str | None = None
    user_id: str | None = None
    board_id: str | None = None
    board_name: str | None = None
    source_board_name: str | None = None
    source_board_url: str | None = None
    workspace_id: str | None = None
    timestamp: str | None = None


class SubmitTicketResponse(CamelModel):
    success: bool
    item_id: str | None = None
    message: str


class TempUploadResponse(CamelModel):
    """POST /api/upload/temp response body."""

    success: bool = True
    url: str
    filename: str
    mimetype: str | None = None
    size: int
    session_id: str | None = None
