"""Link configuration models and /api/links request/response schemas."""

from ticket_bridge.schemas.common import CamelModel


class StatusMapping(CamelModel):
    """Fixed status applied to every new item."""

    column_id: str
    default_value: str


class ColumnMapping(CamelModel):
    """Logical ticket field → remote column id. Unmapped fields are omitted."""

    description: str | None = None
    video: str | None = None
    requester_name: str | None = None
    account_name: str | None = None
    source_board_name: str | None = None
    user_email: str | None = None
    status: StatusMapping | None = None


class TargetConfig(CamelModel):
    board_id: str
    board_name: str
    owner_account_id: str


class FormConfig(CamelModel):
    title: str | None = None
    description: str | None = None


class NewRequestIndicator(CamelModel):
    """Admin UI setting; passed through untouched."""

    enabled: bool
    status_column_id: str
    target_status_index: int
    target_status_label: str


class LinkMetadata(CamelModel):
    created_at: int  # epoch milliseconds
    created_by_user_id: str
    version: int = 1


class LinkConfig(CamelModel):
    """Current stored shape of ``link_{code}``."""

    target_config: TargetConfig
    column_mapping: ColumnMapping
    form_config: FormConfig | None = None
    new_request_indicator: NewRequestIndicator | None = None
    metadata: LinkMetadata


class LegacyLinkConfig(CamelModel):
    """Flat shape written by early versions; upgraded on first read."""

    board_id: str
    owner_account_id: str
    column_mapping: ColumnMapping
    created_at: str | None = None


class CreateLinkRequest(CamelModel):
    """POST /api/links request body."""

    board_id: str
    board_name: str
    admin_account_id: str
    column_mapping: ColumnMapping
    created_by_user_id: str | None = None
    form_title: str | None = None
    form_description: str | None = None
    new_request_indicator: NewRequestIndicator | None = None


class CreateLinkResponse(CamelModel):
    success: bool
    link_code: str


class UpdateLinkRequest(CamelModel):
    """PUT /api/links/{code} request body. Omitted fields keep their value."""

    board_id: str | None = None
    board_name: str | None = None
    column_mapping: ColumnMapping | None = None
    form_title: str | None = None
    form_description: str | None = None
    new_request_indicator: NewRequestIndicator | None = None


class UpdateLinkResponse(CamelModel):
    success: bool
    version: int


class LinkResponse(CamelModel):
    link: LinkConfig


class DeleteLinkResponse(CamelModel):
    success: bool


class ValidateLinkResponse(CamelModel):
    valid: bool
    admin_name: str | None = None
