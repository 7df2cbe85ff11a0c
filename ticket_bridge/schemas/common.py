"""Base model shared by all request/response schemas."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire and in storage."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


class HealthResponse(CamelModel):
    """GET /health response body."""

    status: str
    active_sessions: int
    pending_attachments: int
    storage_degraded: bool = False
