"""Per-tenant credential model and /api/accounts schemas."""

from ticket_bridge.schemas.common import CamelModel


class Credential(CamelModel):
    """Opaque bearer token for one monday.com account, stored as ``token_{accountId}``."""

    access_token: str
    account_id: str
    account_name: str | None = None
    user_name: str | None = None
    user_email: str | None = None


class StoreCredentialRequest(CamelModel):
    """PUT /api/accounts/{account_id}/credential request body."""

    access_token: str
    account_name: str | None = None
    user_name: str | None = None
    user_email: str | None = None


class AccountStatusResponse(CamelModel):
    connected: bool
    account_id: str
    account_name: str | None = None
    user_name: str | None = None


class CredentialWriteResponse(CamelModel):
    success: bool
