"""Per-account credential endpoints.

The OAuth exchange itself happens elsewhere; it hands the resulting opaque
token to PUT /accounts/{account_id}/credential.
"""

from fastapi import APIRouter, Depends

from ticket_bridge.api.deps import get_credential_store
from ticket_bridge.schemas.credential import (
    AccountStatusResponse,
    Credential,
    CredentialWriteResponse,
    StoreCredentialRequest,
)
from ticket_bridge.services.storage.credentials import CredentialStore

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.put("/{account_id}/credential", response_model=CredentialWriteResponse)
async def store_credential(
    account_id: str,
    body: StoreCredentialRequest,
    credentials: CredentialStore = Depends(get_credential_store),
) -> CredentialWriteResponse:
    await credentials.save(
        Credential(
            access_token=body.access_token,
            account_id=account_id,
            account_name=body.account_name,
            user_name=body.user_name,
            user_email=body.user_email,
        )
    )
    return CredentialWriteResponse(success=True)


@router.get("/{account_id}/status", response_model=AccountStatusResponse)
async def account_status(
    account_id: str,
    credentials: CredentialStore = Depends(get_credential_store),
) -> AccountStatusResponse:
    """Whether links owned by this account can currently create items."""
    credential = await credentials.get(account_id)
    if credential is None:
        return AccountStatusResponse(connected=False, account_id=account_id)
    return AccountStatusResponse(
        connected=True,
        account_id=account_id,
        account_name=credential.account_name,
        user_name=credential.user_name,
    )


@router.delete("/{account_id}/credential", response_model=CredentialWriteResponse)
async def delete_credential(
    account_id: str,
    credentials: CredentialStore = Depends(get_credential_store),
) -> CredentialWriteResponse:
    deleted = await credentials.delete(account_id)
    return CredentialWriteResponse(success=deleted)
