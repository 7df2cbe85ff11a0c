"""Link configuration endpoints."""

import structlog
from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from ticket_bridge.api.deps import get_credential_store, get_link_store
from ticket_bridge.core.exceptions import InvalidLinkCodeError, LinkNotFoundError
from ticket_bridge.core.security import is_valid_link_code
from ticket_bridge.schemas.link import (
    CreateLinkRequest,
    CreateLinkResponse,
    DeleteLinkResponse,
    LinkResponse,
    UpdateLinkRequest,
    UpdateLinkResponse,
    ValidateLinkResponse,
)
from ticket_bridge.services.storage.credentials import CredentialStore
from ticket_bridge.services.storage.links import LinkConfigStore

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/links", tags=["links"])

_NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _require_valid_code(code: str) -> None:
    if not is_valid_link_code(code):
        logger.warning("link_code_invalid_format", link_code=code)
        raise InvalidLinkCodeError()


@router.post("", response_model=CreateLinkResponse)
async def create_link(
    body: CreateLinkRequest,
    links: LinkConfigStore = Depends(get_link_store),
) -> CreateLinkResponse:
    """Create a link configuration under a freshly generated code."""
    link_code, _ = await links.create(body)
    return CreateLinkResponse(success=True, link_code=link_code)


@router.get("/{code}", response_model=LinkResponse, response_model_exclude_none=True)
async def get_link(
    code: str,
    links: LinkConfigStore = Depends(get_link_store),
) -> LinkResponse:
    _require_valid_code(code)
    config = await links.get(code)
    if config is None:
        raise LinkNotFoundError("Link not found")
    return LinkResponse(link=config)


@router.put("/{code}", response_model=UpdateLinkResponse)
async def update_link(
    code: str,
    body: UpdateLinkRequest,
    links: LinkConfigStore = Depends(get_link_store),
) -> UpdateLinkResponse:
    """Merge the provided fields into the stored configuration."""
    _require_valid_code(code)
    updated = await links.update(code, body)
    return UpdateLinkResponse(success=True, version=updated.metadata.version)


@router.delete("/{code}", response_model=DeleteLinkResponse)
async def delete_link(
    code: str,
    links: LinkConfigStore = Depends(get_link_store),
) -> DeleteLinkResponse:
    _require_valid_code(code)
    if not await links.delete(code):
        raise LinkNotFoundError("Link not found")
    return DeleteLinkResponse(success=True)


@router.get("/{code}/validate", response_model=ValidateLinkResponse, response_model_exclude_none=True)
async def validate_link(
    code: str,
    response: Response,
    links: LinkConfigStore = Depends(get_link_store),
    credentials: CredentialStore = Depends(get_credential_store),
) -> ValidateLinkResponse:
    """Tell a requester whether a code is live, and whose board it feeds."""
    if not is_valid_link_code(code):
        logger.warning("link_code_invalid_format", link_code=code)
        return JSONResponse(status_code=400, content={"valid": False}, headers=_NO_CACHE_HEADERS)

    response.headers.update(_NO_CACHE_HEADERS)

    config = await links.get(code)
    if config is None:
        return ValidateLinkResponse(valid=False)

    owner = await credentials.get(config.target_config.owner_account_id)
    admin_name = "Admin"
    if owner is not None:
        admin_name = owner.user_name or owner.account_name or admin_name

    logger.info("link_validated", link_code=code, board_id=config.target_config.board_id)
    return ValidateLinkResponse(valid=True, admin_name=admin_name)
