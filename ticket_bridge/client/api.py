"""Async HTTP client for the ticket-bridge API.

Used by the requester and agent sides of the recording hand-off. Read-style
calls (get_session, validate_link, get_link, download) retry exactly once
on transport errors; writes are never retried. Error responses are turned
back into the server's exception types where the error code is known.
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, TypeVar

import httpx
import structlog

from ticket_bridge.core.exceptions import (
    ItemStoreError,
    LinkNotFoundError,
    OwnerDisconnectedError,
    SessionNotFoundError,
    TicketBridgeError,
    TicketValidationError,
)
from ticket_bridge.schemas.link import LinkConfig, ValidateLinkResponse
from ticket_bridge.schemas.session import (
    CreateSessionResponse,
    SessionStateResponse,
    SessionStatus,
    StopSessionResponse,
    UpdateSessionStatusResponse,
)
from ticket_bridge.schemas.ticket import SubmitTicketResponse, TempUploadResponse

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_ERRORS_BY_CODE: dict[str, Callable[[str], TicketBridgeError]] = {
    "SESSION_NOT_FOUND": SessionNotFoundError,
    "LINK_NOT_FOUND": LinkNotFoundError,
    "OWNER_DISCONNECTED": OwnerDisconnectedError,
    "TICKET_VALIDATION_FAILED": TicketValidationError,
    "ITEM_STORE_ERROR": ItemStoreError,
}


def _error_from_response(response: httpx.Response) -> TicketBridgeError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    error = body.get("error") if isinstance(body, dict) else None
    code = error.get("code") if isinstance(error, dict) else None
    message = (body.get("message") if isinstance(body, dict) else None) or response.reason_phrase

    factory = _ERRORS_BY_CODE.get(code or "")
    if factory is not None:
        return factory(message)
    return TicketBridgeError(
        code=code or "HTTP_ERROR",
        message=message,
        status_code=response.status_code,
    )


class TicketBridgeClient:
    """Typed wrapper over the ticket-bridge HTTP surface."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "TicketBridgeClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _read(self, name: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run a read-style call, retrying once on a transport failure."""
        try:
            return await call()
        except httpx.TransportError as e:
            logger.warning("client_read_retrying", operation=name, error=str(e))
            return await call()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        response = await self._client.request(method, url, **kwargs)
        if response.is_error:
            raise _error_from_response(response)
        return response

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(
        self,
        description: str | None,
        metadata: dict[str, Any] | None,
        link_code: str | None,
    ) -> CreateSessionResponse:
        response = await self._request(
            "POST",
            "/api/sessions",
            json={"description": description, "metadata": metadata or {}, "linkCode": link_code},
        )
        return CreateSessionResponse.model_validate(response.json())

    async def get_session(
        self,
        session_id: str,
        wait_seconds: float | None = None,
        since_version: int | None = None,
    ) -> SessionStateResponse:
        params: dict[str, Any] = {}
        if wait_seconds is not None and since_version is not None:
            params = {"waitSeconds": wait_seconds, "sinceVersion": since_version}

        async def _get() -> SessionStateResponse:
            response = await self._request("GET", f"/api/sessions/{session_id}", params=params)
            return SessionStateResponse.model_validate(response.json())

        return await self._read("get_session", _get)

    async def update_status(
        self,
        session_id: str,
        status: SessionStatus,
        video_url: str | None = None,
    ) -> UpdateSessionStatusResponse:
        body: dict[str, Any] = {"status": status.value}
        if video_url:
            body["videoUrl"] = video_url
        response = await self._request("PUT", f"/api/sessions/{session_id}/status", json=body)
        return UpdateSessionStatusResponse.model_validate(response.json())

    async def request_stop(self, session_id: str) -> StopSessionResponse:
        response = await self._request("POST", f"/api/sessions/{session_id}/stop")
        return StopSessionResponse.model_validate(response.json())

    async def cancel_session(self, session_id: str) -> UpdateSessionStatusResponse:
        response = await self._request("POST", f"/api/sessions/{session_id}/cancel")
        return UpdateSessionStatusResponse.model_validate(response.json())

    async def submit_session(
        self,
        session_id: str,
        description: str | None = None,
        file: tuple[str, bytes, str] | None = None,
    ) -> SubmitTicketResponse:
        """Submit a session's ticket. ``file`` is (name, content, content_type)."""
        data = {"description": description} if description else {}
        files = {"file": file} if file is not None else None
        response = await self._request(
            "POST",
            f"/api/sessions/{session_id}/submit",
            data=data,
            files=files,
        )
        return SubmitTicketResponse.model_validate(response.json())

    # ------------------------------------------------------------------
    # Tickets & uploads
    # ------------------------------------------------------------------

    async def submit_ticket(
        self,
        link_code: str,
        description: str | None,
        metadata: dict[str, Any] | None = None,
        video_url: str | None = None,
        file: tuple[str, bytes, str] | None = None,
    ) -> SubmitTicketResponse:
        data: dict[str, str] = {"linkCode": link_code}
        if description:
            data["description"] = description
        if metadata:
            data["metadata"] = json.dumps(metadata)
        if video_url:
            data["videoUrl"] = video_url
        files = {"file": file} if file is not None else None
        response = await self._request("POST", "/api/tickets", data=data, files=files)
        return SubmitTicketResponse.model_validate(response.json())

    async def upload_temp(
        self,
        content: bytes,
        file_name: str = "recording.webm",
        content_type: str = "video/webm",
        session_id: str | None = None,
    ) -> TempUploadResponse:
        params = {"sessionId": session_id} if session_id else None
        response = await self._request(
            "POST",
            "/api/upload/temp",
            params=params,
            files={"file": (file_name, content, content_type)},
        )
        return TempUploadResponse.model_validate(response.json())

    async def download(self, url: str) -> bytes:
        """Fetch a served recording (e.g. ``/temp/rec-x.webm``)."""

        async def _get() -> bytes:
            response = await self._request("GET", url)
            return response.content

        return await self._read("download", _get)

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    async def validate_link(self, code: str) -> ValidateLinkResponse:
        """A malformed code is reported as not valid rather than raised."""

        async def _get() -> ValidateLinkResponse:
            response = await self._client.get(f"/api/links/{code}/validate")
            if response.status_code == 400:
                return ValidateLinkResponse(valid=False)
            if response.is_error:
                raise _error_from_response(response)
            return ValidateLinkResponse.model_validate(response.json())

        return await self._read("validate_link", _get)

    async def get_link(self, code: str) -> LinkConfig:
        async def _get() -> LinkConfig:
            response = await self._request("GET", f"/api/links/{code}")
            return LinkConfig.model_validate(response.json()["link"])

        return await self._read("get_link", _get)
