"""monday.com item-store client.

Two operations, both authorised with a tenant's opaque bearer token:

- create_item(): GraphQL mutation against /v2 with column values embedded
  as a JSON string.
- upload_file(): multipart GraphQL request against the separate /v2/file
  endpoint, attaching bytes to a file column of an existing item.

Neither operation retries. Any ``errors`` array in the response is a hard
failure raised as ItemStoreError carrying the first error message.
"""

from __future__ import annotations

import json
import mimetypes
from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from ticket_bridge.core.exceptions import ItemStoreError
from ticket_bridge.core.security import normalize_token

logger = structlog.get_logger(__name__)

_CREATE_ITEM_MUTATION = """
mutation CreateItem($boardId: ID!, $itemName: String!, $columnValues: JSON!) {
  create_item(board_id: $boardId, item_name: $itemName, column_values: $columnValues) {
    id
  }
}
"""

_ADD_FILE_MUTATION = """
mutation AddFile($itemId: ID!, $columnId: String!, $file: File!) {
  add_file_to_column(item_id: $itemId, column_id: $columnId, file: $file) {
    id
  }
}
"""


class ItemStore(ABC):
    """Remote board/item store that receives tickets."""

    @abstractmethod
    async def create_item(
        self,
        token: str,
        board_id: str,
        item_name: str,
        column_values: dict[str, Any],
    ) -> str:
        """Create an item and return its id.

        Raises:
            ItemStoreError: transport failure or API-level error.
        """
        ...

    @abstractmethod
    async def upload_file(
        self,
        token: str,
        item_id: str,
        column_id: str,
        content: bytes,
        file_name: str,
    ) -> str:
        """Attach a file to an item's file column and return the asset id."""
        ...

    async def close(self) -> None:
        return None


def _first_error_message(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    errors = body.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, dict):
            return str(first.get("message", first))
        return str(first)
    if body.get("error_message"):
        return str(body["error_message"])
    return None


class MondayClient(ItemStore):
    """httpx-based monday.com API client."""

    def __init__(
        self,
        api_url: str = "https://api.monday.com/v2",
        file_api_url: str = "https://api.monday.com/v2/file",
        request_timeout: float = 30.0,
        upload_timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._file_api_url = file_api_url
        self._request_timeout = request_timeout
        self._upload_timeout = upload_timeout
        self._client = httpx.AsyncClient(timeout=request_timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    def _auth_headers(self, token: str) -> dict[str, str]:
        raw = normalize_token(token)
        if raw != token.strip():
            logger.warning("monday_token_bearer_prefix_stripped")
        return {"Authorization": raw}

    async def _post(self, operation: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.post(url, **kwargs)
        except httpx.TimeoutException as e:
            logger.error("monday_request_timeout", operation=operation)
            raise ItemStoreError(f"monday.com {operation} timed out") from e
        except httpx.HTTPError as e:
            logger.error("monday_request_failed", operation=operation, error=str(e))
            raise ItemStoreError(f"monday.com {operation} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        message = _first_error_message(body)
        if message is not None:
            logger.error(
                "monday_api_error",
                operation=operation,
                status_code=response.status_code,
                error=message,
            )
            raise ItemStoreError(f"monday.com API error: {message}")

        if response.is_error or not isinstance(body, dict):
            logger.error(
                "monday_http_error",
                operation=operation,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise ItemStoreError(
                f"monday.com {operation} failed with HTTP {response.status_code}"
            )

        return body

    async def create_item(
        self,
        token: str,
        board_id: str,
        item_name: str,
        column_values: dict[str, Any],
    ) -> str:
        column_values_json = json.dumps(column_values)
        logger.info(
            "monday_create_item",
            board_id=board_id,
            item_name=item_name[:50],
            column_ids=sorted(column_values),
            token_length=len(token),
        )

        body = await self._post(
            "create_item",
            self._api_url,
            json={
                "query": _CREATE_ITEM_MUTATION,
                "variables": {
                    "boardId": board_id,
                    "itemName": item_name,
                    "columnValues": column_values_json,
                },
            },
            headers=self._auth_headers(token),
        )

        item_id = ((body.get("data") or {}).get("create_item") or {}).get("id")
        if not item_id:
            raise ItemStoreError("Failed to create item: no id returned")

        logger.info("monday_item_created", item_id=str(item_id), board_id=board_id)
        return str(item_id)

    async def upload_file(
        self,
        token: str,
        item_id: str,
        column_id: str,
        content: bytes,
        file_name: str,
    ) -> str:
        content_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"
        logger.info(
            "monday_upload_file",
            item_id=item_id,
            column_id=column_id,
            file_name=file_name,
            file_size=len(content),
        )

        body = await self._post(
            "upload_file",
            self._file_api_url,
            data={
                "query": _ADD_FILE_MUTATION,
                "variables": json.dumps({"itemId": item_id, "columnId": column_id}),
                "map": json.dumps({"file": "variables.file"}),
            },
            files={"file": (file_name, content, content_type)},
            headers=self._auth_headers(token),
            timeout=self._upload_timeout,
        )

        asset_id = ((body.get("data") or {}).get("add_file_to_column") or {}).get("id")
        if not asset_id:
            logger.warning("monday_upload_no_asset_id", item_id=item_id, column_id=column_id)
            return "unknown"

        logger.info("monday_file_uploaded", item_id=item_id, column_id=column_id, asset_id=str(asset_id))
        return str(asset_id)
