"""Decoding of stored values into canonical in-memory types.

Stored values come back in several shapes depending on who wrote them:

- current shape, bare:            {"targetConfig": {...}, ...}
- current shape, enveloped:       {"value": {"targetConfig": {...}, ...}}
- legacy flat link shape:         {"boardId": ..., "ownerAccountId": ..., ...}
- credential as an object:        {"accessToken": ..., "accountId": ...}
- credential as a bare string:    "token..."

Each decoder unwraps the envelope once and then tries its recognizers in
order. This is the only place that knows about storage shapes; the stores
and everything above them see LinkConfig and Credential only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

import structlog
from pydantic import ValidationError

from ticket_bridge.schemas.credential import Credential
from ticket_bridge.schemas.link import (
    LegacyLinkConfig,
    LinkConfig,
    LinkMetadata,
    TargetConfig,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DecodedLink:
    config: LinkConfig
    migrated: bool = False


def unwrap_envelope(raw: Any) -> Any:
    """Strip a single ``{"value": ...}`` wrapper if present."""
    if isinstance(raw, dict) and "value" in raw:
        return raw["value"]
    return raw


def _parse_created_at(value: str | None, now_ms: int) -> int:
    if not value:
        return now_ms
    try:
        return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp() * 1000)
    except ValueError:
        return now_ms


def migrate_legacy_link(legacy: LegacyLinkConfig, now_ms: int) -> LinkConfig:
    """Upgrade the flat legacy shape. The board name was never stored, so the id stands in."""
    return LinkConfig(
        target_config=TargetConfig(
            board_id=legacy.board_id,
            board_name=legacy.board_id,
            owner_account_id=legacy.owner_account_id,
        ),
        column_mapping=legacy.column_mapping,
        metadata=LinkMetadata(
            created_at=_parse_created_at(legacy.created_at, now_ms),
            created_by_user_id=legacy.owner_account_id,
            version=1,
        ),
    )


def _current_link(payload: dict[str, Any], now_ms: int) -> DecodedLink | None:
    if "targetConfig" not in payload:
        return None
    return DecodedLink(LinkConfig.model_validate(payload))


def _legacy_link(payload: dict[str, Any], now_ms: int) -> DecodedLink | None:
    if "boardId" not in payload:
        return None
    legacy = LegacyLinkConfig.model_validate(payload)
    return DecodedLink(migrate_legacy_link(legacy, now_ms), migrated=True)


_LINK_RECOGNIZERS: list[Callable[[dict[str, Any], int], DecodedLink | None]] = [
    _current_link,
    _legacy_link,
]


def decode_link_config(raw: Any, now_ms: int) -> DecodedLink | None:
    """Decode a stored ``link_{code}`` value. None if absent or unrecognised."""
    payload = unwrap_envelope(raw)
    if not payload:
        return None
    if not isinstance(payload, dict):
        logger.warning("link_config_format_not_recognized", data_type=type(payload).__name__)
        return None

    for recognizer in _LINK_RECOGNIZERS:
        try:
            decoded = recognizer(payload, now_ms)
        except ValidationError as e:
            logger.warning(
                "link_config_invalid",
                recognizer=recognizer.__name__,
                errors=e.error_count(),
            )
            return None
        if decoded is not None:
            return decoded

    logger.warning("link_config_format_not_recognized", keys=sorted(payload))
    return None


def encode_link_config(config: LinkConfig) -> dict[str, Any]:
    """Canonical stored shape: bare, camelCase, no nulls."""
    return config.model_dump(by_alias=True, exclude_none=True)


def decode_credential(raw: Any, account_id: str) -> Credential | None:
    """Decode a stored ``token_{accountId}`` value. None if absent or unrecognised."""
    payload = unwrap_envelope(raw)
    if not payload:
        return None

    if isinstance(payload, str):
        return Credential(access_token=payload, account_id=account_id)

    if isinstance(payload, dict) and payload.get("accessToken"):
        data = dict(payload)
        data.setdefault("accountId", account_id)
        try:
            return Credential.model_validate(data)
        except ValidationError as e:
            logger.warning("credential_invalid", account_id=account_id, errors=e.error_count())
            return None

    logger.warning(
        "credential_format_not_recognized",
        account_id=account_id,
        data_type=type(payload).__name__,
    )
    return None


def encode_credential(credential: Credential) -> dict[str, Any]:
    return credential.model_dump(by_alias=True, exclude_none=True)
