"""Link configuration store.

Key: ``link_{linkCode}`` → LinkConfig.

Legacy flat configs are upgraded on first read and written back, so the
migration happens once. Writes retry on rate limiting. No cross-store
transaction: a link can be created for an owner whose credential is gone;
that is detected at submission time.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable

import structlog

from ticket_bridge.core.exceptions import (
    LinkCodeGenerationError,
    LinkConfigError,
    LinkNotFoundError,
)
from ticket_bridge.core.security import generate_link_code
from ticket_bridge.db.kv import KeyValueStore
from ticket_bridge.schemas.link import (
    CreateLinkRequest,
    FormConfig,
    LinkConfig,
    LinkMetadata,
    TargetConfig,
    UpdateLinkRequest,
)
from ticket_bridge.services.storage.codec import decode_link_config, encode_link_config
from ticket_bridge.services.storage.retry import Sleep, retry_on_rate_limit

logger = structlog.get_logger(__name__)


class LinkConfigStore:
    """CRUD over link configurations with tolerant reads."""

    def __init__(
        self,
        kv: KeyValueStore,
        retry_attempts: int = 3,
        retry_base_delay: float = 1.0,
        max_code_attempts: int = 10,
        code_generator: Callable[[], str] = generate_link_code,
        clock: Callable[[], float] = time.time,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._kv = kv
        self._retry_attempts = retry_attempts
        self._retry_base_delay = retry_base_delay
        self._max_code_attempts = max_code_attempts
        self._code_generator = code_generator
        self._clock = clock
        self._sleep = sleep

    def _key(self, link_code: str) -> str:
        return f"link_{link_code}"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def get(self, link_code: str) -> LinkConfig | None:
        """Load a link configuration, upgrading and persisting legacy shapes."""
        raw = await self._kv.get(self._key(link_code))
        decoded = decode_link_config(raw, now_ms=self._now_ms())
        if decoded is None:
            logger.info("link_config_not_found", link_code=link_code)
            return None

        if decoded.migrated:
            logger.info("link_config_legacy_migrated", link_code=link_code)
            await self.save(link_code, decoded.config)

        return decoded.config

    async def require(self, link_code: str) -> LinkConfig:
        config = await self.get(link_code)
        if config is None:
            raise LinkNotFoundError()
        return config

    async def save(self, link_code: str, config: LinkConfig) -> None:
        key = self._key(link_code)
        payload = encode_link_config(config)

        async def _write() -> None:
            await self._kv.set(key, payload)

        await retry_on_rate_limit(
            _write,
            name="link_config_save",
            max_attempts=self._retry_attempts,
            base_delay=self._retry_base_delay,
            sleep=self._sleep,
        )
        logger.info(
            "link_config_saved",
            link_code=link_code,
            board_id=config.target_config.board_id,
            owner_account_id=config.target_config.owner_account_id,
            version=config.metadata.version,
        )

    async def delete(self, link_code: str) -> bool:
        deleted = await self._kv.delete(self._key(link_code))
        logger.info("link_config_deleted", link_code=link_code, deleted=deleted)
        return deleted

    async def create(self, request: CreateLinkRequest) -> tuple[str, LinkConfig]:
        """Generate a unique code and store a version-1 configuration.

        Raises:
            LinkConfigError: description or video column not mapped.
            LinkCodeGenerationError: no free code within max attempts.
        """
        mapping = request.column_mapping
        if not mapping.description or not mapping.video:
            raise LinkConfigError("Description and video columns must be mapped")

        link_code = await self._allocate_code()

        form_config = None
        if request.form_title or request.form_description:
            form_config = FormConfig(
                title=request.form_title or None,
                description=request.form_description or None,
            )

        config = LinkConfig(
            target_config=TargetConfig(
                board_id=request.board_id,
                board_name=request.board_name,
                owner_account_id=request.admin_account_id,
            ),
            column_mapping=mapping,
            form_config=form_config,
            new_request_indicator=request.new_request_indicator,
            metadata=LinkMetadata(
                created_at=self._now_ms(),
                created_by_user_id=request.created_by_user_id or request.admin_account_id,
                version=1,
            ),
        )
        await self.save(link_code, config)
        return link_code, config

    async def update(self, link_code: str, patch: UpdateLinkRequest) -> LinkConfig:
        """Merge patch into the stored config and bump the version.

        Fields not present in the request keep their stored value. The owner
        never changes.
        """
        existing = await self.require(link_code)
        provided = patch.model_fields_set

        target = existing.target_config
        form_config = existing.form_config
        if "form_title" in provided or "form_description" in provided:
            current = existing.form_config or FormConfig()
            form_config = FormConfig(
                title=patch.form_title if "form_title" in provided else current.title,
                description=(
                    patch.form_description
                    if "form_description" in provided
                    else current.description
                ),
            )

        updated = LinkConfig(
            target_config=TargetConfig(
                board_id=patch.board_id or target.board_id,
                board_name=patch.board_name or target.board_name,
                owner_account_id=target.owner_account_id,
            ),
            column_mapping=patch.column_mapping or existing.column_mapping,
            form_config=form_config,
            new_request_indicator=(
                patch.new_request_indicator
                if "new_request_indicator" in provided
                else existing.new_request_indicator
            ),
            metadata=existing.metadata.model_copy(
                update={"version": existing.metadata.version + 1}
            ),
        )
        await self.save(link_code, updated)
        return updated

    async def _allocate_code(self) -> str:
        for attempt in range(1, self._max_code_attempts + 1):
            candidate = self._code_generator()
            if await self._kv.get(self._key(candidate)) is None:
                logger.info("link_code_allocated", link_code=candidate, attempts=attempt)
                return candidate
            logger.info("link_code_collision", link_code=candidate, attempt=attempt)

        logger.error("link_code_allocation_exhausted", attempts=self._max_code_attempts)
        raise LinkCodeGenerationError()
