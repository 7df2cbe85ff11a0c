"""Per-tenant credential store.

Key: ``token_{accountId}`` → Credential. The credential is produced by the
OAuth flow (outside this service) and read by the submission pipeline to
act on behalf of a link's owner. A missing credential means the owner
disconnected.
"""

from __future__ import annotations

import asyncio

import structlog

from ticket_bridge.db.kv import KeyValueStore
from ticket_bridge.schemas.credential import Credential
from ticket_bridge.services.storage.codec import decode_credential, encode_credential
from ticket_bridge.services.storage.retry import Sleep, retry_on_rate_limit

logger = structlog.get_logger(__name__)


class CredentialStore:
    def __init__(
        self,
        kv: KeyValueStore,
        retry_attempts: int = 3,
        retry_base_delay: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._kv = kv
        self._retry_attempts = retry_attempts
        self._retry_base_delay = retry_base_delay
        self._sleep = sleep

    def _key(self, account_id: str) -> str:
        return f"token_{account_id}"

    async def get(self, account_id: str) -> Credential | None:
        raw = await self._kv.get(self._key(account_id))
        credential = decode_credential(raw, account_id)
        logger.info(
            "credential_lookup",
            account_id=account_id,
            found=credential is not None,
        )
        return credential

    async def get_token(self, account_id: str) -> str | None:
        credential = await self.get(account_id)
        return credential.access_token if credential else None

    async def save(self, credential: Credential) -> None:
        key = self._key(credential.account_id)
        payload = encode_credential(credential)

        async def _write() -> None:
            await self._kv.set(key, payload)

        await retry_on_rate_limit(
            _write,
            name="credential_save",
            max_attempts=self._retry_attempts,
            base_delay=self._retry_base_delay,
            sleep=self._sleep,
        )
        logger.info(
            "credential_saved",
            account_id=credential.account_id,
            token_length=len(credential.access_token),
            account_name=credential.account_name,
        )

    async def delete(self, account_id: str) -> bool:
        deleted = await self._kv.delete(self._key(account_id))
        logger.info("credential_deleted", account_id=account_id, deleted=deleted)
        return deleted
