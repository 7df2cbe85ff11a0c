"""Liveness endpoint."""

from fastapi import APIRouter, Depends

from ticket_bridge.api.deps import get_attach_queue, get_kv, get_session_registry
from ticket_bridge.db.kv import FallbackKeyValueStore, KeyValueStore
from ticket_bridge.schemas.common import HealthResponse
from ticket_bridge.services.sessions.registry import SessionRegistry
from ticket_bridge.services.tickets.attach_queue import AttachQueue

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(
    registry: SessionRegistry = Depends(get_session_registry),
    attach_queue: AttachQueue = Depends(get_attach_queue),
    kv: KeyValueStore = Depends(get_kv),
) -> HealthResponse:
    degraded = isinstance(kv, FallbackKeyValueStore) and kv.degraded
    return HealthResponse(
        status="degraded" if degraded else "ok",
        active_sessions=len(registry),
        pending_attachments=attach_queue.pending,
        storage_degraded=degraded,
    )
