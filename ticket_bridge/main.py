"""FastAPI application entrypoint.

All API routes prefixed /api; /health at the root; recordings uploaded to
scratch storage are served back under /temp. CORS is fully permissive
because the requester UI runs inside a third-party iframe.

create_app() builds every component once and stores it on app.state for
injection via Depends() (see ticket_bridge/api/deps.py). Tests build their
own app with in-memory storage and a fake item store.

The session sweep and the stale scratch-file purge run on an interval via
APScheduler. On shutdown, in-flight video attaches are drained or dropped
according to attach_shutdown_policy.
"""

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from ticket_bridge.api.v1.accounts import router as accounts_router
from ticket_bridge.api.v1.health import router as health_router
from ticket_bridge.api.v1.links import router as links_router
from ticket_bridge.api.v1.sessions import router as sessions_router
from ticket_bridge.api.v1.tickets import router as tickets_router
from ticket_bridge.api.v1.upload import router as upload_router
from ticket_bridge.core.config import Settings, settings as default_settings
from ticket_bridge.core.exceptions import TicketBridgeError
from ticket_bridge.db.kv import FallbackKeyValueStore, InMemoryKeyValueStore, KeyValueStore
from ticket_bridge.db.redis import RedisKeyValueStore, create_redis
from ticket_bridge.services.files.temp_store import TempFileStore
from ticket_bridge.services.monday.client import ItemStore, MondayClient
from ticket_bridge.services.sessions.registry import SessionRegistry
from ticket_bridge.services.storage.credentials import CredentialStore
from ticket_bridge.services.storage.links import LinkConfigStore
from ticket_bridge.services.tickets.attach_queue import AttachQueue


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


_configure_logging(default_settings.log_level)

logger = structlog.get_logger(__name__)


def _build_kv(settings: Settings) -> KeyValueStore:
    """Redis (optionally behind the in-memory fallback) or plain in-memory."""
    if settings.storage_backend == "memory":
        logger.info("kv_backend_selected", backend="memory")
        return InMemoryKeyValueStore()

    redis_store = RedisKeyValueStore(create_redis(settings.redis_url))
    if not settings.storage_fallback_enabled:
        logger.info("kv_backend_selected", backend="redis", fallback=False)
        return redis_store
    logger.info("kv_backend_selected", backend="redis", fallback=True)
    return FallbackKeyValueStore(primary=redis_store)


async def _run_maintenance(app: FastAPI) -> None:
    """Evict expired sessions and purge stale scratch files. Scheduled by APScheduler.

    Runs on the event loop: the registry is only ever touched from the loop.
    The directory scan goes to a worker thread.
    """
    settings: Settings = app.state.settings
    try:
        app.state.session_registry.sweep()
        await asyncio.to_thread(
            app.state.temp_files.purge_stale,
            settings.temp_file_ttl_hours * 3600,
        )
    except Exception as e:
        logger.error("maintenance_job_failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle.

    Components already live on app.state (built in create_app); this only
    starts the maintenance scheduler and releases resources on shutdown.
    """
    # --- Startup ---
    settings: Settings = app.state.settings
    logger.info("app_startup", env=settings.app_env, storage_backend=settings.storage_backend)

    app.state.temp_files.ensure_directory()

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        _run_maintenance,
        "interval",
        minutes=settings.session_sweep_interval_minutes,
        args=[app],
        id="session_sweep",
    )
    scheduler.start()
    app.state.scheduler = scheduler

    yield

    # --- Shutdown ---
    logger.info("app_shutdown", pending_attachments=app.state.attach_queue.pending)

    scheduler.shutdown(wait=False)

    await app.state.attach_queue.shutdown(
        policy=settings.attach_shutdown_policy,
        timeout=settings.attach_drain_timeout_seconds,
    )
    await app.state.item_store.close()
    await app.state.kv.close()


async def ticket_bridge_error_handler(request: Request, exc: TicketBridgeError) -> JSONResponse:
    """Structured error response for all TicketBridge exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


def create_app(
    settings: Settings | None = None,
    *,
    kv: KeyValueStore | None = None,
    item_store: ItemStore | None = None,
    session_registry: SessionRegistry | None = None,
    temp_files: TempFileStore | None = None,
) -> FastAPI:
    """Build the ASGI app. Keyword overrides replace the default components."""
    if settings is None:
        settings = default_settings

    # Stores define __len__; an empty injected store is falsy
    if kv is None:
        kv = _build_kv(settings)
    if item_store is None:
        item_store = MondayClient(
            api_url=settings.monday_api_url,
            file_api_url=settings.monday_file_api_url,
            request_timeout=settings.monday_request_timeout_seconds,
            upload_timeout=settings.monday_upload_timeout_seconds,
        )
    if session_registry is None:
        session_registry = SessionRegistry(
            ttl_seconds=settings.session_ttl_minutes * 60,
            max_sessions=settings.max_active_sessions,
        )
    if temp_files is None:
        temp_files = TempFileStore(
            directory=settings.temp_path,
            max_bytes=settings.max_upload_bytes,
        )

    app = FastAPI(
        title="Ticket Bridge: Support Ticket Intake API",
        description="Screen-recording support tickets materialized as monday.com items.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.kv = kv
    app.state.item_store = item_store
    app.state.session_registry = session_registry
    app.state.temp_files = temp_files
    app.state.attach_queue = AttachQueue(item_store=item_store, temp_files=temp_files)
    app.state.link_store = LinkConfigStore(
        kv,
        retry_attempts=settings.storage_retry_attempts,
        retry_base_delay=settings.storage_retry_base_delay_seconds,
        max_code_attempts=settings.link_code_max_attempts,
    )
    app.state.credential_store = CredentialStore(
        kv,
        retry_attempts=settings.storage_retry_attempts,
        retry_base_delay=settings.storage_retry_base_delay_seconds,
    )

    # CORS: permissive, the requester UI is embedded in monday.com
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TicketBridgeError, ticket_bridge_error_handler)

    # Mount all API routers
    app.include_router(health_router)
    app.include_router(sessions_router, prefix="/api")
    app.include_router(tickets_router, prefix="/api")
    app.include_router(upload_router, prefix="/api")
    app.include_router(links_router, prefix="/api")
    app.include_router(accounts_router, prefix="/api")

    app.mount(
        "/temp",
        StaticFiles(directory=temp_files.directory, check_dir=False),
        name="temp",
    )

    return app


app = create_app()
