"""Shared FastAPI dependencies: service injection from app.state.

Every component is built once in create_app() and stored on app.state.
Handlers retrieve them via Depends(), never by direct import, so tests can
build an app around in-memory stores and fakes.
"""

from fastapi import Depends, Request

from ticket_bridge.core.config import Settings
from ticket_bridge.db.kv import KeyValueStore
from ticket_bridge.services.files.temp_store import TempFileStore
from ticket_bridge.services.sessions.registry import SessionRegistry
from ticket_bridge.services.storage.credentials import CredentialStore
from ticket_bridge.services.storage.links import LinkConfigStore
from ticket_bridge.services.tickets.attach_queue import AttachQueue
from ticket_bridge.services.tickets.pipeline import TicketSubmissionPipeline


# ---------------------------------------------------------------------------
# Singletons, retrieved from app.state (set in create_app)
# ---------------------------------------------------------------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_kv(request: Request) -> KeyValueStore:
    return request.app.state.kv


def get_session_registry(request: Request) -> SessionRegistry:
    """Return the process-local recording session registry."""
    return request.app.state.session_registry


def get_temp_files(request: Request) -> TempFileStore:
    return request.app.state.temp_files


def get_attach_queue(request: Request) -> AttachQueue:
    return request.app.state.attach_queue


def get_link_store(request: Request) -> LinkConfigStore:
    return request.app.state.link_store


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credential_store


# ---------------------------------------------------------------------------
# Service constructors, wired via Depends()
# ---------------------------------------------------------------------------

def get_ticket_pipeline(
    request: Request,
    links: LinkConfigStore = Depends(get_link_store),
    credentials: CredentialStore = Depends(get_credential_store),
    attach_queue: AttachQueue = Depends(get_attach_queue),
    temp_files: TempFileStore = Depends(get_temp_files),
    sessions: SessionRegistry = Depends(get_session_registry),
) -> TicketSubmissionPipeline:
    """Return a TicketSubmissionPipeline wired to the app's components."""
    return TicketSubmissionPipeline(
        links=links,
        credentials=credentials,
        item_store=request.app.state.item_store,
        attach_queue=attach_queue,
        temp_files=temp_files,
        sessions=sessions,
    )
