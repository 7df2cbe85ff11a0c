"""In-memory registry of short-lived screen-recording sessions.

A session coordinates one recording attempt between the requester tab,
the agent popup and the server. Three independent pollers share one
mutable record:

- the requester tab creates it, may request a stop or cancel it, and
  finally submits the ticket from it;
- the agent popup polls ``stop_requested`` and reports its own progress
  through set_status();
- the submission pipeline reads it and marks it completed.

Writes are last-write-wins with no locking and no transition rules: any
status may follow any other. The submission pipeline only trusts
``video_reference`` ("video available if present"), never ``status``.

State is process-local. Entries are evicted by sweep() once older than the
TTL regardless of status; the app schedules sweep() with APScheduler.
Clock and TTL are injected so tests can advance virtual time.
"""

from __future__ import annotations

import asyncio
import copy
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable

import structlog

from ticket_bridge.core.exceptions import SessionCapacityError, SessionNotFoundError
from ticket_bridge.core.security import new_session_id
from ticket_bridge.schemas.session import SessionStatus

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]


@dataclass
class TicketContext:
    """Snapshot of the requester's form taken when recording starts.

    The agent popup cannot see the requester tab's memory, so everything the
    submission needs later is copied here.
    """

    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    link_code: str | None = None


@dataclass
class RecordingSession:
    session_id: str
    created_at: float
    context: TicketContext
    status: SessionStatus = SessionStatus.PENDING
    video_reference: str | None = None
    completed_at: float | None = None
    stop_requested: bool = False
    version: int = 0

    @property
    def description(self) -> str | None:
        return self.context.description

    @property
    def metadata(self) -> dict[str, Any]:
        return self.context.metadata

    @property
    def link_code(self) -> str | None:
        return self.context.link_code


def _snapshot(session: RecordingSession) -> RecordingSession:
    """Copy handed to callers; the stored record and its context stay private."""
    context = replace(session.context, metadata=copy.deepcopy(session.context.metadata))
    return replace(session, context=context)


class SessionRegistry:
    """Bounded, TTL-swept map of session_id → RecordingSession."""

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_sessions: int = 10000,
        clock: Clock = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_sessions = max_sessions
        self._clock = clock
        self._sessions: dict[str, RecordingSession] = {}
        self._changed: dict[str, asyncio.Event] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, context: TicketContext) -> RecordingSession:
        """Allocate a new pending session and return it immediately."""
        if len(self._sessions) >= self._max_sessions:
            self.sweep()
            if len(self._sessions) >= self._max_sessions:
                logger.warning("session_capacity_reached", active=len(self._sessions))
                raise SessionCapacityError()

        session = RecordingSession(
            session_id=new_session_id(),
            created_at=self._clock(),
            context=replace(context, metadata=copy.deepcopy(context.metadata)),
        )
        self._sessions[session.session_id] = session

        logger.info(
            "session_created",
            session_id=session.session_id,
            has_description=bool(context.description),
            has_metadata=bool(context.metadata),
            link_code=context.link_code,
        )
        return _snapshot(session)

    def get(self, session_id: str) -> RecordingSession:
        """Return a copy of the session.

        Raises:
            SessionNotFoundError: unknown id, or evicted by the sweep.
        """
        session = self._sessions.get(session_id)
        if session is None:
            logger.warning("session_not_found", session_id=session_id)
            raise SessionNotFoundError()
        return _snapshot(session)

    def set_status(
        self,
        session_id: str,
        status: SessionStatus,
        video_reference: str | None = None,
    ) -> RecordingSession:
        """Overwrite status (and video reference when given)."""
        session = self._require(session_id)
        old_status = session.status

        session.status = status
        if video_reference:
            session.video_reference = video_reference
        if status == SessionStatus.COMPLETED:
            session.completed_at = self._clock()
        self._touch(session)

        logger.info(
            "session_status_updated",
            session_id=session_id,
            old_status=old_status.value,
            new_status=status.value,
            has_video=session.video_reference is not None,
        )
        return _snapshot(session)

    def request_stop(self, session_id: str) -> RecordingSession:
        """Raise the cooperative stop flag polled by the agent popup. Idempotent."""
        session = self._require(session_id)
        if not session.stop_requested:
            session.stop_requested = True
            self._touch(session)
        logger.info("session_stop_requested", session_id=session_id, status=session.status.value)
        return _snapshot(session)

    def cancel(self, session_id: str) -> RecordingSession:
        """Requester discarded the recording."""
        return self.set_status(session_id, SessionStatus.CANCELLED)

    def sweep(self) -> int:
        """Evict every session older than the TTL. Returns the number evicted."""
        cutoff = self._clock() - self._ttl
        expired = [sid for sid, s in self._sessions.items() if s.created_at < cutoff]
        for sid in expired:
            del self._sessions[sid]
            event = self._changed.pop(sid, None)
            if event is not None:
                event.set()
            logger.info("session_evicted", session_id=sid)
        if expired:
            logger.info("session_sweep_complete", evicted=len(expired), remaining=len(self._sessions))
        return len(expired)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    async def wait_for_change(
        self,
        session_id: str,
        since_version: int,
        timeout: float,
    ) -> RecordingSession:
        """Long-poll: return once the session's version exceeds since_version.

        Returns the current state when the timeout elapses first. Plain
        polling (get()) and long-polling observe the same record.
        """
        session = self._require(session_id)
        if session.version > since_version or timeout <= 0:
            return _snapshot(session)

        event = self._changed.setdefault(session_id, asyncio.Event())
        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        return self.get(session_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, session_id: str) -> RecordingSession:
        session = self._sessions.get(session_id)
        if session is None:
            logger.warning("session_not_found", session_id=session_id)
            raise SessionNotFoundError()
        return session

    def _touch(self, session: RecordingSession) -> None:
        session.version += 1
        event = self._changed.pop(session.session_id, None)
        if event is not None:
            event.set()
