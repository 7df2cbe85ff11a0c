"""Recording hand-off: the requester tab and the agent popup.

Nothing is pushed between the parties. The requester opens a session and
an agent window, then either steps aside (passive mode: TRANSFERRED, back
to IDLE after a short display window) or polls the session until the
video is ready (panel mode)::

    IDLE -> WAITING -> RECORDING -> PROCESSING -> READY
                                              \\-> ERROR

The agent side polls the same session for a stop request, uploads the
recording to scratch storage and reports completion with the returned url.
"""

from __future__ import annotations

import asyncio
import webbrowser
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable
from urllib.parse import urljoin

import structlog

from ticket_bridge.client.api import TicketBridgeClient
from ticket_bridge.core.exceptions import HandoffError, PopupBlockedError
from ticket_bridge.schemas.session import SessionStateResponse, SessionStatus
from ticket_bridge.schemas.ticket import SubmitTicketResponse

logger = structlog.get_logger(__name__)

WindowOpener = Callable[[str], Any]
Sleep = Callable[[float], Awaitable[None]]


class HandoffState(str, Enum):
    IDLE = "IDLE"
    TRANSFERRED = "TRANSFERRED"
    WAITING = "WAITING"
    RECORDING = "RECORDING"
    PROCESSING = "PROCESSING"
    READY = "READY"
    ERROR = "ERROR"


def state_for(session: SessionStateResponse) -> HandoffState:
    """Map the server-side session onto what the requester panel shows."""
    if session.status == SessionStatus.PENDING:
        return HandoffState.WAITING
    if session.status == SessionStatus.RECORDING:
        return HandoffState.PROCESSING if session.stop_requested else HandoffState.RECORDING
    if session.status == SessionStatus.COMPLETED:
        return HandoffState.READY if session.video_url else HandoffState.PROCESSING
    if session.status == SessionStatus.ERROR:
        return HandoffState.ERROR
    return HandoffState.IDLE


class RequesterHandoff:
    """Requester-tab side of one recording attempt at a time."""

    def __init__(
        self,
        client: TicketBridgeClient,
        link_code: str,
        opener: WindowOpener = webbrowser.open,
        transferred_display_seconds: float = 3.0,
        poll_wait_seconds: float = 10.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._link_code = link_code
        self._opener = opener
        self._transferred_display_seconds = transferred_display_seconds
        self._poll_wait_seconds = poll_wait_seconds
        self._sleep = sleep

        self.state = HandoffState.IDLE
        self.session_id: str | None = None
        self.video_url: str | None = None
        self.local_artifact: Path | None = None
        self._reset_task: asyncio.Task[None] | None = None

    async def start(
        self,
        description: str | None,
        metadata: dict[str, Any] | None = None,
        passive: bool = True,
    ) -> str:
        """Open a session and hand recording over to the agent window.

        Raises:
            PopupBlockedError: the agent window could not be opened. The
                flow is reset to IDLE and not retried.
        """
        if self.state not in (HandoffState.IDLE, HandoffState.READY, HandoffState.ERROR):
            raise HandoffError("A recording is already in progress")

        created = await self._client.create_session(description, metadata, self._link_code)
        agent_url = urljoin(self._client.base_url, created.agent_url)

        if not self._opener(agent_url):
            logger.warning("agent_window_blocked", session_id=created.session_id)
            self._reset()
            raise PopupBlockedError()

        self.session_id = created.session_id
        self.video_url = None
        logger.info("recording_handed_off", session_id=created.session_id, passive=passive)

        if passive:
            self.state = HandoffState.TRANSFERRED
            self._reset_task = asyncio.create_task(self._clear_transferred())
        else:
            self.state = HandoffState.WAITING
        return created.session_id

    async def _clear_transferred(self) -> None:
        await self._sleep(self._transferred_display_seconds)
        if self.state == HandoffState.TRANSFERRED:
            self.state = HandoffState.IDLE

    async def wait_for_video(self, timeout: float | None = None) -> str | None:
        """Follow the session until the video is ready (panel mode).

        Returns the video url, or None if the session was cancelled or the
        timeout elapsed first.

        Raises:
            HandoffError: the agent reported an error.
            SessionNotFoundError: the session expired.
        """
        session_id = self._require_session()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None
        since_version = -1

        while True:
            wait = self._poll_wait_seconds
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return None
                wait = min(wait, remaining)

            session = await self._client.get_session(
                session_id, wait_seconds=wait, since_version=since_version
            )
            since_version = session.version
            self.state = state_for(session)

            if self.state == HandoffState.READY:
                self.video_url = session.video_url
                logger.info("recording_ready", session_id=session_id)
                return self.video_url
            if self.state == HandoffState.ERROR:
                raise HandoffError("The recording failed in the agent window")
            if session.status == SessionStatus.CANCELLED:
                return None

    async def request_stop(self) -> None:
        session_id = self._require_session()
        await self._client.request_stop(session_id)
        if self.state == HandoffState.RECORDING:
            self.state = HandoffState.PROCESSING

    async def download_video(self, destination: Path) -> Path:
        """Keep a local copy of the recording for preview. Removed by discard()."""
        if not self.video_url:
            raise HandoffError("No recording is available yet")
        content = await self._client.download(self.video_url)
        destination.write_bytes(content)
        self.local_artifact = destination
        return destination

    async def discard(self) -> None:
        """Cancel the session on the server and purge any local copy."""
        if self.session_id is not None:
            await self._client.cancel_session(self.session_id)
            logger.info("recording_discarded", session_id=self.session_id)
        if self.local_artifact is not None:
            self.local_artifact.unlink(missing_ok=True)
        self._reset()

    async def submit(
        self,
        description: str | None = None,
        file: tuple[str, bytes, str] | None = None,
    ) -> SubmitTicketResponse:
        """Submit the ticket from the session, with or without a video yet."""
        session_id = self._require_session()
        result = await self._client.submit_session(session_id, description=description, file=file)
        logger.info("ticket_submitted_from_session", session_id=session_id, item_id=result.item_id)
        if self.local_artifact is not None:
            self.local_artifact.unlink(missing_ok=True)
        self._reset()
        return result

    def _require_session(self) -> str:
        if self.session_id is None:
            raise HandoffError("No recording session is open")
        return self.session_id

    def _reset(self) -> None:
        if self._reset_task is not None and not self._reset_task.done():
            self._reset_task.cancel()
        self._reset_task = None
        self.state = HandoffState.IDLE
        self.session_id = None
        self.video_url = None
        self.local_artifact = None


class AgentReporter:
    """Agent-popup side: reports progress on the session it was opened for."""

    def __init__(self, client: TicketBridgeClient, session_id: str) -> None:
        self._client = client
        self.session_id = session_id

    async def should_stop(self) -> bool:
        """True once the requester asked to stop or discarded the recording."""
        session = await self._client.get_session(self.session_id)
        return session.stop_requested or session.status == SessionStatus.CANCELLED

    async def mark_recording(self) -> None:
        await self._client.update_status(self.session_id, SessionStatus.RECORDING)

    async def finish(
        self,
        content: bytes,
        file_name: str = "recording.webm",
        content_type: str = "video/webm",
    ) -> str:
        """Upload the recording, then report completion with its url."""
        uploaded = await self._client.upload_temp(
            content,
            file_name=file_name,
            content_type=content_type,
            session_id=self.session_id,
        )
        await self._client.update_status(self.session_id, SessionStatus.COMPLETED, uploaded.url)
        logger.info("agent_recording_reported", session_id=self.session_id, size=uploaded.size)
        return uploaded.url

    async def fail(self, reason: str | None = None) -> None:
        logger.warning("agent_recording_failed", session_id=self.session_id, reason=reason)
        await self._client.update_status(self.session_id, SessionStatus.ERROR)
