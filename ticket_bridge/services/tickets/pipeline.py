"""Ticket submission pipeline.

Turns a ticket (description + requester metadata + optional recording)
into one monday.com item on the link owner's board:

1. Validate: a description or a video is required, and a link code.
2. Resolve the link configuration (LinkNotFoundError if gone).
3. Resolve the owner's credential (OwnerDisconnectedError if gone).
4. Build the item name and column values from the link's mapping.
5. Create the item. Failure here fails the whole submission.
6. If a video is available and a video column is mapped, hand the file to
   the AttachQueue. The response does not wait for it, and its failure
   never turns a created ticket into a failed one.
7. Mark the originating session completed.

The video is always best effort relative to the textual ticket.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from ticket_bridge.core.exceptions import (
    ItemStoreError,
    OwnerDisconnectedError,
    SessionNotFoundError,
    TicketValidationError,
)
from ticket_bridge.schemas.session import SessionStatus
from ticket_bridge.schemas.ticket import TicketMetadata
from ticket_bridge.services.files.temp_store import StoredFile, TempFileStore
from ticket_bridge.services.monday.client import ItemStore
from ticket_bridge.services.monday.column_values import build_column_values, build_item_name
from ticket_bridge.services.sessions.registry import SessionRegistry
from ticket_bridge.services.storage.credentials import CredentialStore
from ticket_bridge.services.storage.links import LinkConfigStore
from ticket_bridge.services.tickets.attach_queue import AttachJob, AttachQueue

logger = structlog.get_logger(__name__)

SUCCESS_MESSAGE = "Ticket submitted successfully"


def parse_metadata(raw: dict[str, Any] | str | None) -> TicketMetadata:
    """Accept metadata as an object or as the JSON string multipart forms carry."""
    if raw is None or raw == "":
        return TicketMetadata()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise TicketValidationError("Invalid metadata: not valid JSON") from e
    if not isinstance(raw, dict):
        raise TicketValidationError("Invalid metadata: expected an object")
    try:
        return TicketMetadata.model_validate(raw)
    except ValidationError as e:
        raise TicketValidationError("Invalid metadata") from e


@dataclass
class TicketSubmission:
    link_code: str | None
    description: str | None
    metadata: TicketMetadata = field(default_factory=TicketMetadata)
    video_file: StoredFile | None = None
    video_url: str | None = None
    session_id: str | None = None

    @property
    def has_description(self) -> bool:
        return bool(self.description and self.description.strip())

    @property
    def has_video(self) -> bool:
        return self.video_file is not None or bool(self.video_url)


@dataclass(frozen=True)
class SubmissionResult:
    item_id: str
    attachment_scheduled: bool
    message: str = SUCCESS_MESSAGE


class TicketSubmissionPipeline:
    def __init__(
        self,
        links: LinkConfigStore,
        credentials: CredentialStore,
        item_store: ItemStore,
        attach_queue: AttachQueue,
        temp_files: TempFileStore,
        sessions: SessionRegistry,
    ) -> None:
        self._links = links
        self._credentials = credentials
        self._item_store = item_store
        self._attach_queue = attach_queue
        self._temp_files = temp_files
        self._sessions = sessions

    async def submit(self, submission: TicketSubmission) -> SubmissionResult:
        """Run the pipeline. An inline upload not handed to the attach queue is deleted."""
        handed_off = False
        try:
            result = await self._submit(submission)
            handed_off = result.attachment_scheduled
            return result
        finally:
            if submission.video_file is not None and not handed_off:
                self._temp_files.delete(submission.video_file.path)

    async def submit_session(
        self,
        session_id: str,
        description: str | None = None,
        video_file: StoredFile | None = None,
    ) -> SubmissionResult:
        """Submit the ticket captured by a recording session.

        The description typed at submit time wins over the snapshot taken
        when recording started. The video is the inline file if one was
        sent, otherwise whatever the agent reported on the session.
        """
        try:
            session = self._sessions.get(session_id)
        except SessionNotFoundError:
            if video_file is not None:
                self._temp_files.delete(video_file.path)
            raise

        submission = TicketSubmission(
            link_code=session.link_code,
            description=description if description else session.description,
            metadata=parse_metadata(session.metadata),
            video_file=video_file,
            video_url=session.video_reference,
            session_id=session_id,
        )
        if not submission.link_code:
            if video_file is not None:
                self._temp_files.delete(video_file.path)
            logger.warning("session_missing_link_code", session_id=session_id)
            raise TicketValidationError("Session missing linkCode")
        return await self.submit(submission)

    async def _submit(self, submission: TicketSubmission) -> SubmissionResult:
        # 1. Validate before touching any store
        if not submission.has_description and not submission.has_video:
            logger.warning("ticket_missing_description_and_video", session_id=submission.session_id)
            raise TicketValidationError()
        if not submission.link_code:
            logger.warning("ticket_missing_link_code")
            raise TicketValidationError("Missing required field: linkCode")

        # 2. Link configuration
        link_code = submission.link_code
        config = await self._links.require(link_code)
        board_id = config.target_config.board_id
        owner_account_id = config.target_config.owner_account_id

        # 3. Owner credential
        token = await self._credentials.get_token(owner_account_id)
        if not token:
            logger.error("owner_credential_missing", link_code=link_code, owner_account_id=owner_account_id)
            raise OwnerDisconnectedError()

        # 4. Item payload
        item_name = build_item_name(submission.metadata)
        column_values = build_column_values(
            config.column_mapping,
            submission.description,
            submission.metadata,
        )

        # 5. Create the item
        logger.info(
            "ticket_creating_item",
            link_code=link_code,
            board_id=board_id,
            has_video=submission.has_video,
            column_count=len(column_values),
        )
        try:
            item_id = await self._item_store.create_item(
                token=token,
                board_id=board_id,
                item_name=item_name,
                column_values=column_values,
            )
        except ItemStoreError as e:
            raise ItemStoreError(f"Failed to submit ticket: {e.message}") from e

        # 6. Attach the video in the background
        attachment_scheduled = False
        video_column_id = config.column_mapping.video
        video = self._resolve_video(submission)
        if video is not None and video_column_id:
            path, file_name = video
            self._attach_queue.schedule(
                AttachJob(
                    token=token,
                    item_id=item_id,
                    column_id=video_column_id,
                    path=path,
                    file_name=file_name,
                )
            )
            attachment_scheduled = True

        # 7. Close out the session
        if submission.session_id:
            try:
                self._sessions.set_status(submission.session_id, SessionStatus.COMPLETED)
            except SessionNotFoundError:
                logger.warning("ticket_session_evicted_before_completion", session_id=submission.session_id)

        logger.info(
            "ticket_submitted",
            link_code=link_code,
            item_id=item_id,
            board_id=board_id,
            attachment_scheduled=attachment_scheduled,
        )
        return SubmissionResult(item_id=item_id, attachment_scheduled=attachment_scheduled)

    def _resolve_video(self, submission: TicketSubmission) -> tuple[Path, str] | None:
        if submission.video_file is not None:
            return submission.video_file.path, submission.video_file.original_name
        path = self._temp_files.resolve_url(submission.video_url)
        if path is None:
            if submission.video_url:
                logger.warning("ticket_video_unavailable", video_url=submission.video_url[:200])
            return None
        return path, path.name
