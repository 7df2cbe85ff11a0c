"""Background file-attach leg of ticket submission.

The item already exists when a job is scheduled, and the HTTP response has
usually been sent by the time the job runs, so each job is an
asyncio.Task detached from the request. Outcomes are only observable in
the logs and the counters:

- success: the scratch file is deleted;
- failure: logged, the scratch file stays for the stale-file purge.

What happens to jobs still running at shutdown is an explicit policy:
"drain" waits (bounded), "drop" cancels them.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

import structlog

from ticket_bridge.services.files.temp_store import TempFileStore
from ticket_bridge.services.monday.client import ItemStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AttachJob:
    token: str
    item_id: str
    column_id: str
    path: Path
    file_name: str


class AttachQueue:
    """Fire-and-forget runner for AttachJobs."""

    def __init__(self, item_store: ItemStore, temp_files: TempFileStore) -> None:
        self._item_store = item_store
        self._temp_files = temp_files
        self._tasks: set[asyncio.Task[None]] = set()
        self.scheduled = 0
        self.succeeded = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, job: AttachJob) -> asyncio.Task[None]:
        """Start the attach in the background and return immediately."""
        task = asyncio.create_task(self._run(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.scheduled += 1
        logger.info(
            "video_attach_scheduled",
            item_id=job.item_id,
            column_id=job.column_id,
            file_name=job.file_name,
        )
        return task

    async def _run(self, job: AttachJob) -> None:
        """Runs as a background task; never raises into the event loop."""
        try:
            content = await asyncio.to_thread(job.path.read_bytes)
            asset_id = await self._item_store.upload_file(
                token=job.token,
                item_id=job.item_id,
                column_id=job.column_id,
                content=content,
                file_name=job.file_name,
            )
        except Exception as e:
            self.failed += 1
            logger.error(
                "video_attach_failed",
                item_id=job.item_id,
                column_id=job.column_id,
                file_name=job.file_name,
                path=str(job.path),
                error=str(e),
            )
            return

        self.succeeded += 1
        logger.info(
            "video_attach_succeeded",
            item_id=job.item_id,
            column_id=job.column_id,
            file_name=job.file_name,
            asset_id=asset_id,
        )
        self._temp_files.delete(job.path)

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for in-flight jobs. Returns True if none are left running."""
        if not self._tasks:
            return True
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        return not still_running

    async def shutdown(self, policy: str = "drain", timeout: float = 30.0) -> None:
        pending = self.pending
        if pending == 0:
            return

        if policy == "drain":
            logger.info("attach_queue_draining", pending=pending, timeout=timeout)
            if await self.drain(timeout):
                return
            logger.warning("attach_queue_drain_timed_out", remaining=self.pending)

        remaining = list(self._tasks)
        for task in remaining:
            task.cancel()
        await asyncio.gather(*remaining, return_exceptions=True)
        logger.warning("attach_queue_jobs_dropped", dropped=len(remaining))
