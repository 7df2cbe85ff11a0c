"""Scratch storage for uploaded screen recordings.

Files land in one directory as ``rec-{uuid}{ext}`` and are served back
under ``/temp/{name}``. The upload handler owns a file until it hands the
path to the attach queue, which deletes it after a successful attach.
Files left behind by failed attaches are removed by purge_stale().
"""

from __future__ import annotations

import asyncio
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable
from urllib.parse import urlparse

import structlog
from fastapi import UploadFile

from ticket_bridge.core.exceptions import MissingUploadError, UploadTooLargeError

logger = structlog.get_logger(__name__)

_CHUNK_SIZE = 1024 * 1024
_DEFAULT_EXTENSION = ".webm"
_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,8}$")
_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


@dataclass(frozen=True)
class StoredFile:
    path: Path
    filename: str
    original_name: str
    url: str
    size: int
    content_type: str | None = None


class TempFileStore:
    """Owns the scratch directory for recordings."""

    def __init__(
        self,
        directory: Path,
        max_bytes: int = 500 * 1024 * 1024,
        url_prefix: str = "/temp",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dir = Path(directory)
        self._max_bytes = max_bytes
        self._url_prefix = url_prefix.rstrip("/")
        self._clock = clock

    @property
    def directory(self) -> Path:
        return self._dir

    def ensure_directory(self) -> Path:
        self._dir.mkdir(parents=True, exist_ok=True)
        return self._dir

    def _extension(self, original_name: str) -> str:
        ext = PurePosixPath(original_name).suffix
        return ext if _EXTENSION_RE.match(ext) else _DEFAULT_EXTENSION

    async def save_upload(self, upload: UploadFile | None) -> StoredFile:
        """Stream an upload to disk, enforcing the size limit.

        Raises:
            MissingUploadError: no file part in the request.
            UploadTooLargeError: body exceeded max_bytes; nothing is kept.
        """
        if upload is None:
            raise MissingUploadError()

        original_name = upload.filename or f"recording{_DEFAULT_EXTENSION}"
        filename = f"rec-{uuid.uuid4()}{self._extension(original_name)}"
        path = self.ensure_directory() / filename

        size = 0
        try:
            with path.open("wb") as out:
                while True:
                    chunk = await upload.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self._max_bytes:
                        raise UploadTooLargeError(
                            f"File too large. Maximum size is {self._max_bytes // (1024 * 1024)}MB"
                        )
                    await asyncio.to_thread(out.write, chunk)
        except UploadTooLargeError:
            path.unlink(missing_ok=True)
            logger.warning("temp_upload_too_large", filename=original_name, limit=self._max_bytes)
            raise
        finally:
            await upload.close()

        stored = StoredFile(
            path=path,
            filename=filename,
            original_name=original_name,
            url=f"{self._url_prefix}/{filename}",
            size=size,
            content_type=upload.content_type,
        )
        logger.info(
            "temp_file_saved",
            filename=filename,
            original_name=original_name,
            size=size,
            content_type=upload.content_type,
        )
        return stored

    def resolve_url(self, video_url: str | None) -> Path | None:
        """Map a ``/temp/rec-x.webm`` style reference back to an existing file.

        Only the basename is honoured, so references can never point outside
        the scratch directory. Absolute URLs are accepted.
        """
        if not video_url:
            return None
        name = PurePosixPath(urlparse(video_url).path).name
        if not name or not _SAFE_NAME_RE.match(name):
            logger.warning("temp_reference_rejected", video_url=video_url[:200])
            return None

        path = self._dir / name
        if not path.is_file():
            logger.warning("temp_file_missing", video_url=video_url[:200], path=str(path))
            return None
        return path

    def delete(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("temp_file_delete_failed", path=str(path), error=str(e))
            return False
        logger.info("temp_file_deleted", path=str(path))
        return True

    def purge_stale(self, max_age_seconds: float) -> int:
        """Delete scratch files older than max_age_seconds. Returns count removed."""
        if not self._dir.is_dir():
            return 0
        cutoff = self._clock() - max_age_seconds
        removed = 0
        for path in self._dir.iterdir():
            try:
                if path.is_file() and path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except OSError as e:
                logger.warning("temp_file_purge_failed", path=str(path), error=str(e))
        if removed:
            logger.info("temp_files_purged", count=removed)
        return removed
