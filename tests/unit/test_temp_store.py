"""Unit tests for scratch storage of recordings.

Tests:
  - uploads land as rec-{uuid}{ext}, .webm by default
  - size limit enforced, partial file removed
  - chunk writes go to a worker thread
  - missing upload rejected
  - video urls resolved by basename only, absolute urls accepted
  - stale files purged by age
"""

from __future__ import annotations

import asyncio
import io
import os

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from ticket_bridge.core.exceptions import MissingUploadError, UploadTooLargeError
from ticket_bridge.services.files.temp_store import TempFileStore

from tests.conftest import FakeClock


def _upload(content: bytes, filename: str | None = "clip.webm", content_type: str = "video/webm") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class TestSaveUpload:

    @pytest.mark.asyncio
    async def test_saves_with_generated_name(self, temp_files) -> None:
        stored = await temp_files.save_upload(_upload(b"abc"))

        assert stored.filename.startswith("rec-")
        assert stored.filename.endswith(".webm")
        assert stored.url == f"/temp/{stored.filename}"
        assert stored.original_name == "clip.webm"
        assert stored.size == 3
        assert stored.content_type == "video/webm"
        assert stored.path.read_bytes() == b"abc"

    @pytest.mark.asyncio
    async def test_keeps_known_extension(self, temp_files) -> None:
        stored = await temp_files.save_upload(_upload(b"abc", filename="screen.mp4", content_type="video/mp4"))
        assert stored.filename.endswith(".mp4")

    @pytest.mark.asyncio
    async def test_defaults_extension(self, temp_files) -> None:
        stored = await temp_files.save_upload(_upload(b"abc", filename="blob"))
        assert stored.filename.endswith(".webm")

    @pytest.mark.asyncio
    async def test_too_large_leaves_nothing(self, temp_files) -> None:
        with pytest.raises(UploadTooLargeError):
            await temp_files.save_upload(_upload(b"x" * 2048))

        assert list(temp_files.directory.iterdir()) == []

    @pytest.mark.asyncio
    async def test_chunks_written_off_the_loop(self, tmp_path, monkeypatch) -> None:
        store = TempFileStore(directory=tmp_path / "big", max_bytes=4 * 1024 * 1024)
        content = os.urandom(2 * 1024 * 1024 + 10)
        offloaded: list[object] = []
        original_to_thread = asyncio.to_thread

        async def recording_to_thread(func, *args, **kwargs):
            offloaded.append(func)
            return await original_to_thread(func, *args, **kwargs)

        monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)

        stored = await store.save_upload(_upload(content))

        assert stored.path.read_bytes() == content
        assert stored.size == len(content)
        assert [getattr(f, "__name__", "") for f in offloaded].count("write") == 3

    @pytest.mark.asyncio
    async def test_missing_upload(self, temp_files) -> None:
        with pytest.raises(MissingUploadError):
            await temp_files.save_upload(None)


class TestResolveUrl:

    def test_relative_and_absolute_urls(self, temp_files) -> None:
        path = temp_files.directory / "rec-1.webm"
        path.write_bytes(b"v")

        assert temp_files.resolve_url("/temp/rec-1.webm") == path
        assert temp_files.resolve_url("https://bridge.example.com/temp/rec-1.webm") == path

    def test_missing_file(self, temp_files) -> None:
        assert temp_files.resolve_url("/temp/rec-404.webm") is None

    def test_only_basename_is_used(self, temp_files, tmp_path) -> None:
        (tmp_path / "secret.txt").write_text("s")

        assert temp_files.resolve_url("/temp/../secret.txt") is None
        assert temp_files.resolve_url("/temp/..") is None

    def test_empty(self, temp_files) -> None:
        assert temp_files.resolve_url(None) is None
        assert temp_files.resolve_url("") is None


class TestDeleteAndPurge:

    def test_delete(self, temp_files) -> None:
        path = temp_files.directory / "rec-1.webm"
        path.write_bytes(b"v")

        assert temp_files.delete(path) is True
        assert not path.exists()
        assert temp_files.delete(path) is False

    def test_purge_stale(self, tmp_path) -> None:
        clock = FakeClock()
        store = TempFileStore(directory=tmp_path / "temp", clock=clock)
        store.ensure_directory()
        old = store.directory / "rec-old.webm"
        fresh = store.directory / "rec-new.webm"
        old.write_bytes(b"o")
        fresh.write_bytes(b"n")
        os.utime(old, (clock.now - 25 * 3600, clock.now - 25 * 3600))
        os.utime(fresh, (clock.now - 3600, clock.now - 3600))

        removed = store.purge_stale(24 * 3600)

        assert removed == 1
        assert not old.exists()
        assert fresh.exists()

    def test_purge_missing_directory(self, tmp_path) -> None:
        store = TempFileStore(directory=tmp_path / "nowhere")
        assert store.purge_stale(60) == 0
