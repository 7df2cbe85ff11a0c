"""The Python client driving a full recording hand-off against the app.

Tests:
  - requester opens a session, agent records, requester stops, agent
    uploads, requester sees the video and submits the ticket
  - error codes come back as the matching exception types
  - link validation through the client
"""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from ticket_bridge.client import AgentReporter, HandoffState, RequesterHandoff, TicketBridgeClient
from ticket_bridge.core.exceptions import SessionNotFoundError, TicketValidationError

from tests.conftest import LINK_CODE


@pytest_asyncio.fixture
async def api(app):
    async with TicketBridgeClient(
        base_url="http://testserver",
        transport=httpx.ASGITransport(app=app),
    ) as client:
        yield client


class TestHandoffAgainstApp:

    @pytest.mark.asyncio
    async def test_full_recording_flow(self, app, api, seeded_kv, item_store, temp_files) -> None:
        opened: list[str] = []
        requester = RequesterHandoff(api, LINK_CODE, opener=lambda url: opened.append(url) or True)

        session_id = await requester.start(
            "Export button does nothing",
            {"requesterName": "Noa", "accountName": "Acme"},
            passive=False,
        )
        assert opened[0].startswith("http://testserver/")

        agent = AgentReporter(api, session_id)
        await agent.mark_recording()
        assert await agent.should_stop() is False

        await requester.request_stop()
        assert await agent.should_stop() is True

        url = await agent.finish(b"recorded-video")
        assert await requester.wait_for_video(timeout=5) == url
        assert requester.state == HandoffState.READY

        result = await requester.submit()
        assert result.item_id == "9001"

        await app.state.attach_queue.drain(timeout=5)
        assert item_store.create_calls[0]["item_name"] == "Noa - Acme"
        assert item_store.upload_calls[0]["content"] == b"recorded-video"
        assert list(temp_files.directory.iterdir()) == []

    @pytest.mark.asyncio
    async def test_preview_download_and_discard(self, api, temp_files, tmp_path) -> None:
        requester = RequesterHandoff(api, LINK_CODE, opener=lambda url: True)
        session_id = await requester.start("bug", passive=False)
        await AgentReporter(api, session_id).finish(b"preview-bytes")
        await requester.wait_for_video(timeout=5)

        local = await requester.download_video(tmp_path / "preview.webm")
        assert local.read_bytes() == b"preview-bytes"

        await requester.discard()

        assert not local.exists()
        assert (await api.get_session(session_id)).status.value == "cancelled"


class TestClientErrors:

    @pytest.mark.asyncio
    async def test_unknown_session(self, api) -> None:
        with pytest.raises(SessionNotFoundError):
            await api.get_session("missing")

    @pytest.mark.asyncio
    async def test_validation_error(self, api) -> None:
        with pytest.raises(TicketValidationError):
            await api.submit_ticket(LINK_CODE, description=None)

    @pytest.mark.asyncio
    async def test_validate_link(self, api, seeded_kv) -> None:
        valid = await api.validate_link(LINK_CODE)
        assert valid.valid is True
        assert valid.admin_name == "Dana Admin"

        assert (await api.validate_link("bad")).valid is False
        assert (await api.validate_link("ZZZ999")).valid is False

    @pytest.mark.asyncio
    async def test_get_link(self, api, seeded_kv) -> None:
        link = await api.get_link(LINK_CODE)

        assert link.target_config.board_id == "5001"
