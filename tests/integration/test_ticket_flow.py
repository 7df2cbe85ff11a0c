"""End-to-end ticket submission through the HTTP surface.

Tests:
  - recording session → agent upload → submit → item created, video attached
    in the background, scratch file deleted
  - owner disconnected → failure, no item-store calls
  - nothing to submit → 400 before any storage lookup
  - direct ticket with an inline file or a previously uploaded videoUrl
  - scratch uploads: served under /temp, size limit, missing file
  - item creation failure surfaces the monday.com error text
"""

from __future__ import annotations

import httpx
import pytest

from ticket_bridge.core.exceptions import ItemStoreError
from ticket_bridge.main import create_app
from ticket_bridge.services.storage.codec import encode_link_config

from tests.conftest import LINK_CODE, OWNER_TOKEN, FakeItemStore, make_link_config


class TestRecordingSessionFlow:

    @pytest.mark.asyncio
    async def test_session_video_is_attached(self, app, client, seeded_kv, item_store, temp_files) -> None:
        recording = temp_files.directory / "rec-1.webm"
        recording.write_bytes(b"recorded-video")

        created = await client.post(
            "/api/sessions",
            json={
                "description": "Export button does nothing",
                "metadata": {"requesterName": "Noa", "accountName": "Acme"},
                "linkCode": LINK_CODE,
            },
        )
        session_id = created.json()["sessionId"]
        await client.put(
            f"/api/sessions/{session_id}/status",
            json={"status": "completed", "videoUrl": "/temp/rec-1.webm"},
        )

        response = await client.post(f"/api/sessions/{session_id}/submit")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "itemId": "9001",
            "message": "Ticket submitted successfully",
        }
        create_call = item_store.create_calls[0]
        assert create_call["token"] == OWNER_TOKEN
        assert create_call["item_name"] == "Noa - Acme"
        assert create_call["column_values"]["long_text"] == "Export button does nothing"

        assert await app.state.attach_queue.drain(timeout=5) is True
        upload_call = item_store.upload_calls[0]
        assert upload_call["item_id"] == "9001"
        assert upload_call["column_id"] == "files"
        assert upload_call["content"] == b"recorded-video"
        assert not recording.exists()

        state = (await client.get(f"/api/sessions/{session_id}")).json()
        assert state["status"] == "completed"

    @pytest.mark.asyncio
    async def test_submit_with_inline_file(self, app, client, seeded_kv, item_store) -> None:
        created = await client.post("/api/sessions", json={"linkCode": LINK_CODE})
        session_id = created.json()["sessionId"]

        response = await client.post(
            f"/api/sessions/{session_id}/submit",
            data={"description": "typed at submit time"},
            files={"file": ("clip.webm", b"inline", "video/webm")},
        )

        assert response.status_code == 200
        await app.state.attach_queue.drain(timeout=5)
        assert item_store.create_calls[0]["column_values"]["long_text"] == "typed at submit time"
        assert item_store.upload_calls[0]["file_name"] == "clip.webm"

    @pytest.mark.asyncio
    async def test_unknown_session(self, client) -> None:
        response = await client.post("/api/sessions/missing/submit", data={"description": "bug"})

        assert response.status_code == 404


class TestDirectTickets:

    @pytest.mark.asyncio
    async def test_owner_disconnected(self, client, kv, item_store) -> None:
        kv._data[f"link_{LINK_CODE}"] = encode_link_config(make_link_config())

        response = await client.post("/api/tickets", data={"linkCode": LINK_CODE, "description": "bug"})

        assert response.status_code == 500
        assert "disconnected" in response.json()["message"]
        assert response.json()["error"]["code"] == "OWNER_DISCONNECTED"
        assert item_store.create_calls == []

    @pytest.mark.asyncio
    async def test_nothing_to_submit(self, client, kv, item_store) -> None:
        response = await client.post("/api/tickets", data={"linkCode": LINK_CODE})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "TICKET_VALIDATION_FAILED"
        assert kv.get_calls == []
        assert item_store.create_calls == []

    @pytest.mark.asyncio
    async def test_unknown_link(self, client, seeded_kv) -> None:
        response = await client.post("/api/tickets", data={"linkCode": "ZZZ999", "description": "bug"})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "LINK_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_metadata_form_field(self, client, seeded_kv, item_store) -> None:
        response = await client.post(
            "/api/tickets",
            data={
                "linkCode": LINK_CODE,
                "description": "bug",
                "metadata": '{"requesterName": "Noa", "userEmail": "noa@acme.io"}',
            },
        )

        assert response.status_code == 200
        values = item_store.create_calls[0]["column_values"]
        assert values["text_requester"] == "Noa"
        assert values["email_user"] == {"email": "noa@acme.io", "text": "noa@acme.io"}

    @pytest.mark.asyncio
    async def test_invalid_metadata(self, client, seeded_kv, item_store) -> None:
        response = await client.post(
            "/api/tickets",
            data={"linkCode": LINK_CODE, "description": "bug", "metadata": "{broken"},
        )

        assert response.status_code == 400
        assert item_store.create_calls == []

    @pytest.mark.asyncio
    async def test_inline_file(self, app, client, seeded_kv, item_store, temp_files) -> None:
        response = await client.post(
            "/api/tickets",
            data={"linkCode": LINK_CODE},
            files={"file": ("clip.webm", b"abc", "video/webm")},
        )

        assert response.status_code == 200
        await app.state.attach_queue.drain(timeout=5)
        assert item_store.upload_calls[0]["content"] == b"abc"
        assert list(temp_files.directory.iterdir()) == []

    @pytest.mark.asyncio
    async def test_uploaded_video_url(self, app, client, seeded_kv, item_store, temp_files) -> None:
        uploaded = await client.post(
            "/api/upload/temp",
            params={"sessionId": "sess-1"},
            files={"file": ("recording.webm", b"agent-bytes", "video/webm")},
        )
        url = uploaded.json()["url"]

        response = await client.post(
            "/api/tickets",
            data={"linkCode": LINK_CODE, "description": "bug", "videoUrl": f"http://testserver{url}"},
        )

        assert response.status_code == 200
        await app.state.attach_queue.drain(timeout=5)
        assert item_store.upload_calls[0]["content"] == b"agent-bytes"
        assert list(temp_files.directory.iterdir()) == []

    @pytest.mark.asyncio
    async def test_item_creation_failure(self, test_settings, kv, seeded_kv, registry, temp_files) -> None:
        failing = FakeItemStore(create_error=ItemStoreError("monday.com API error: Board not found"))
        app = create_app(test_settings, kv=kv, item_store=failing, session_registry=registry, temp_files=temp_files)

        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://testserver"
        ) as client:
            response = await client.post(
                "/api/tickets",
                data={"linkCode": LINK_CODE, "description": "bug"},
                files={"file": ("clip.webm", b"abc", "video/webm")},
            )

        assert response.status_code == 502
        assert response.json()["message"] == "Failed to submit ticket: monday.com API error: Board not found"
        assert failing.upload_calls == []
        assert list(temp_files.directory.iterdir()) == []


class TestTempUpload:

    @pytest.mark.asyncio
    async def test_upload_and_serve(self, client) -> None:
        response = await client.post(
            "/api/upload/temp",
            params={"sessionId": "sess-1"},
            files={"file": ("recording.webm", b"agent-bytes", "video/webm")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["url"] == f"/temp/{body['filename']}"
        assert body["size"] == len(b"agent-bytes")
        assert body["sessionId"] == "sess-1"

        served = await client.get(body["url"])
        assert served.status_code == 200
        assert served.content == b"agent-bytes"

    @pytest.mark.asyncio
    async def test_too_large(self, client, temp_files) -> None:
        response = await client.post(
            "/api/upload/temp",
            files={"file": ("recording.webm", b"x" * 4096, "video/webm")},
        )

        assert response.status_code == 413
        assert list(temp_files.directory.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_file(self, client) -> None:
        response = await client.post("/api/upload/temp", data={"note": "no file"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_UPLOAD"
