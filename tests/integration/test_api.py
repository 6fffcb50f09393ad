"""
Integration tests for API endpoints.
"""

import json
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from shelfscan.library.plex import LibraryError, LibrarySection

pytestmark = pytest.mark.asyncio

MODEL = "openai/gpt-4o"


def parse_sse(body: str) -> list[tuple[str, dict]]:
    """Split an SSE body into (event, data) pairs."""
    events = []
    for frame in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in frame.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


async def upload(client, image, content_type="image/png", model_id=MODEL):
    data = {"modelId": model_id} if model_id else {}
    return await client.post(
        "/api/v1/scans",
        files={"image": ("shelf.png", image, content_type)},
        data=data,
    )


@pytest_asyncio.fixture
async def scan_id(client, sample_shelf_image):
    response = await upload(client, sample_shelf_image)
    events = parse_sse(response.text)
    return events[0][1]["scanId"]


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["database"] == "healthy"
        assert data["components"]["tmdb"] == "configured"
        assert data["components"]["tvdb"] == "not_configured"

    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "ShelfScan"


class TestScanUpload:
    """Tests for the streaming scan endpoint."""

    async def test_upload_streams_progress(self, client, sample_shelf_image):
        response = await upload(client, sample_shelf_image)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = parse_sse(response.text)
        assert [name for name, _ in events] == ["created", "status", "status", "status", "complete"]
        assert [data["status"] for name, data in events if name == "status"] == [
            "analyzing",
            "enriching",
            "complete",
        ]
        scan = events[-1][1]["scan"]
        assert scan["id"] == events[0][1]["scanId"]
        assert [item["title"] for item in scan["items"]] == [
            "Alien",
            "Breaking Bad - Season 1",
            "The Thing",
            "Kind of Blue",
        ]

    async def test_default_model_used(self, client, sample_shelf_image, vision):
        response = await upload(client, sample_shelf_image, model_id=None)

        assert response.status_code == 200
        assert vision.calls == [MODEL]

    async def test_unsupported_type(self, client):
        response = await upload(client, b"hello", content_type="text/plain")

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_invalid_model(self, client, sample_shelf_image):
        response = await upload(client, sample_shelf_image, model_id="acme/vision-9000")

        assert response.status_code == 400
        assert "Invalid model ID" in response.json()["error"]

    async def test_missing_image(self, client):
        response = await client.post("/api/v1/scans", data={"modelId": MODEL})

        assert response.status_code == 400

    async def test_vision_not_configured(self, client, container, sample_shelf_image):
        container.orchestrator.vision = None

        response = await upload(client, sample_shelf_image)

        assert response.status_code == 503
        assert response.json()["code"] == "SERVICE_NOT_CONFIGURED"


class TestScanEndpoints:
    """Tests for scan listing, detail, image and deletion."""

    async def test_list_scans(self, client, scan_id):
        response = await client.get("/api/v1/scans")

        assert response.status_code == 200
        data = response.json()
        assert data["limit"] == 50
        assert data["offset"] == 0
        assert len(data["scans"]) == 1
        summary = data["scans"][0]
        assert summary["id"] == scan_id
        assert summary["status"] == "complete"
        assert summary["item_count"] == 4
        assert summary["total_cost"] == pytest.approx(0.0045)

    async def test_list_validates_paging(self, client):
        response = await client.get("/api/v1/scans", params={"limit": 0})

        assert response.status_code == 400

    async def test_get_scan(self, client, scan_id):
        response = await client.get(f"/api/v1/scans/{scan_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "complete"
        assert data["model_id"] == MODEL
        assert data["items"][0]["tmdb_id"] == 348
        assert data["items"][3]["confidence"] == "unmatched"

    async def test_get_missing_scan(self, client):
        response = await client.get("/api/v1/scans/nope")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_get_image(self, client, scan_id, sample_shelf_image):
        response = await client.get(f"/api/v1/scans/{scan_id}/image")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content == sample_shelf_image

    async def test_delete_scan(self, client, scan_id):
        response = await client.delete(f"/api/v1/scans/{scan_id}")

        assert response.status_code == 200
        assert response.json() == {"deleted": True, "id": scan_id}
        assert (await client.get(f"/api/v1/scans/{scan_id}")).status_code == 404
        assert (await client.delete(f"/api/v1/scans/{scan_id}")).status_code == 404


class TestReplayEndpoints:
    """Tests for rescan, re-enrich and item edits."""

    async def test_rescan_with_model(self, client, scan_id, vision):
        response = await client.post(
            f"/api/v1/scans/{scan_id}/rescan",
            json={"modelId": "anthropic/claude-sonnet-4"},
        )

        assert response.status_code == 200
        events = parse_sse(response.text)
        assert events[0] == ("status", {"status": "pending"})
        assert events[1] == ("created", {"scanId": scan_id})
        assert events[-1][0] == "complete"
        assert events[-1][1]["scan"]["model_id"] == "anthropic/claude-sonnet-4"
        assert vision.calls == [MODEL, "anthropic/claude-sonnet-4"]

    async def test_rescan_without_body(self, client, scan_id, vision):
        response = await client.post(f"/api/v1/scans/{scan_id}/rescan")

        assert response.status_code == 200
        assert parse_sse(response.text)[-1][0] == "complete"
        assert vision.calls == [MODEL, MODEL]

    async def test_rescan_missing_scan(self, client):
        response = await client.post("/api/v1/scans/nope/rescan")

        assert response.status_code == 404

    async def test_reenrich(self, client, scan_id, vision):
        response = await client.post(f"/api/v1/scans/{scan_id}/re-enrich")

        assert response.status_code == 200
        events = parse_sse(response.text)
        assert [name for name, _ in events] == ["status", "status", "complete"]
        assert events[-1][1]["scan"]["items"][0]["tmdb_id"] == 348
        assert len(vision.calls) == 1

    async def test_reenrich_without_raw_response(self, client, repository):
        image_id = await repository.store_image(b"photo", "image/jpeg")
        scan = await repository.create_scan(image_id, MODEL)

        response = await client.post(f"/api/v1/scans/{scan.id}/re-enrich")

        assert response.status_code == 409
        assert response.json()["code"] == "NO_RAW_RESPONSE"

    async def test_edit_item(self, client, scan_id):
        detail = (await client.get(f"/api/v1/scans/{scan_id}")).json()
        item_id = detail["items"][0]["id"]

        response = await client.put(
            f"/api/v1/scans/{scan_id}/items/{item_id}",
            json={"title": "The Thing"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == item_id
        assert data["tmdb_id"] == 1091
        assert data["raw_title"] == "The Thing"

    async def test_edit_item_requires_title(self, client, scan_id):
        detail = (await client.get(f"/api/v1/scans/{scan_id}")).json()
        item_id = detail["items"][0]["id"]

        response = await client.put(f"/api/v1/scans/{scan_id}/items/{item_id}", json={"title": ""})

        assert response.status_code == 400

    async def test_edit_missing_item(self, client, scan_id):
        response = await client.put(f"/api/v1/scans/{scan_id}/items/nope", json={"title": "Alien"})

        assert response.status_code == 404


class TestSystemEndpoints:
    """Tests for settings, usage, config and log level."""

    async def test_settings_round_trip(self, client):
        assert (await client.get("/api/v1/settings")).json() == {"settings": {}}

        response = await client.put("/api/v1/settings/default_model", json={"value": "openai/gpt-4o"})

        assert response.status_code == 200
        assert response.json() == {"key": "default_model", "value": "openai/gpt-4o"}
        assert (await client.get("/api/v1/settings")).json() == {"settings": {"default_model": "openai/gpt-4o"}}

    async def test_usage(self, client, scan_id):
        response = await client.get("/api/v1/usage")

        assert response.status_code == 200
        data = response.json()
        assert len(data["records"]) == 1
        assert data["records"][0]["scan_id"] == scan_id
        assert data["summary"]["total_calls"] == 1
        assert data["summary"]["total_cost_usd"] == pytest.approx(0.0045)

    async def test_config_hides_secrets(self, client):
        response = await client.get("/api/v1/config")

        assert response.status_code == 200
        data = response.json()
        assert data["services"]["openrouter"]["configured"] is True
        assert data["services"]["tmdb"]["configured"] is True
        assert data["services"]["tvdb"]["configured"] is False
        assert data["services"]["plex"]["configured"] is False
        assert data["defaultModelId"] == MODEL
        assert "test-openrouter-key" not in response.text
        assert "test-tmdb-key" not in response.text

    async def test_connection_checks(self, client):
        openrouter = (await client.post("/api/v1/config/test", json={"service": "openrouter"})).json()
        tmdb = (await client.post("/api/v1/config/test", json={"service": "tmdb"})).json()
        tvdb = (await client.post("/api/v1/config/test", json={"service": "tvdb"})).json()

        assert openrouter["ok"] is True
        assert tmdb == {"ok": True, "message": "Connected to TMDB (2 genres available)"}
        assert tvdb == {"ok": False, "message": "TVDB is not configured"}

    async def test_connection_check_unknown_service(self, client):
        response = await client.post("/api/v1/config/test", json={"service": "netflix"})

        assert response.status_code == 400

    async def test_log_level(self, client):
        assert (await client.get("/api/v1/log-level")).json() == {"logLevel": "DEBUG"}

        response = await client.put("/api/v1/log-level", json={"logLevel": "warning"})
        assert response.json() == {"logLevel": "WARNING"}
        assert (await client.get("/api/v1/log-level")).json() == {"logLevel": "WARNING"}

        bad = await client.put("/api/v1/log-level", json={"logLevel": "verbose"})
        assert bad.status_code == 400

        await client.put("/api/v1/log-level", json={"logLevel": "debug"})


class TestLibraryEndpoint:
    """Tests for personal library browsing."""

    async def test_not_configured(self, client):
        response = await client.post("/api/v1/plex", json={"action": "libraries"})

        assert response.status_code == 503
        assert response.json()["code"] == "SERVICE_NOT_CONFIGURED"

    async def test_list_libraries(self, client, container):
        plex = AsyncMock()
        plex.list_sections.return_value = [LibrarySection(key="1", title="Movies", kind="movie")]
        container._plex = plex

        response = await client.post("/api/v1/plex", json={"action": "libraries"})

        assert response.status_code == 200
        assert response.json() == {"libraries": [{"key": "1", "title": "Movies", "kind": "movie"}]}

    async def test_library_failure(self, client, container):
        plex = AsyncMock()
        plex.list_all_items.side_effect = LibraryError("Plex API error: 401")
        container._plex = plex

        response = await client.post("/api/v1/plex", json={"action": "items"})

        assert response.status_code == 502
        assert response.json()["code"] == "EXTERNAL_SERVICE_ERROR"

    async def test_unknown_action(self, client):
        response = await client.post("/api/v1/plex", json={"action": "delete"})

        assert response.status_code == 400
