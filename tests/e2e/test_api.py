import json
import base64
import pytest
import httpx
from httpx import ASGITransport

from imagestudio.main import app
from imagestudio.core.config import settings
from imagestudio.api.dependencies import get_vmake_service
from imagestudio.engines.vmake.services import VmakeService
from imagestudio.workflow import (
    ImageWorkspace,
    SelectedFile,
    StatusPoller,
    StudioClient,
    SubmissionMode,
)

REMOVE_BACKGROUND = "/image/remove-background"
ENHANCE = "/image/quality-enhance"


def accepted(data):
    return {"code": 0, "message": "ok", "data": data}


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_root_lists_versioned_api(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["api_v1"] == "/api/v1"


@pytest.mark.asyncio
async def test_ready_reports_missing_api_key(monkeypatch):
    monkeypatch.setattr(settings, "VMAKE_API_KEY", None)
    async with app.router.lifespan_context(app):
        async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/ready")

    assert response.status_code == 503
    assert response.json()["checks"]["vmake_api_key"] is False


@pytest.mark.asyncio
async def test_metrics_endpoint(client):
    response = await client.get("/api/v1/metrics")
    assert response.status_code == 200
    assert "vmake_api_calls_total" in response.text


# =============================================================================
# Remove background
# =============================================================================

@pytest.mark.asyncio
async def test_remove_background_returns_image(client, fake_vmake):
    fake_vmake.respond_json(REMOVE_BACKGROUND, accepted({"image": "cHJvY2Vzc2Vk"}))

    response = await client.post("/api/v1/remove-background", json={"image": "aW5wdXQ="})

    assert response.status_code == 200
    assert response.json() == {"image": "cHJvY2Vzc2Vk"}

    sent = fake_vmake.requests[0]
    assert sent.headers["x-api-key"] == "test-key"
    assert sent.method == "POST"


@pytest.mark.asyncio
async def test_remove_background_missing_image(client, fake_vmake):
    response = await client.post("/api/v1/remove-background", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "No image data was provided."
    assert fake_vmake.requests == []


@pytest.mark.asyncio
async def test_remove_background_upstream_failure(client, fake_vmake):
    fake_vmake.respond(REMOVE_BACKGROUND, httpx.Response(502, text="bad gateway"))

    response = await client.post("/api/v1/remove-background", json={"image": "aW5wdXQ="})

    assert response.status_code == 500
    assert response.json()["error"] == "An error occurred while removing the background."


@pytest.mark.asyncio
async def test_oversized_payload_rejected(client, fake_vmake, monkeypatch):
    monkeypatch.setattr("imagestudio.api.dependencies.MAX_IMAGE_SIZE_BYTES", 10)

    response = await client.post("/api/v1/remove-background", json={"image": "A" * 100})

    assert response.status_code == 400
    assert "exceeds maximum allowed size" in response.json()["error"]
    assert fake_vmake.requests == []


@pytest.mark.asyncio
async def test_invalid_body_is_client_error(client):
    response = await client.post("/api/v1/enhance-image", json={"image": 123})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request format"


# =============================================================================
# Enhance
# =============================================================================

@pytest.mark.asyncio
async def test_enhance_returns_task_id(client, fake_vmake):
    fake_vmake.respond_json(ENHANCE, accepted({"taskId": "t-1"}))

    response = await client.post("/api/v1/enhance-image", json={"image": "aW5wdXQ="})

    assert response.status_code == 200
    assert response.json() == {"taskId": "t-1"}


@pytest.mark.asyncio
async def test_enhance_provider_rejection_passes_message(client, fake_vmake):
    fake_vmake.respond_json(ENHANCE, {"code": 1001, "message": "image too small", "data": None})

    response = await client.post("/api/v1/enhance-image", json={"image": "aW5wdXQ="})

    assert response.status_code == 400
    assert response.json()["error"] == "image too small"


@pytest.mark.asyncio
async def test_enhance_upstream_failure(client, fake_vmake):
    fake_vmake.respond(ENHANCE, httpx.Response(503))

    response = await client.post("/api/v1/enhance-image", json={"image": "aW5wdXQ="})

    assert response.status_code == 500
    assert response.json()["error"] == "An error occurred while enhancing the image."


@pytest.mark.asyncio
async def test_enhance_without_api_key(fake_vmake):
    service = VmakeService(api_key=None, base_url="https://vmake.test", transport=httpx.MockTransport(fake_vmake))
    app.dependency_overrides[get_vmake_service] = lambda: service
    try:
        async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.post("/api/v1/enhance-image", json={"image": "aW5wdXQ="})
    finally:
        app.dependency_overrides.clear()
        await service.aclose()

    assert response.status_code == 500
    assert response.json()["error"] == "API key is not configured"
    assert fake_vmake.requests == []


@pytest.mark.asyncio
async def test_legacy_path_still_served(client, fake_vmake):
    fake_vmake.respond_json(ENHANCE, accepted({"taskId": "t-legacy"}))

    response = await client.post("/api/enhance-image", json={"image": "aW5wdXQ="})

    assert response.status_code == 200
    assert response.json()["taskId"] == "t-legacy"


# =============================================================================
# Status
# =============================================================================

@pytest.mark.asyncio
async def test_status_requires_task_id(client):
    response = await client.get("/api/v1/check-enhancement-status")

    assert response.status_code == 400
    assert response.json()["error"] == "taskId is required"


@pytest.mark.asyncio
async def test_status_pending(client, fake_vmake):
    fake_vmake.respond_json(f"{ENHANCE}/t-1", accepted({"status": "processing"}))

    response = await client.get("/api/v1/check-enhancement-status", params={"taskId": "t-1"})

    assert response.status_code == 200
    assert response.json() == {"status": "pending"}


@pytest.mark.asyncio
async def test_status_success(client, fake_vmake):
    fake_vmake.respond_json(
        f"{ENHANCE}/t-1",
        accepted({"status": "success", "downloadUrl": "https://cdn.test/t-1.jpg"})
    )

    response = await client.get("/api/v1/check-enhancement-status", params={"taskId": "t-1"})

    assert response.json() == {"status": "success", "image": "https://cdn.test/t-1.jpg"}


@pytest.mark.asyncio
async def test_status_error_carries_message(client, fake_vmake):
    fake_vmake.respond_json(f"{ENHANCE}/t-1", accepted({"status": "error", "message": "face not found"}))

    response = await client.get("/api/v1/check-enhancement-status", params={"taskId": "t-1"})

    assert response.json() == {"status": "error", "message": "face not found"}


@pytest.mark.asyncio
async def test_status_provider_rejection_is_error_status(client, fake_vmake):
    fake_vmake.respond_json(f"{ENHANCE}/t-1", {"code": 404, "message": "task not found", "data": None})

    response = await client.get("/api/v1/check-enhancement-status", params={"taskId": "t-1"})

    assert response.status_code == 200
    assert response.json() == {"status": "error", "message": "task not found"}


# =============================================================================
# Workflow against the running app
# =============================================================================

@pytest.fixture
async def studio_client(client):
    async with StudioClient(base_url="http://test", transport=ASGITransport(app=app)) as studio:
        yield studio


@pytest.mark.asyncio
async def test_workspace_enhances_batch(studio_client, fake_vmake, png_bytes):
    fake_vmake.respond_json(ENHANCE, accepted({"taskId": "t-1"}))
    fake_vmake.respond_json(
        f"{ENHANCE}/t-1",
        accepted({"status": "processing"}),
        accepted({"status": "processing"}),
        accepted({"status": "success", "downloadUrl": "https://cdn.test/t-1.jpg"})
    )

    poller = StatusPoller(studio_client.check_enhancement_status, interval=0)
    workspace = ImageWorkspace(studio_client, SubmissionMode.ENHANCE, poller=poller, measure_results=False)
    await workspace.select_files([SelectedFile(name="a.png", data=png_bytes)])

    report = await workspace.process()

    slot = workspace.slots[0]
    assert report.completed == [slot.slot_id]
    assert slot.result == "https://cdn.test/t-1.jpg"
    assert workspace.orchestrator.progress.get(slot.slot_id) == 100
    assert workspace.is_processing is False

    # Enhancement payloads are re-encoded as JPEG
    sent = base64.b64decode(json.loads(fake_vmake.requests[0].content)["image"])
    assert sent[:2] == b"\xff\xd8"

    workspace.close()
    assert workspace.previews.active == 0


@pytest.mark.asyncio
async def test_workspace_removes_background_and_measures(studio_client, fake_vmake, png_bytes, png_factory):
    processed = base64.b64encode(png_factory(32, 16)).decode("ascii")
    fake_vmake.respond_json(REMOVE_BACKGROUND, accepted({"image": processed}))

    workspace = ImageWorkspace(studio_client, SubmissionMode.REMOVE_BACKGROUND)
    await workspace.select_files([SelectedFile(name="a.png", data=png_bytes)])

    await workspace.process()

    slot = workspace.slots[0]
    assert slot.result == f"data:image/png;base64,{processed}"
    assert (slot.result_width, slot.result_height) == (32, 16)
    assert (slot.width, slot.height) == (64, 48)


@pytest.mark.asyncio
async def test_workspace_surfaces_provider_error_verbatim(studio_client, fake_vmake, png_bytes):
    fake_vmake.respond_json(ENHANCE, accepted({"taskId": "t-1"}))
    fake_vmake.respond_json(f"{ENHANCE}/t-1", accepted({"status": "error", "message": "X"}))

    poller = StatusPoller(studio_client.check_enhancement_status, interval=0)
    workspace = ImageWorkspace(studio_client, SubmissionMode.ENHANCE, poller=poller, measure_results=False)
    await workspace.select_files([SelectedFile(name="a.png", data=png_bytes)])

    report = await workspace.process()

    slot = workspace.slots[0]
    assert report.failed == {slot.slot_id: "X"}
    assert workspace.orchestrator.errors[slot.slot_id] == "X"
    assert workspace.error == "X"
    assert slot.result is None


@pytest.mark.asyncio
async def test_workspace_downloads_single_and_all_results(studio_client, fake_vmake, png_bytes, png_factory, tmp_path):
    processed = png_factory(32, 16)
    fake_vmake.respond_json(
        REMOVE_BACKGROUND,
        accepted({"image": base64.b64encode(processed).decode("ascii")})
    )

    workspace = ImageWorkspace(studio_client, SubmissionMode.REMOVE_BACKGROUND, measure_results=False)
    await workspace.select_files([
        SelectedFile(name="a.png", data=png_bytes),
        SelectedFile(name="b.png", data=png_bytes),
    ])
    first, second = workspace.slots
    workspace.toggle(first.slot_id)

    assert await workspace.download(second.slot_id, tmp_path) is None

    await workspace.process()

    path = await workspace.download(second.slot_id, tmp_path / "single")
    assert path.name == "processed_image_2.png"
    assert path.read_bytes() == processed
    assert await workspace.download("missing", tmp_path) is None

    report = await workspace.download_all(tmp_path / "all")
    assert [p.name for p in report.written] == ["processed_image_2.png"]
    assert report.failed == {}
