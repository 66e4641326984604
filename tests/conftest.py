import io
import pytest
import httpx
from httpx import AsyncClient, ASGITransport
from PIL import Image
from typing import AsyncGenerator

from imagestudio.main import app
from imagestudio.api.dependencies import get_vmake_service
from imagestudio.engines.vmake.services import VmakeService

VMAKE_TEST_URL = "https://vmake.test"


def make_png(width: int = 64, height: int = 48, color=(200, 30, 30, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeVmake:
    """
    MockTransport handler standing in for the Vmake API.

    Responses are queued per path; the last queued response repeats.
    """

    def __init__(self):
        self.requests = []
        self._responses = {}

    def respond(self, path: str, *responses: httpx.Response):
        self._responses[path] = list(responses)

    def respond_json(self, path: str, *bodies: dict):
        self.respond(path, *(httpx.Response(200, json=body) for body in bodies))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._responses.get(request.url.path)
        if not queue:
            return httpx.Response(404, json={"code": 404, "message": "not found"})
        return queue.pop(0) if len(queue) > 1 else queue[0]


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def fake_vmake() -> FakeVmake:
    return FakeVmake()


@pytest.fixture
async def vmake_service(fake_vmake) -> AsyncGenerator[VmakeService, None]:
    service = VmakeService(
        api_key="test-key",
        base_url=VMAKE_TEST_URL,
        transport=httpx.MockTransport(fake_vmake)
    )
    yield service
    await service.aclose()


@pytest.fixture
async def client(vmake_service) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_vmake_service] = lambda: vmake_service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def png_factory():
    return make_png
