"""
Studio HTTP client used by the batch workflow.

Talks to the studio service routes (not to Vmake directly):
- POST /api/v1/remove-background
- POST /api/v1/enhance-image
- GET  /api/v1/check-enhancement-status?taskId=...
"""

from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from imagestudio.core.config import settings
from imagestudio.core.exceptions import ProviderRejected, TransportError
from imagestudio.core.logging import get_logger
from imagestudio.modules.imagery.schemas import (
    EnhanceResponse,
    EnhancementStatusResponse,
    RemoveBackgroundResponse,
)

logger = get_logger(__name__)

API_PREFIX = "/api/v1"


class StudioClient:
    """Async client for the studio service. Use as an async context manager."""

    def __init__(
        self,
        base_url: str = settings.STUDIO_BASE_URL,
        timeout: float = settings.STUDIO_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport
        )

    async def __aenter__(self) -> "StudioClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, f"{API_PREFIX}{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.error("studio_request_failed", path=path, error=str(e))
            raise TransportError(f"Request to {path} failed: {e}") from e

        if response.status_code == 400:
            # Provider rejections and input errors come back as 400 {error}
            message = _error_message(response)
            if message:
                raise ProviderRejected(message)

        if not response.is_success:
            raise TransportError(
                f"HTTP error! status: {response.status_code}",
                http_status=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                f"Unreadable response from {path}",
                http_status=response.status_code
            ) from e

    async def remove_background(self, image_b64: str) -> str:
        """Return the processed PNG as base64 (no data: prefix)."""
        body = await self._request("POST", "/remove-background", json={"image": image_b64})
        return _parse(RemoveBackgroundResponse, body).image

    async def enhance_image(self, image_b64: str) -> str:
        """Submit an enhancement and return the task id."""
        body = await self._request("POST", "/enhance-image", json={"image": image_b64})
        return _parse(EnhanceResponse, body).task_id

    async def check_enhancement_status(self, task_id: str) -> EnhancementStatusResponse:
        body = await self._request(
            "GET", "/check-enhancement-status", params={"taskId": task_id}
        )
        return _parse(EnhancementStatusResponse, body)

    async def fetch_result(self, url: str) -> bytes:
        """Download a finished result (enhanced images are returned as URLs)."""
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"HTTP error! status: {e.response.status_code}",
                http_status=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Download of {url} failed: {e}") from e
        return response.content


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None


def _parse(model, body: Dict[str, Any]):
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise TransportError(f"Unexpected response shape: {e.error_count()} error(s)") from e
