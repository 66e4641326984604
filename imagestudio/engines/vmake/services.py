"""
Vmake AI Provider Service

Thin async client over the Vmake image API:
- remove-background: synchronous, returns the processed image
- quality-enhance: asynchronous, returns a task id to poll
- quality-enhance/{taskId}: task status

Every response is an envelope {code, message, data}; a non-zero code is a
provider rejection and carries the provider's message.
"""

from typing import Optional

import httpx
from pydantic import ValidationError

from imagestudio.core.config import settings
from imagestudio.core.exceptions import (
    ConfigError,
    ProviderError,
    ProviderRejected,
    TransportError,
)
from imagestudio.core.logging import get_logger, with_logging
from imagestudio.core.metrics import record_provider_call, track_provider_latency
from imagestudio.engines.vmake.schemas import VmakeEnvelope, VmakeTaskData
from imagestudio.modules.imagery.schemas import EnhancementStatusResponse, TaskStatus

logger = get_logger(__name__)

REMOVE_BACKGROUND_PATH = "/image/remove-background"
QUALITY_ENHANCE_PATH = "/image/quality-enhance"


class VmakeService:
    """Shared Vmake client; one instance per application (see lifespan)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = settings.VMAKE_API_URL,
        timeout: float = settings.VMAKE_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def aclose(self):
        await self._client.aclose()

    def _headers(self) -> dict:
        if not self.api_key:
            logger.error("vmake_api_key_missing")
            raise ConfigError()
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key
        }

    async def _call(self, endpoint: str, method: str, path: str, **kwargs) -> VmakeEnvelope:
        """Perform one Vmake call and return the accepted envelope."""
        headers = self._headers()

        try:
            with track_provider_latency(endpoint):
                response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            record_provider_call(endpoint, "timeout", http_status=0)
            raise TransportError(f"Vmake API timeout: {e}") from e
        except httpx.HTTPError as e:
            record_provider_call(endpoint, "error", http_status=0)
            raise TransportError(f"Vmake API call failed: {e}") from e

        logger.info("vmake_response_received", endpoint=endpoint, http_status=response.status_code)

        if not response.is_success:
            record_provider_call(endpoint, "error", http_status=response.status_code)
            raise TransportError(
                f"HTTP error! status: {response.status_code}",
                http_status=response.status_code
            )

        try:
            envelope = VmakeEnvelope.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            record_provider_call(endpoint, "error", http_status=response.status_code)
            raise TransportError(
                f"Unreadable Vmake response: {e}",
                http_status=response.status_code
            ) from e

        if not envelope.ok:
            record_provider_call(endpoint, "rejected", http_status=response.status_code)
            logger.warning(
                "vmake_request_rejected",
                endpoint=endpoint,
                provider_code=envelope.code,
                provider_message=envelope.message
            )
            raise ProviderRejected(
                envelope.message or f"Vmake rejected the request (code {envelope.code})",
                provider_code=envelope.code
            )

        record_provider_call(endpoint, "success", http_status=response.status_code)
        return envelope

    @with_logging("remove_background")
    async def remove_background(self, image_b64: str) -> str:
        """Return the background-free image as base64."""
        logger.info("vmake_remove_background_requested", image_length=len(image_b64))
        envelope = await self._call(
            "remove_background", "POST", REMOVE_BACKGROUND_PATH, json={"image": image_b64}
        )

        image = (envelope.data or {}).get("image")
        if not image:
            logger.error("vmake_image_missing", data_keys=sorted((envelope.data or {}).keys()))
            raise ProviderError("The provider response contained no image data.", code=500)
        return image

    @with_logging("enhance")
    async def submit_enhancement(self, image_b64: str) -> str:
        """Start a quality-enhance task and return its id."""
        logger.info("vmake_enhancement_requested", image_length=len(image_b64))
        envelope = await self._call(
            "quality_enhance", "POST", QUALITY_ENHANCE_PATH, json={"image": image_b64}
        )

        task_id = (envelope.data or {}).get("taskId")
        if not task_id:
            raise ProviderError("The provider did not return a task id.", code=500)

        logger.info("vmake_enhancement_submitted", task_id=task_id)
        return task_id

    async def get_enhancement_status(self, task_id: str) -> EnhancementStatusResponse:
        """Map the provider task state onto success / error / pending."""
        try:
            envelope = await self._call(
                "quality_enhance_status", "GET", f"{QUALITY_ENHANCE_PATH}/{task_id}"
            )
        except ProviderRejected as e:
            return EnhancementStatusResponse(status=TaskStatus.ERROR, message=e.message)

        data = VmakeTaskData.model_validate(envelope.data or {})

        if data.status == TaskStatus.SUCCESS.value:
            return EnhancementStatusResponse(status=TaskStatus.SUCCESS, image=data.downloadUrl)
        if data.status == TaskStatus.ERROR.value:
            return EnhancementStatusResponse(status=TaskStatus.ERROR, message=data.message)
        return EnhancementStatusResponse(status=TaskStatus.PENDING)
