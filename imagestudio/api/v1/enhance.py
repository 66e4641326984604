"""
Enhance Endpoint - Quality Enhancement Submission

POST /api/v1/enhance-image - Submit a base64 image for quality enhancement.
The provider works asynchronously; the response carries a task id that the
caller polls at /api/v1/check-enhancement-status.
"""

from fastapi import APIRouter, Depends

from imagestudio.api.dependencies import get_vmake_service, require_image
from imagestudio.core.exceptions import TransportError
from imagestudio.core.logging import get_logger, LogContext
from imagestudio.engines.vmake.services import VmakeService
from imagestudio.modules.imagery.schemas import EnhanceResponse, ImagePayload

ENHANCE_FAILED_MESSAGE = "An error occurred while enhancing the image."

logger = get_logger(__name__)
router = APIRouter()


@router.post("", response_model=EnhanceResponse)
async def enhance_image(
    payload: ImagePayload,
    vmake: VmakeService = Depends(get_vmake_service)
):
    """
    Submit an image for quality enhancement.

    Errors:
    - 400: missing image, or the provider rejected the request (provider message)
    - 500: API key not configured, or the provider could not be reached
    """
    image = require_image(payload)

    with LogContext(stage="enhance"):
        logger.info("enhance_request_received", image_length=len(image))

        try:
            task_id = await vmake.submit_enhancement(image)
        except TransportError as e:
            logger.error("enhance_upstream_failed", error=e.message, http_status=e.http_status)
            raise TransportError(ENHANCE_FAILED_MESSAGE, http_status=e.http_status) from e

        return EnhanceResponse(task_id=task_id)
