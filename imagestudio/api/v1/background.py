"""
Remove Background Endpoint

POST /api/v1/remove-background - Synchronous background removal.
Unlike enhancement there is no task id: the processed PNG is returned
directly as base64.
"""

from fastapi import APIRouter, Depends

from imagestudio.api.dependencies import get_vmake_service, require_image
from imagestudio.core.exceptions import TransportError
from imagestudio.core.logging import get_logger, LogContext
from imagestudio.engines.vmake.services import VmakeService
from imagestudio.modules.imagery.schemas import ImagePayload, RemoveBackgroundResponse

REMOVE_BACKGROUND_FAILED_MESSAGE = "An error occurred while removing the background."

logger = get_logger(__name__)
router = APIRouter()


@router.post("", response_model=RemoveBackgroundResponse)
async def remove_background(
    payload: ImagePayload,
    vmake: VmakeService = Depends(get_vmake_service)
):
    """Remove the background of a base64 image."""
    image = require_image(payload)

    with LogContext(stage="remove_background"):
        logger.info("remove_background_request_received", image_length=len(image))

        try:
            processed = await vmake.remove_background(image)
        except TransportError as e:
            logger.error("remove_background_upstream_failed", error=e.message, http_status=e.http_status)
            raise TransportError(REMOVE_BACKGROUND_FAILED_MESSAGE, http_status=e.http_status) from e

        return RemoveBackgroundResponse(image=processed)
