"""
FastAPI Dependencies

Provides dependency injection for the shared Vmake service and the
payload checks common to both submit routes.
"""

from fastapi import Request

from imagestudio.core.config import settings
from imagestudio.core.exceptions import InputError
from imagestudio.engines.vmake.services import VmakeService
from imagestudio.modules.imagery.schemas import ImagePayload

MISSING_IMAGE_MESSAGE = "No image data was provided."

MAX_IMAGE_SIZE_BYTES = settings.MAX_IMAGE_SIZE_BYTES
MAX_IMAGE_SIZE_MB = MAX_IMAGE_SIZE_BYTES / (1024 * 1024)


def get_vmake_service(request: Request) -> VmakeService:
    """Returns the Vmake service created in the application lifespan."""
    return request.app.state.vmake_service


def require_image(payload: ImagePayload) -> str:
    """Return the base64 image or raise InputError if missing or oversized."""
    if not payload.image:
        raise InputError(MISSING_IMAGE_MESSAGE)

    # base64 is ~33% larger than the binary it encodes
    decoded_size_bytes = len(payload.image) * 3 / 4
    if decoded_size_bytes > MAX_IMAGE_SIZE_BYTES:
        actual_size_mb = decoded_size_bytes / (1024 * 1024)
        raise InputError(
            f"Image size ({actual_size_mb:.2f}MB) exceeds maximum allowed size ({MAX_IMAGE_SIZE_MB:.0f}MB). "
            f"Please compress or resize your image."
        )
    return payload.image
