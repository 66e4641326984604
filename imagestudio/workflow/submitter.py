"""
Task Submitter

Sends one image to the studio service and returns either an immediate
result (background removal) or a task id to poll (enhancement).

Enhancement payloads are downsampled so the longest edge is at most
COMPRESS_MAX_EDGE and re-encoded as JPEG at COMPRESS_QUALITY. Background
removal sends the original bytes unchanged.
"""

import io
import base64
import asyncio
from enum import Enum
from typing import Optional

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel

from imagestudio.core.config import settings
from imagestudio.core.exceptions import InputError
from imagestudio.core.logging import get_logger
from imagestudio.workflow.client import StudioClient

logger = get_logger(__name__)

MISSING_SOURCE_MESSAGE = "No image data was provided."
PNG_DATA_URL_PREFIX = "data:image/png;base64,"


class SubmissionMode(str, Enum):
    ENHANCE = "enhance"
    REMOVE_BACKGROUND = "remove_background"


class SubmissionResult(BaseModel):
    """Exactly one of the fields is set, depending on the mode."""
    task_id: Optional[str] = None
    image: Optional[str] = None


def compress_image(
    source: bytes,
    max_edge: int = settings.COMPRESS_MAX_EDGE,
    quality: int = settings.COMPRESS_QUALITY
) -> bytes:
    """Bound the longest edge to max_edge and re-encode as JPEG."""
    try:
        img = Image.open(io.BytesIO(source))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise InputError("Cannot read image for compression") from e

    if img.mode != "RGB":
        img = img.convert("RGB")

    if max(img.size) > max_edge:
        img.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


class TaskSubmitter:

    def __init__(
        self,
        client: StudioClient,
        max_edge: int = settings.COMPRESS_MAX_EDGE,
        quality: int = settings.COMPRESS_QUALITY
    ):
        self.client = client
        self.max_edge = max_edge
        self.quality = quality

    async def submit(self, source: bytes, mode: SubmissionMode) -> SubmissionResult:
        """
        Submit one image.

        Raises InputError for an empty source without touching the network;
        ProviderRejected and TransportError come from the client.
        """
        if not source:
            raise InputError(MISSING_SOURCE_MESSAGE)

        if mode == SubmissionMode.REMOVE_BACKGROUND:
            payload = base64.b64encode(source).decode("ascii")
            image = await self.client.remove_background(payload)
            logger.info("background_removed", result_length=len(image))
            return SubmissionResult(image=f"{PNG_DATA_URL_PREFIX}{image}")

        compressed = await asyncio.to_thread(compress_image, source, self.max_edge, self.quality)
        payload = base64.b64encode(compressed).decode("ascii")
        logger.debug("payload_compressed", original_bytes=len(source), compressed_bytes=len(compressed))

        task_id = await self.client.enhance_image(payload)
        logger.info("enhancement_submitted", task_id=task_id)
        return SubmissionResult(task_id=task_id)
