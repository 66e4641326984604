"""
Result helpers: measuring finished images, formatting processing time,
and saving every result to disk.
"""

import io
import base64
import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field

from imagestudio.core.exceptions import StudioBaseException, TransportError
from imagestudio.core.logging import get_logger
from imagestudio.workflow.client import StudioClient
from imagestudio.workflow.slots import ImageSlot

logger = get_logger(__name__)

DOWNLOAD_NAME_TEMPLATE = "processed_image_{position}.png"


def decode_data_url(result: str) -> Optional[bytes]:
    """Bytes of a base64 data: URL, or None if the result is not one."""
    if not result.startswith("data:"):
        return None
    _, _, encoded = result.partition(",")
    try:
        return base64.b64decode(encoded, validate=True)
    except ValueError as e:
        raise TransportError("Result is not valid base64") from e


async def load_result(result: str, client: StudioClient) -> bytes:
    data = decode_data_url(result)
    if data is not None:
        return data
    return await client.fetch_result(result)


def format_processing_time(ms: int) -> str:
    """1234567 -> '20m 34s'"""
    seconds = ms // 1000
    return f"{seconds // 60}m {seconds % 60}s"


class ResultInspector:
    """Reads the pixel size of a finished result."""

    def __init__(self, client: StudioClient):
        self.client = client

    async def measure(self, result: str) -> Optional[Tuple[int, int]]:
        """
        Return (width, height), or None if the image cannot be loaded.
        Measurement is informational only.
        """
        try:
            data = await load_result(result, self.client)
            return await asyncio.to_thread(_image_size, data)
        except (StudioBaseException, UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            logger.warning("result_measure_failed", error=str(e), error_type=type(e).__name__)
            return None


def _image_size(data: bytes) -> Tuple[int, int]:
    with Image.open(io.BytesIO(data)) as img:
        return img.size


class DownloadReport(BaseModel):
    """Files written by a bulk download, and the slots that could not be saved."""
    written: List[Path] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)


async def download_result(
    slot: ImageSlot,
    position: int,
    client: StudioClient,
    directory: Union[str, Path]
) -> Optional[Path]:
    """
    Save one slot's result as processed_image_<position>.png.
    Returns None when the slot has no result yet.
    """
    if not slot.has_result:
        return None

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    data = await load_result(slot.result, client)
    path = directory / DOWNLOAD_NAME_TEMPLATE.format(position=position)
    await asyncio.to_thread(path.write_bytes, data)
    return path


async def bulk_download(
    slots: Sequence[ImageSlot],
    client: StudioClient,
    directory: Union[str, Path]
) -> DownloadReport:
    """
    Save every included slot that has a result as processed_image_<n>.png,
    n being the slot's 1-based position in the selection. A result that
    cannot be loaded is recorded against its slot and the rest are still saved.
    """
    report = DownloadReport()

    for position, slot in enumerate(slots, start=1):
        if not (slot.included and slot.has_result):
            continue

        try:
            path = await download_result(slot, position, client, directory)
        except StudioBaseException as e:
            logger.warning("bulk_download_failed", slot_id=slot.slot_id, error=e.message)
            report.failed[slot.slot_id] = e.message
            continue

        report.written.append(path)

    logger.info(
        "bulk_download_completed",
        count=len(report.written),
        failed=len(report.failed),
        directory=str(directory)
    )
    return report
