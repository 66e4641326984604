"""
Image slots and the slot store.

One ImageSlot per selected file, in selection order. Slots are frozen; the
SlotStore is the single shared collection and every mutation swaps in a new
tuple, so the orchestrator and direct UI edits never see a half-written
collection.
"""

import io
import uuid
import asyncio
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict, Field

from imagestudio.core.exceptions import InputError
from imagestudio.core.logging import get_logger

logger = get_logger(__name__)

MIN_SCALE = 0.1
MAX_SCALE = 5.0


def clamp_scale(scale: float) -> float:
    return max(MIN_SCALE, min(MAX_SCALE, scale))


class Transform(BaseModel):
    """Pan/zoom applied to a rendered result."""
    model_config = ConfigDict(frozen=True)

    scale: float = Field(1.0, ge=MIN_SCALE, le=MAX_SCALE)
    x: float = 0.0
    y: float = 0.0

    def scaled(self, scale: float) -> "Transform":
        return self.model_copy(update={"scale": clamp_scale(scale)})

    def translated(self, dx: float, dy: float) -> "Transform":
        return self.model_copy(update={"x": self.x + dx, "y": self.y + dy})

    @property
    def percent(self) -> int:
        """Zoom level as shown next to the zoom controls."""
        return round(self.scale * 100)


class SelectedFile(BaseModel):
    """A file handed over by the file picker."""
    name: str
    data: bytes


class ImageSlot(BaseModel):
    """One selected image and its processing/view state."""
    model_config = ConfigDict(frozen=True)

    slot_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    source: bytes
    preview: Optional[str] = None
    width: int
    height: int
    included: bool = True

    # Written once, by the correlator
    result: Optional[str] = None
    elapsed_ms: Optional[int] = None
    result_width: Optional[int] = None
    result_height: Optional[int] = None

    transform: Transform = Field(default_factory=Transform)

    @property
    def has_result(self) -> bool:
        return self.result is not None


class PreviewRegistry:
    """
    Transient preview handles for selected files.

    Handles must be released when their slots are replaced or the viewer
    goes away; `active` reports what is still held.
    """

    def __init__(self):
        self._previews: Dict[str, bytes] = {}

    def create(self, data: bytes) -> str:
        handle = f"preview:{uuid.uuid4().hex}"
        self._previews[handle] = data
        return handle

    def resolve(self, handle: str) -> Optional[bytes]:
        return self._previews.get(handle)

    def release(self, handle: Optional[str]):
        if handle is not None:
            self._previews.pop(handle, None)

    @property
    def active(self) -> int:
        return len(self._previews)


def read_dimensions(data: bytes, name: str) -> Tuple[int, int]:
    """Decode just enough of the image to learn its pixel size."""
    if not data:
        raise InputError(f"File is empty: {name}")
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise InputError(f"Cannot read image: {name}") from e


async def load_slots(files: Sequence[SelectedFile], previews: PreviewRegistry) -> List[ImageSlot]:
    """
    Decode every file concurrently and build one slot per file.

    Results are collected into a fixed-size list indexed by the original
    file order; the call completes only once every entry is filled. If any
    file cannot be decoded, InputError propagates and no preview is created.
    """
    dimensions: List[Optional[Tuple[int, int]]] = [None] * len(files)

    async def load_one(index: int, file: SelectedFile):
        dimensions[index] = await asyncio.to_thread(read_dimensions, file.data, file.name)

    await asyncio.gather(*(load_one(i, f) for i, f in enumerate(files)))

    slots = []
    for file, (width, height) in zip(files, dimensions):
        slots.append(ImageSlot(
            name=file.name,
            source=file.data,
            preview=previews.create(file.data),
            width=width,
            height=height
        ))

    logger.info("slots_loaded", count=len(slots))
    return slots


class SlotStore:
    """Whole-collection-replacement store for the current selection."""

    def __init__(self, previews: Optional[PreviewRegistry] = None):
        self.previews = previews or PreviewRegistry()
        self._slots: Tuple[ImageSlot, ...] = ()

    @property
    def slots(self) -> Tuple[ImageSlot, ...]:
        return self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[ImageSlot]:
        return iter(self._slots)

    def get(self, slot_id: str) -> Optional[ImageSlot]:
        for slot in self._slots:
            if slot.slot_id == slot_id:
                return slot
        return None

    def index_of(self, slot_id: str) -> Optional[int]:
        for index, slot in enumerate(self._slots):
            if slot.slot_id == slot_id:
                return index
        return None

    def replace(self, slots: Sequence[ImageSlot]):
        """Swap in a new selection, releasing previews that are no longer used."""
        previous = self._slots
        self._slots = tuple(slots)

        kept = {slot.preview for slot in self._slots}
        for slot in previous:
            if slot.preview not in kept:
                self.previews.release(slot.preview)

    def update(self, slot_id: str, **changes) -> Optional[ImageSlot]:
        """Replace one slot with an updated copy. Returns None if the slot is gone."""
        updated = None
        slots = []
        for slot in self._slots:
            if slot.slot_id == slot_id:
                updated = slot.model_copy(update=changes)
                slots.append(updated)
            else:
                slots.append(slot)

        if updated is not None:
            self._slots = tuple(slots)
        return updated

    def toggle_included(self, slot_id: str) -> Optional[ImageSlot]:
        slot = self.get(slot_id)
        if slot is None:
            return None
        return self.update(slot_id, included=not slot.included)

    def clear(self):
        self.replace(())
