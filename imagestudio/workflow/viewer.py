"""
Viewer Transform Store

Per-slot pan/zoom for rendered results. Transforms live on the slots in the
SlotStore; this class owns the gesture state (the single active drag) and
applies zoom, wheel, drag and reset edits through whole-slot replacement.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from imagestudio.core.logging import get_logger
from imagestudio.workflow.slots import SlotStore, Transform

logger = get_logger(__name__)

ZOOM_STEP = 1.2
WHEEL_STEP = 0.1


class DragToken(BaseModel):
    """The slot being dragged and the last pointer position seen."""
    model_config = ConfigDict(frozen=True)

    slot_id: str
    x: float
    y: float


class ViewerTransformStore:

    def __init__(self, store: SlotStore):
        self.store = store
        self._drag: Optional[DragToken] = None

    @property
    def active_drag(self) -> Optional[DragToken]:
        return self._drag

    def transform_of(self, slot_id: str) -> Optional[Transform]:
        slot = self.store.get(slot_id)
        return slot.transform if slot is not None else None

    def _apply(self, slot_id: str, transform: Transform) -> Transform:
        self.store.update(slot_id, transform=transform)
        return transform

    def zoom(self, slot_id: str, zoom_in: bool) -> Optional[Transform]:
        """Button zoom: multiply or divide the scale by ZOOM_STEP."""
        current = self.transform_of(slot_id)
        if current is None:
            return None
        scale = current.scale * ZOOM_STEP if zoom_in else current.scale / ZOOM_STEP
        return self._apply(slot_id, current.scaled(scale))

    def zoom_in(self, slot_id: str) -> Optional[Transform]:
        return self.zoom(slot_id, zoom_in=True)

    def zoom_out(self, slot_id: str) -> Optional[Transform]:
        return self.zoom(slot_id, zoom_in=False)

    def wheel(self, slot_id: str, delta_y: float) -> Optional[Transform]:
        """Wheel zoom: scrolling down (positive delta) zooms out by WHEEL_STEP."""
        current = self.transform_of(slot_id)
        if current is None:
            return None
        step = -WHEEL_STEP if delta_y > 0 else WHEEL_STEP
        return self._apply(slot_id, current.scaled(current.scale + step))

    def reset(self, slot_id: str) -> Optional[Transform]:
        if self.store.get(slot_id) is None:
            return None
        return self._apply(slot_id, Transform())

    # -------------------------------------------------------------------------
    # Drag
    # -------------------------------------------------------------------------

    def begin_drag(self, slot_id: str, x: float, y: float) -> Optional[DragToken]:
        """Pointer down. Any drag already in progress is ended first."""
        if self.store.get(slot_id) is None:
            return None
        if self._drag is not None:
            logger.debug("drag_superseded", previous_slot_id=self._drag.slot_id)
        self._drag = DragToken(slot_id=slot_id, x=x, y=y)
        return self._drag

    def drag_to(self, x: float, y: float) -> Optional[Transform]:
        """
        Pointer move. Adds the delta since the last move to the dragged
        slot's translation and advances the start point to (x, y).
        """
        token = self._drag
        if token is None:
            return None

        current = self.transform_of(token.slot_id)
        if current is None:
            # Slot went away mid-drag (new selection)
            self._drag = None
            return None

        self._drag = token.model_copy(update={"x": x, "y": y})
        return self._apply(token.slot_id, current.translated(x - token.x, y - token.y))

    def end_drag(self):
        """Pointer up."""
        self._drag = None
