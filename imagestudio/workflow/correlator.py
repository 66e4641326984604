"""
Slot Correlator

Maps finished tasks back to the slot that started them. Attribution is
checked against the snapshot taken when the batch began, then against the
live store: a slot that was replaced by a new selection, or that already
has a result, never receives a second write.
"""

from typing import Dict, Optional, Sequence

from imagestudio.core.logging import get_logger
from imagestudio.workflow.slots import ImageSlot, SlotStore
from imagestudio.workflow.tasks import EnhancementTask

logger = get_logger(__name__)


class SlotCorrelator:

    def __init__(self, store: SlotStore, snapshot: Sequence[ImageSlot]):
        self.store = store
        self.snapshot = tuple(snapshot)
        self._positions = {slot.slot_id: index for index, slot in enumerate(self.snapshot)}
        self._in_flight: Dict[str, EnhancementTask] = {}

    def resolve(self, slot_id: str) -> Optional[int]:
        """Position of the slot in the batch snapshot, or None if it was not part of it."""
        return self._positions.get(slot_id)

    def track(self, task: EnhancementTask) -> EnhancementTask:
        self._in_flight[task.task_id] = task
        return task

    def release(self, task_id: str) -> Optional[EnhancementTask]:
        return self._in_flight.pop(task_id, None)

    @property
    def in_flight(self) -> Dict[str, EnhancementTask]:
        return dict(self._in_flight)

    def deliver(self, slot_id: str, **fields) -> bool:
        """
        Write a result onto its originating slot.

        Returns False (and logs) when the completion is stray: the slot was
        not in the snapshot, is no longer in the store, or already has a result.
        """
        reason = None
        if self.resolve(slot_id) is None:
            reason = "not_in_batch"
        else:
            live = self.store.get(slot_id)
            if live is None:
                reason = "slot_replaced"
            elif live.has_result:
                reason = "already_populated"

        if reason is not None:
            logger.info("stray_completion_dropped", slot_id=slot_id, reason=reason)
            return False

        self.store.update(slot_id, **fields)
        logger.debug("result_delivered", slot_id=slot_id, position=self.resolve(slot_id))
        return True
