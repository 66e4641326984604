"""
Enhancement task records and per-slot progress.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field

TERMINAL_PROGRESS = 100
PENDING_PROGRESS_CAP = 99


class TaskState(str, Enum):
    """Submitted -> Pending -> {Succeeded, Failed}"""
    SUBMITTED = "submitted"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class EnhancementTask(BaseModel):
    """
    Correlation record for one provider task.

    Holds the owning slot by id only; the slot itself lives in the store.
    Discarded once polling reaches a terminal state or fails.
    """
    task_id: str
    slot_id: str
    progress: int = Field(0, ge=0, le=TERMINAL_PROGRESS)
    state: TaskState = TaskState.SUBMITTED
    attempts: int = 0

    def advance(self, step: int) -> int:
        """Record one pending poll. Progress never reaches 100 while pending."""
        self.state = TaskState.PENDING
        self.progress = min(self.progress + step, PENDING_PROGRESS_CAP)
        return self.progress

    def finish(self, succeeded: bool):
        self.state = TaskState.SUCCEEDED if succeeded else TaskState.FAILED
        self.progress = TERMINAL_PROGRESS


class ProgressBoard:
    """Progress per slot id. Values only move forward."""

    def __init__(self):
        self._progress: Dict[str, int] = {}

    def start(self, slot_id: str):
        """Begin a new processing pass for the slot at 0."""
        self._progress[slot_id] = 0

    def report(self, slot_id: str, progress: int) -> int:
        current = self._progress.get(slot_id, 0)
        value = max(current, min(progress, TERMINAL_PROGRESS))
        self._progress[slot_id] = value
        return value

    def get(self, slot_id: str) -> Optional[int]:
        return self._progress.get(slot_id)

    def clear(self):
        self._progress.clear()

    def as_dict(self) -> Dict[str, int]:
        return dict(self._progress)
