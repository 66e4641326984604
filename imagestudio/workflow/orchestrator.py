"""
Batch Orchestrator

Processes every included slot without a result, one at a time in selection
order. A failure is recorded against its slot and the batch moves on;
`is_processing` stays set from the first slot until the last one finishes.
"""

import time
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from imagestudio.core.exceptions import StudioBaseException
from imagestudio.core.logging import get_logger, LogContext
from imagestudio.core.metrics import record_slot_outcome
from imagestudio.workflow.correlator import SlotCorrelator
from imagestudio.workflow.poller import StatusPoller
from imagestudio.workflow.results import ResultInspector
from imagestudio.workflow.slots import ImageSlot, SlotStore
from imagestudio.workflow.submitter import SubmissionMode, TaskSubmitter
from imagestudio.workflow.tasks import TERMINAL_PROGRESS, EnhancementTask, ProgressBoard

logger = get_logger(__name__)


class BatchReport(BaseModel):
    """What happened to each slot in one run."""
    completed: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
    skipped: List[str] = Field(default_factory=list)
    dropped: List[str] = Field(default_factory=list)


class BatchOrchestrator:

    def __init__(
        self,
        store: SlotStore,
        submitter: TaskSubmitter,
        poller: StatusPoller,
        mode: SubmissionMode = SubmissionMode.ENHANCE,
        inspector: Optional[ResultInspector] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.store = store
        self.submitter = submitter
        self.poller = poller
        self.mode = mode
        self.inspector = inspector
        self._clock = clock

        self.is_processing = False
        self.error: Optional[str] = None
        self.errors: Dict[str, str] = {}
        self.progress = ProgressBoard()

    async def run(self) -> BatchReport:
        """Process the current selection. A second concurrent run is refused."""
        report = BatchReport()

        if self.is_processing:
            logger.warning("batch_already_running", mode=self.mode.value)
            return report

        snapshot = self.store.slots
        pending: List[ImageSlot] = []
        for slot in snapshot:
            if not slot.included:
                continue
            if slot.has_result:
                report.skipped.append(slot.slot_id)
            else:
                pending.append(slot)

        if not pending:
            return report

        self.is_processing = True
        self.error = None
        correlator = SlotCorrelator(self.store, snapshot)
        logger.info("batch_started", mode=self.mode.value, slots=len(pending), skipped=len(report.skipped))

        try:
            for slot in pending:
                if self.store.get(slot.slot_id) is None:
                    # Selection replaced mid-run
                    logger.info("slot_skipped_replaced", slot_id=slot.slot_id)
                    report.dropped.append(slot.slot_id)
                    continue
                await self._process_slot(slot, correlator, report)
        finally:
            self.is_processing = False

        logger.info(
            "batch_completed",
            mode=self.mode.value,
            completed=len(report.completed),
            failed=len(report.failed),
            dropped=len(report.dropped)
        )
        return report

    async def _process_slot(self, slot: ImageSlot, correlator: SlotCorrelator, report: BatchReport):
        started = self._clock()
        slot_id = slot.slot_id

        with LogContext(slot_id=slot_id, stage=self.mode.value) as log_context:
            self.progress.start(slot_id)
            self.errors.pop(slot_id, None)

            try:
                submission = await self.submitter.submit(slot.source, self.mode)

                if submission.task_id is not None:
                    log_context.set_task(submission.task_id)
                    task = correlator.track(EnhancementTask(task_id=submission.task_id, slot_id=slot_id))
                    try:
                        image = await self.poller.poll(task, on_progress=self._on_progress)
                    finally:
                        correlator.release(task.task_id)
                else:
                    image = submission.image

                fields = {
                    "result": image,
                    "elapsed_ms": int((self._clock() - started) * 1000)
                }
                if self.inspector is not None:
                    size = await self.inspector.measure(image)
                    if size is not None:
                        fields["result_width"], fields["result_height"] = size

                if correlator.deliver(slot_id, **fields):
                    outcome = "completed"
                    report.completed.append(slot_id)
                else:
                    outcome = "dropped"
                    report.dropped.append(slot_id)

            except StudioBaseException as e:
                outcome = "failed"
                self.errors[slot_id] = e.message
                self.error = e.message
                report.failed[slot_id] = e.message
                logger.warning("slot_failed", error=e.message, error_type=type(e).__name__)

            finally:
                self.progress.report(slot_id, TERMINAL_PROGRESS)

            duration = self._clock() - started
            record_slot_outcome(self.mode.value, outcome, duration)
            logger.info("slot_finished", outcome=outcome, duration_ms=int(duration * 1000))

    def _on_progress(self, task: EnhancementTask):
        self.progress.report(task.slot_id, task.progress)
