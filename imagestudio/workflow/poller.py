"""
Status Poller

Drives one enhancement task from Submitted to a terminal state by polling
the status route on a fixed interval. Every pending answer moves progress
forward by a fixed step (capped below 100); a terminal answer snaps it to 100.

Polling is bounded by attempts and/or wall time. Both bounds come from
settings and either may be disabled with None.
"""

import time
import asyncio
from typing import Awaitable, Callable, Optional

from imagestudio.core.config import settings
from imagestudio.core.exceptions import PollTimeoutError, ProviderError, StudioBaseException
from imagestudio.core.logging import get_logger, LogContext
from imagestudio.core.metrics import record_poll
from imagestudio.modules.imagery.schemas import EnhancementStatusResponse, TaskStatus
from imagestudio.workflow.tasks import EnhancementTask

logger = get_logger(__name__)

ENHANCEMENT_FAILED_MESSAGE = "Enhancement failed"
MISSING_RESULT_MESSAGE = "Enhancement finished without an image"

StatusFetcher = Callable[[str], Awaitable[EnhancementStatusResponse]]
ProgressCallback = Callable[[EnhancementTask], None]


class StatusPoller:
    """Polls one task at a time until success, error, or a bound is hit."""

    def __init__(
        self,
        fetch_status: StatusFetcher,
        interval: float = settings.POLL_INTERVAL_SECONDS,
        step: int = settings.POLL_PROGRESS_STEP,
        max_attempts: Optional[int] = settings.POLL_MAX_ATTEMPTS,
        timeout: Optional[float] = settings.POLL_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        self.fetch_status = fetch_status
        self.interval = interval
        self.step = step
        self.max_attempts = max_attempts
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock

    def _check_bounds(self, task: EnhancementTask, started: float):
        if self.max_attempts is not None and task.attempts >= self.max_attempts:
            raise PollTimeoutError(
                f"Enhancement did not finish after {task.attempts} status checks",
                attempts=task.attempts,
                task_id=task.task_id,
                slot_id=task.slot_id
            )
        if self.timeout is not None and self._clock() - started >= self.timeout:
            raise PollTimeoutError(
                f"Enhancement did not finish within {self.timeout:g}s",
                attempts=task.attempts,
                task_id=task.task_id,
                slot_id=task.slot_id
            )

    async def poll(
        self,
        task: EnhancementTask,
        on_progress: Optional[ProgressCallback] = None
    ) -> str:
        """
        Poll until terminal and return the result image reference.

        Raises:
            ProviderError: the task ended in error (carries the provider message)
            PollTimeoutError: the attempt or time bound was exceeded
            TransportError: a status call failed; the task is abandoned
        """
        def notify():
            if on_progress is not None:
                on_progress(task)

        started = self._clock()

        with LogContext(task_id=task.task_id, slot_id=task.slot_id, stage="enhance"):
            try:
                while True:
                    self._check_bounds(task, started)

                    status = await self.fetch_status(task.task_id)
                    task.attempts += 1
                    record_poll(status.status.value)

                    if status.status == TaskStatus.SUCCESS:
                        if not status.image:
                            raise ProviderError(MISSING_RESULT_MESSAGE)
                        task.finish(succeeded=True)
                        notify()
                        logger.info("enhancement_succeeded", attempts=task.attempts)
                        return status.image

                    if status.status == TaskStatus.ERROR:
                        raise ProviderError(status.message or ENHANCEMENT_FAILED_MESSAGE)

                    task.advance(self.step)
                    notify()
                    logger.debug("enhancement_poll", status=status.status.value, progress=task.progress)

                    await self._sleep(self.interval)

            except StudioBaseException as e:
                task.finish(succeeded=False)
                notify()
                logger.warning(
                    "enhancement_failed",
                    attempts=task.attempts,
                    error=e.message,
                    error_type=type(e).__name__
                )
                raise
