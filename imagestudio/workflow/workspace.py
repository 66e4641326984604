"""
One image workspace: a selection of slots, their viewer state, and the
batch that processes them in a single mode.
"""

from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

from imagestudio.core.logging import get_logger
from imagestudio.workflow.client import StudioClient
from imagestudio.workflow.orchestrator import BatchOrchestrator, BatchReport
from imagestudio.workflow.poller import StatusPoller
from imagestudio.workflow.results import DownloadReport, ResultInspector, bulk_download, download_result
from imagestudio.workflow.slots import ImageSlot, PreviewRegistry, SelectedFile, SlotStore, load_slots
from imagestudio.workflow.submitter import SubmissionMode, TaskSubmitter
from imagestudio.workflow.viewer import ViewerTransformStore

logger = get_logger(__name__)


class ImageWorkspace:
    """
    Usage:
        async with StudioClient() as client:
            workspace = ImageWorkspace(client, SubmissionMode.ENHANCE)
            await workspace.select_files(files)
            await workspace.process()
            await workspace.download_all("out/")
            workspace.close()
    """

    def __init__(
        self,
        client: StudioClient,
        mode: SubmissionMode = SubmissionMode.ENHANCE,
        poller: Optional[StatusPoller] = None,
        measure_results: bool = True
    ):
        self.client = client
        self.mode = mode
        self.previews = PreviewRegistry()
        self.store = SlotStore(self.previews)
        self.viewer = ViewerTransformStore(self.store)
        self.orchestrator = BatchOrchestrator(
            self.store,
            TaskSubmitter(client),
            poller or StatusPoller(client.check_enhancement_status),
            mode=mode,
            inspector=ResultInspector(client) if measure_results else None
        )

    @property
    def slots(self) -> Tuple[ImageSlot, ...]:
        return self.store.slots

    @property
    def is_processing(self) -> bool:
        return self.orchestrator.is_processing

    @property
    def error(self) -> Optional[str]:
        return self.orchestrator.error

    async def select_files(self, files: Sequence[SelectedFile]) -> Tuple[ImageSlot, ...]:
        """Replace the selection. Results still in flight for old slots are dropped."""
        slots = await load_slots(files, self.previews)
        self.viewer.end_drag()
        self.store.replace(slots)
        self.orchestrator.errors.clear()
        self.orchestrator.progress.clear()
        logger.info("selection_replaced", mode=self.mode.value, count=len(slots))
        return self.store.slots

    def toggle(self, slot_id: str) -> Optional[ImageSlot]:
        return self.store.toggle_included(slot_id)

    async def process(self) -> BatchReport:
        return await self.orchestrator.run()

    async def download(self, slot_id: str, directory: Union[str, Path]) -> Optional[Path]:
        """Save one result. Returns None if the slot is gone or has no result."""
        index = self.store.index_of(slot_id)
        if index is None:
            return None
        return await download_result(self.store.slots[index], index + 1, self.client, directory)

    async def download_all(self, directory: Union[str, Path]) -> DownloadReport:
        return await bulk_download(self.store.slots, self.client, directory)

    def close(self):
        """Drop the selection and release every preview."""
        self.viewer.end_drag()
        self.store.clear()
