"""
Client-side batch workflow: submit, poll, correlate and view results.
"""

from imagestudio.workflow.client import StudioClient
from imagestudio.workflow.correlator import SlotCorrelator
from imagestudio.workflow.orchestrator import BatchOrchestrator, BatchReport
from imagestudio.workflow.poller import StatusPoller
from imagestudio.workflow.results import (
    DownloadReport,
    ResultInspector,
    bulk_download,
    download_result,
    format_processing_time,
)
from imagestudio.workflow.slots import (
    MAX_SCALE,
    MIN_SCALE,
    ImageSlot,
    PreviewRegistry,
    SelectedFile,
    SlotStore,
    Transform,
    load_slots,
)
from imagestudio.workflow.submitter import SubmissionMode, SubmissionResult, TaskSubmitter, compress_image
from imagestudio.workflow.tasks import EnhancementTask, ProgressBoard, TaskState
from imagestudio.workflow.viewer import WHEEL_STEP, ZOOM_STEP, DragToken, ViewerTransformStore
from imagestudio.workflow.workspace import ImageWorkspace
