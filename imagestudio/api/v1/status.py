"""
Status Endpoint - Enhancement Task Polling

GET /api/v1/check-enhancement-status?taskId=... - Lightweight status for
frequent polling. Always answers with one of:
    {"status": "success", "image": <url>}
    {"status": "error", "message": <provider message>}
    {"status": "pending"}
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from imagestudio.api.dependencies import get_vmake_service
from imagestudio.core.exceptions import InputError, TransportError
from imagestudio.core.logging import get_logger, LogContext
from imagestudio.engines.vmake.services import VmakeService
from imagestudio.modules.imagery.schemas import EnhancementStatusResponse

TASK_ID_REQUIRED_MESSAGE = "taskId is required"
STATUS_FAILED_MESSAGE = "An error occurred while checking the enhancement status."

logger = get_logger(__name__)
router = APIRouter()


@router.get("", response_model=EnhancementStatusResponse, response_model_exclude_none=True)
async def check_enhancement_status(
    task_id: Optional[str] = Query(None, alias="taskId"),
    vmake: VmakeService = Depends(get_vmake_service)
):
    """
    Get the current state of an enhancement task.

    A provider rejection is not an HTTP error here: it is reported as
    {"status": "error"} so the poller stops on it.
    """
    if not task_id:
        raise InputError(TASK_ID_REQUIRED_MESSAGE)

    with LogContext(task_id=task_id, stage="enhance"):
        try:
            result = await vmake.get_enhancement_status(task_id)
        except TransportError as e:
            logger.error("status_upstream_failed", error=e.message, http_status=e.http_status)
            raise TransportError(STATUS_FAILED_MESSAGE, http_status=e.http_status) from e

        logger.debug("status_checked", status=result.status.value)
        return result
