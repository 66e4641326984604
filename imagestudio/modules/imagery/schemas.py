"""
Wire schemas shared by the studio routes and the workflow client.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(str, Enum):
    """Status values reported by the enhancement status route."""
    SUCCESS = "success"
    ERROR = "error"
    PENDING = "pending"


class ImagePayload(BaseModel):
    """Request body for both submit routes."""
    image: Optional[str] = Field(None, description="Base64 encoded image (no data: prefix)")


class EnhanceResponse(BaseModel):
    """Enhancement is asynchronous: the caller polls with the returned task id."""
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(..., alias="taskId")


class RemoveBackgroundResponse(BaseModel):
    """Background removal is synchronous: the processed PNG comes back directly."""
    image: str = Field(..., description="Base64 encoded PNG")


class EnhancementStatusResponse(BaseModel):
    """One of {status: success, image}, {status: error, message}, {status: pending}."""
    status: TaskStatus
    image: Optional[str] = None
    message: Optional[str] = None
