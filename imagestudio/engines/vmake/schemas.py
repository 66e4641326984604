from pydantic import BaseModel, Field
from typing import Dict, Optional, Any


class VmakeEnvelope(BaseModel):
    """Every Vmake response: {code, message, data}. code == 0 means accepted."""
    code: int = Field(..., description="Provider status code, 0 on success")
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.code == 0


class VmakeTaskData(BaseModel):
    """`data` of GET /image/quality-enhance/{taskId}."""
    status: Optional[str] = None
    downloadUrl: Optional[str] = None
    message: Optional[str] = None
