"""
API v1 Router Module

All v1 endpoints are prefixed with /api/v1/

- POST /api/v1/remove-background - synchronous background removal
- POST /api/v1/enhance-image - asynchronous quality enhancement (returns taskId)
- GET  /api/v1/check-enhancement-status - enhancement task polling
- GET  /api/v1/metrics - Prometheus metrics
"""

from fastapi import APIRouter

from imagestudio.api.v1.background import router as background_router
from imagestudio.api.v1.enhance import router as enhance_router
from imagestudio.api.v1.status import router as status_router
from imagestudio.api.v1.metrics import router as metrics_router

# Provider-facing routes, shared by the versioned and legacy mounts
imagery_router = APIRouter()
imagery_router.include_router(background_router, prefix="/remove-background", tags=["background"])
imagery_router.include_router(enhance_router, prefix="/enhance-image", tags=["enhance"])
imagery_router.include_router(status_router, prefix="/check-enhancement-status", tags=["status"])

# Main v1 router
api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(imagery_router)
api_v1_router.include_router(metrics_router, tags=["metrics"])
