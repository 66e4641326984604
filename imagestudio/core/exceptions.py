"""
Global Exception Handling

Error taxonomy shared by the service routes and the client workflow,
plus the FastAPI handlers that render it as structured JSON.
"""

import traceback
from typing import Optional, Dict, Any
from datetime import datetime
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from imagestudio.core.logging import get_logger, task_id_var, slot_id_var

logger = get_logger(__name__)

INVALID_REQUEST_MESSAGE = "Invalid request format"


# =============================================================================
# Custom Exceptions
# =============================================================================

class StudioBaseException(Exception):
    """Base exception for Image Studio."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        task_id: Optional[str] = None,
        slot_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.task_id = task_id or task_id_var.get()
        self.slot_id = slot_id or slot_id_var.get()
        self.details = details or {}
        super().__init__(self.message)


class InputError(StudioBaseException):
    """Raised when a payload or identifier is missing or malformed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=400, **kwargs)


class ConfigError(StudioBaseException):
    """Raised when required configuration (the provider credential) is missing."""

    def __init__(self, message: str = "API key is not configured", **kwargs):
        super().__init__(message, code=500, **kwargs)


class ProviderError(StudioBaseException):
    """Raised when the provider reports a failure with its own message."""

    def __init__(self, message: str, code: int = 400, **kwargs):
        super().__init__(message, code=code, **kwargs)


class ProviderRejected(ProviderError):
    """Raised when the provider envelope carries a non-zero status code."""

    def __init__(self, message: str, provider_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.details["provider_code"] = provider_code


class TransportError(StudioBaseException):
    """Raised when a network call or its HTTP status fails."""

    def __init__(self, message: str, http_status: Optional[int] = None, **kwargs):
        super().__init__(message, code=500, **kwargs)
        self.http_status = http_status
        self.details["http_status"] = http_status


class PollTimeoutError(StudioBaseException):
    """Raised when a task does not reach a terminal state within the polling bound."""

    def __init__(self, message: str, attempts: int, **kwargs):
        super().__init__(message, code=504, **kwargs)
        self.attempts = attempts
        self.details["attempts"] = attempts


# =============================================================================
# Exception Handlers
# =============================================================================

def _error_body(message: str, code: int) -> Dict[str, Any]:
    return {
        "error": message,
        "code": code,
        "timestamp": datetime.utcnow().isoformat() + "Z"
    }


def register_exception_handlers(app: FastAPI):
    """Register custom exception handlers with FastAPI app."""

    @app.exception_handler(StudioBaseException)
    async def studio_exception_handler(request: Request, exc: StudioBaseException):
        logger.error(
            "studio_exception",
            error=exc.message,
            error_type=type(exc).__name__,
            code=exc.code,
            details=exc.details,
            path=str(request.url.path)
        )

        return JSONResponse(
            status_code=exc.code,
            content=_error_body(exc.message, exc.code)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            "request_validation_failed",
            path=str(request.url.path),
            errors=[error.get("type") for error in exc.errors()]
        )

        return JSONResponse(
            status_code=400,
            content=_error_body(INVALID_REQUEST_MESSAGE, 400)
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
            traceback=traceback.format_exc()
        )

        return JSONResponse(
            status_code=500,
            content=_error_body("Internal server error", 500)
        )
