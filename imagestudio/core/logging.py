"""
Structured Logging Configuration with structlog

Outputs JSON logs (or colored console logs in development).
Every log includes: version, timestamp, and the task/slot/stage context
of the work currently being performed.
"""

import sys
import asyncio
import logging
import structlog
from typing import Optional, Any, Dict
from datetime import datetime
from contextvars import ContextVar
from functools import wraps

# Context variables for task-scoped logging
task_id_var: ContextVar[Optional[str]] = ContextVar("task_id", default=None)
slot_id_var: ContextVar[Optional[str]] = ContextVar("slot_id", default=None)
stage_var: ContextVar[Optional[str]] = ContextVar("stage", default=None)

# Application version
APP_VERSION = "1.0.0"


def add_app_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add application context to every log entry."""
    event_dict["version"] = APP_VERSION

    task_id = task_id_var.get()
    if task_id:
        event_dict.setdefault("task_id", task_id)

    slot_id = slot_id_var.get()
    if slot_id:
        event_dict.setdefault("slot_id", slot_id)

    stage = stage_var.get()
    if stage:
        event_dict.setdefault("stage", stage)

    return event_dict


def add_timestamp(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add ISO format timestamp."""
    event_dict["timestamp"] = datetime.utcnow().isoformat() + "Z"
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = True
):
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, output JSON; if False, output colored console logs
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Silence noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            add_timestamp,
            add_app_context,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.UnicodeDecoder(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class LogContext:
    """
    Context manager for setting logging context.

    Usage:
        with LogContext(slot_id=slot.slot_id, stage="enhance"):
            logger.info("slot_processing_started")
    """

    def __init__(
        self,
        task_id: Optional[str] = None,
        slot_id: Optional[str] = None,
        stage: Optional[str] = None
    ):
        self.task_id = task_id
        self.slot_id = slot_id
        self.stage = stage
        self._tokens = []

    def __enter__(self):
        if self.task_id:
            self._tokens.append((task_id_var, task_id_var.set(self.task_id)))
        if self.slot_id:
            self._tokens.append((slot_id_var, slot_id_var.set(self.slot_id)))
        if self.stage:
            self._tokens.append((stage_var, stage_var.set(self.stage)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []
        return False

    def set_task(self, task_id: str):
        """Attach the provider task id once submission returns it."""
        self._tokens.append((task_id_var, task_id_var.set(task_id)))


def with_logging(stage: str):
    """
    Decorator to wrap a coroutine with stage logging.

    Usage:
        @with_logging("remove_background")
        async def remove_background(self, image: str) -> str:
            ...
    """
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            token = stage_var.set(stage)

            logger.info("stage_started")
            start_time = datetime.utcnow()

            try:
                result = await func(*args, **kwargs)
                duration_ms = int((datetime.utcnow() - start_time).total_seconds() * 1000)
                logger.info("stage_completed", duration_ms=duration_ms)
                return result
            except Exception as e:
                duration_ms = int((datetime.utcnow() - start_time).total_seconds() * 1000)
                logger.error(
                    "stage_failed",
                    duration_ms=duration_ms,
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise
            finally:
                stage_var.reset(token)

        if not asyncio.iscoroutinefunction(func):
            raise TypeError("with_logging only wraps coroutine functions")
        return async_wrapper

    return decorator


# Example log output structure:
# {
#   "timestamp": "2024-05-20T10:00:00Z",
#   "level": "info",
#   "event": "enhancement_poll",
#   "stage": "enhance",
#   "slot_id": "3f0c9a4e2b7d",
#   "task_id": "e1b6c7f8",
#   "version": "1.0.0",
#   "status": "pending",
#   "progress": 30
# }
