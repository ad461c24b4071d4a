# ngsi_source/core/tasks.py
from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


def log_task_failure(task: asyncio.Task) -> None:
    """Done callback logging the exception of a background task nobody awaits."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Task '%s' failed: %s", task.get_name(), exc, exc_info=exc
        )
