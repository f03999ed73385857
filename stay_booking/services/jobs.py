"""
Fire-and-forget submission of post-booking work.

The booking service only depends on the ``JobQueue`` protocol. Whether a job
runs, runs twice, or never runs does not change what the booking service
returns: jobs are submitted after the transaction commits and submission
errors are logged, counted and dropped.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

import structlog
from fastapi import BackgroundTasks

from stay_booking.metrics import job_enqueue_failures

logger = structlog.get_logger(__name__)


class JobQueue(Protocol):
    def enqueue(self, func: Callable[..., Any], /, **kwargs: Any) -> None: ...


class BackgroundTasksQueue:
    """
    Runs jobs through FastAPI's ``BackgroundTasks`` once the response is sent.

    Example:
        >>> @router.post("/bookings")
        >>> def create(payload: BookingCreatePayload, background_tasks: BackgroundTasks):
        ...     jobs = BackgroundTasksQueue(background_tasks)
        ...     create_booking(engine, ..., jobs=jobs)
    """

    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def enqueue(self, func: Callable[..., Any], /, **kwargs: Any) -> None:
        self._background_tasks.add_task(func, **kwargs)


class InlineJobQueue:
    """Runs each job immediately in the caller's thread; used by scripts and tests."""

    def enqueue(self, func: Callable[..., Any], /, **kwargs: Any) -> None:
        try:
            func(**kwargs)
        except Exception as e:
            logger.exception("job_failed", job=func.__name__, error=str(e))


def submit_job(queue: Optional[JobQueue], func: Callable[..., Any], **kwargs: Any) -> None:
    """
    Hand a job to the queue without letting a queue failure reach the caller.

    Args:
        queue: Job queue, or None to skip side effects entirely
        func: Job callable
        **kwargs: Keyword arguments for the job
    """
    if queue is None:
        return

    try:
        queue.enqueue(func, **kwargs)
    except Exception as e:
        job_enqueue_failures.labels(job=func.__name__).inc()
        logger.exception("job_enqueue_failed", job=func.__name__, error=str(e))
