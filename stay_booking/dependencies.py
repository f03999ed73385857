"""
FastAPI dependency injection providers.

Routes receive the engine and the job queue through these providers, so tests
can swap in a SQLite engine or a recording queue with
``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import Generator

from fastapi import BackgroundTasks
from sqlalchemy.engine import Engine

from stay_booking.db.engine import engine
from stay_booking.services.jobs import BackgroundTasksQueue, JobQueue


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide the database engine.

    Yields:
        Engine: SQLAlchemy database engine

    Testing Example:
        >>> app.dependency_overrides[get_db_engine] = lambda: sqlite_engine
        >>> client = TestClient(app)
        >>> response = client.post("/bookings", json={...})
    """
    yield engine


def get_job_queue(background_tasks: BackgroundTasks) -> JobQueue:
    """
    Provide the queue for post-booking jobs.

    Jobs run after the response has been sent, through FastAPI's background
    tasks.

    Args:
        background_tasks: Request-scoped background task runner

    Returns:
        JobQueue: Queue wrapping the request's background tasks
    """
    return BackgroundTasksQueue(background_tasks)
