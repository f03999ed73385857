"""
Unit tests for FastAPI dependency injection.
"""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from fastapi import BackgroundTasks, Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from stay_booking.dependencies import get_db_engine, get_job_queue
from stay_booking.services.jobs import BackgroundTasksQueue, JobQueue


@pytest.mark.unit
def test_get_db_engine_dependency() -> None:
    engine = next(get_db_engine())

    assert isinstance(engine, Engine)


@pytest.mark.unit
def test_get_job_queue_wraps_background_tasks() -> None:
    queue = get_job_queue(BackgroundTasks())

    assert isinstance(queue, BackgroundTasksQueue)


@pytest.mark.unit
def test_dependencies_can_be_overridden() -> None:
    app = FastAPI()
    recorded: list[str] = []

    @app.get("/test")
    def endpoint(
        engine: Engine = Depends(get_db_engine),
        jobs: JobQueue = Depends(get_job_queue),
    ) -> dict[str, bool]:
        jobs.enqueue(recorded.append)
        return {"engine_overridden": engine is mock_engine}

    mock_engine = Mock(spec=Engine)
    fake_queue = Mock()
    app.dependency_overrides[get_db_engine] = lambda: mock_engine
    app.dependency_overrides[get_job_queue] = lambda: fake_queue

    response = TestClient(app).get("/test")

    assert response.status_code == 200
    assert response.json() == {"engine_overridden": True}
    fake_queue.enqueue.assert_called_once()
