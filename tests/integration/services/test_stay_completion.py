"""
Integration tests for the stay completion sweep.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable
from unittest.mock import Mock, patch

import pytest
from sqlalchemy.engine import Engine

from stay_booking.models.enums import ReservationStatus
from stay_booking.services.bookings import (
    cancel_booking,
    complete_booking,
    complete_finished_stays,
    create_booking,
    get_booking,
)
from stay_booking.services.notifications import notify_booking_status_changed

TODAY = date(2030, 1, 1)


@pytest.mark.integration
def test_sweep_completes_only_finished_confirmed_stays(
    engine: Engine, make_listing: Callable[..., dict[str, Any]]
) -> None:
    instant = make_listing()
    on_request = make_listing(instant_booking=False)

    finished = create_booking(engine, instant["id"], 51, date(2030, 2, 1), date(2030, 2, 5), 1, today=TODAY)
    ends_today = create_booking(engine, instant["id"], 52, date(2030, 2, 5), date(2030, 2, 10), 1, today=TODAY)
    ongoing = create_booking(engine, instant["id"], 53, date(2030, 2, 11), date(2030, 2, 14), 1, today=TODAY)
    pending = create_booking(engine, on_request["id"], 54, date(2030, 2, 1), date(2030, 2, 3), 1, today=TODAY)
    cancelled = create_booking(engine, instant["id"], 55, date(2030, 1, 20), date(2030, 1, 25), 1, today=TODAY)
    cancel_booking(engine, cancelled["id"], today=TODAY)

    completed = complete_finished_stays(engine, today=date(2030, 2, 10))

    assert completed == 2
    assert get_booking(engine, finished["id"])["status"] == ReservationStatus.COMPLETED
    assert get_booking(engine, ends_today["id"])["status"] == ReservationStatus.COMPLETED
    assert get_booking(engine, ongoing["id"])["status"] == ReservationStatus.CONFIRMED
    assert get_booking(engine, pending["id"])["status"] == ReservationStatus.PENDING
    assert get_booking(engine, cancelled["id"])["status"] == ReservationStatus.CANCELLED


@pytest.mark.integration
def test_sweep_is_idempotent(engine: Engine, listing: dict[str, Any]) -> None:
    create_booking(engine, listing["id"], 51, date(2030, 2, 1), date(2030, 2, 5), 1, today=TODAY)

    assert complete_finished_stays(engine, today=date(2030, 3, 1)) == 1
    assert complete_finished_stays(engine, today=date(2030, 3, 1)) == 0


@pytest.mark.integration
def test_sweep_continues_after_a_failure(engine: Engine, listing: dict[str, Any]) -> None:
    first = create_booking(engine, listing["id"], 51, date(2030, 2, 1), date(2030, 2, 5), 1, today=TODAY)
    second = create_booking(engine, listing["id"], 52, date(2030, 2, 5), date(2030, 2, 9), 1, today=TODAY)

    def flaky_complete(db_engine: Engine, reservation_id: int, **kwargs: Any) -> dict[str, Any]:
        if reservation_id == first["id"]:
            raise RuntimeError("connection reset")
        return complete_booking(db_engine, reservation_id, **kwargs)

    with patch("stay_booking.services.bookings.complete_booking", side_effect=flaky_complete):
        completed = complete_finished_stays(engine, today=date(2030, 3, 1))

    assert completed == 1
    assert get_booking(engine, first["id"])["status"] == ReservationStatus.CONFIRMED
    assert get_booking(engine, second["id"])["status"] == ReservationStatus.COMPLETED


@pytest.mark.integration
def test_sweep_reports_completed_stays_and_notifies(engine: Engine, listing: dict[str, Any]) -> None:
    reservation = create_booking(
        engine, listing["id"], 51, date(2030, 2, 1), date(2030, 2, 5), 1, today=TODAY
    )
    queue = Mock()

    completed = complete_finished_stays(engine, today=date(2030, 2, 5), jobs=queue)

    assert completed == 1
    assert get_booking(engine, reservation["id"])["status"] == ReservationStatus.COMPLETED
    queue.enqueue.assert_called_once_with(
        notify_booking_status_changed, engine=engine, reservation_id=reservation["id"]
    )
