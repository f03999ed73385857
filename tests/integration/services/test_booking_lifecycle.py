"""
Integration tests for approving, rejecting, cancelling and completing bookings.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Callable
from unittest.mock import Mock

import pytest
from sqlalchemy.engine import Engine

from stay_booking.db.writers.listings import insert_blocked_range
from stay_booking.errors import (
    AvailabilityConflictError,
    ForbiddenActionError,
    InvalidTransitionError,
    NotFoundError,
)
from stay_booking.models.enums import CancellationActor, CancellationPolicy, ReservationStatus
from stay_booking.services.availability import is_available
from stay_booking.services.bookings import (
    approve_booking,
    cancel_booking,
    complete_booking,
    create_booking,
    get_booking,
    list_guest_bookings,
    list_host_reservations,
    reject_booking,
)
from stay_booking.services.listings import add_blocked_dates
from stay_booking.services.notifications import notify_booking_status_changed

TODAY = date(2030, 1, 1)
CHECK_IN = date(2030, 3, 1)
CHECK_OUT = date(2030, 3, 4)


@pytest.fixture
def request_listing(make_listing: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    return make_listing(instant_booking=False)


def book(engine: Engine, listing: dict[str, Any], guest_id: int = 50, **kwargs: Any) -> dict[str, Any]:
    start = kwargs.pop("start", CHECK_IN)
    end = kwargs.pop("end", CHECK_OUT)
    return create_booking(engine, listing["id"], guest_id, start, end, 2, today=TODAY, **kwargs)


@pytest.mark.integration
def test_approve_confirms_pending(engine: Engine, request_listing: dict[str, Any]) -> None:
    pending = book(engine, request_listing)

    confirmed = approve_booking(engine, pending["id"], host_id=request_listing["host_id"])

    assert confirmed["status"] == ReservationStatus.CONFIRMED
    assert get_booking(engine, pending["id"])["status"] == ReservationStatus.CONFIRMED


@pytest.mark.integration
def test_approve_by_other_host_forbidden(engine: Engine, request_listing: dict[str, Any]) -> None:
    pending = book(engine, request_listing)

    with pytest.raises(ForbiddenActionError):
        approve_booking(engine, pending["id"], host_id=999)

    assert get_booking(engine, pending["id"])["status"] == ReservationStatus.PENDING


@pytest.mark.integration
def test_pending_request_holds_its_dates(engine: Engine, request_listing: dict[str, Any]) -> None:
    pending = book(engine, request_listing)

    with pytest.raises(AvailabilityConflictError):
        add_blocked_dates(engine, request_listing["id"], CHECK_IN, CHECK_OUT)

    assert approve_booking(engine, pending["id"])["status"] == ReservationStatus.CONFIRMED


@pytest.mark.integration
def test_approve_rechecks_availability(engine: Engine, request_listing: dict[str, Any]) -> None:
    """A range that became occupied behind the service's back is not confirmed."""
    pending = book(engine, request_listing)
    with engine.begin() as conn:
        insert_blocked_range(conn, request_listing["id"], date(2030, 3, 2), date(2030, 3, 3))

    with pytest.raises(AvailabilityConflictError) as exc_info:
        approve_booking(engine, pending["id"])

    assert exc_info.value.conflict.source == "blocked"
    assert get_booking(engine, pending["id"])["status"] == ReservationStatus.PENDING


@pytest.mark.integration
def test_reject_frees_dates(engine: Engine, request_listing: dict[str, Any]) -> None:
    pending = book(engine, request_listing)

    rejected = reject_booking(engine, pending["id"])

    assert rejected["status"] == ReservationStatus.REJECTED
    assert is_available(engine, request_listing["id"], CHECK_IN, CHECK_OUT)


@pytest.mark.integration
def test_cancel_frees_interval_for_next_guest(engine: Engine, listing: dict[str, Any]) -> None:
    first = book(engine, listing, guest_id=51)

    cancelled = cancel_booking(
        engine, first["id"], actor=CancellationActor.GUEST, actor_id=51, reason="plans changed",
        today=TODAY,
    )
    second = book(engine, listing, guest_id=52)

    assert cancelled["status"] == ReservationStatus.CANCELLED
    assert cancelled["cancelled_by"] == CancellationActor.GUEST
    assert cancelled["cancellation_reason"] == "plans changed"
    assert cancelled["cancelled_at"] is not None
    assert second["status"] == ReservationStatus.CONFIRMED


@pytest.mark.integration
def test_cancelled_reservation_keeps_its_row(engine: Engine, listing: dict[str, Any]) -> None:
    reservation = book(engine, listing)
    cancel_booking(engine, reservation["id"], today=TODAY)

    kept = get_booking(engine, reservation["id"])
    assert (kept["start_date"], kept["end_date"]) == (CHECK_IN, CHECK_OUT)


@pytest.mark.integration
@pytest.mark.parametrize(
    ("policy", "cancelled_on", "refund"),
    [
        (CancellationPolicy.STRICT, date(2030, 2, 20), Decimal("330.00")),
        (CancellationPolicy.STRICT, date(2030, 2, 25), Decimal("0.00")),
        (CancellationPolicy.SUPER_STRICT, date(2030, 1, 15), Decimal("165.00")),
    ],
)
def test_confirmed_cancellation_records_refund(
    engine: Engine,
    make_listing: Callable[..., dict[str, Any]],
    policy: CancellationPolicy,
    cancelled_on: date,
    refund: Decimal,
) -> None:
    listing = make_listing(cancellation_policy=policy)
    reservation = book(engine, listing)

    cancelled = cancel_booking(engine, reservation["id"], today=cancelled_on)

    assert Decimal(cancelled["refund_amount"]) == refund


@pytest.mark.integration
def test_pending_cancellation_has_no_refund(engine: Engine, request_listing: dict[str, Any]) -> None:
    pending = book(engine, request_listing)

    cancelled = cancel_booking(engine, pending["id"], today=TODAY)

    assert cancelled["status"] == ReservationStatus.CANCELLED
    assert cancelled["refund_amount"] is None


@pytest.mark.integration
def test_guest_cannot_cancel_after_check_in(engine: Engine, listing: dict[str, Any]) -> None:
    reservation = book(engine, listing)

    with pytest.raises(InvalidTransitionError, match="already started"):
        cancel_booking(engine, reservation["id"], actor=CancellationActor.GUEST, today=CHECK_IN)

    assert get_booking(engine, reservation["id"])["status"] == ReservationStatus.CONFIRMED


@pytest.mark.integration
def test_host_can_cancel_during_stay(engine: Engine, listing: dict[str, Any]) -> None:
    reservation = book(engine, listing)

    cancelled = cancel_booking(
        engine, reservation["id"], actor=CancellationActor.HOST, actor_id=listing["host_id"],
        today=date(2030, 3, 2),
    )

    assert cancelled["status"] == ReservationStatus.CANCELLED
    assert cancelled["cancelled_by"] == CancellationActor.HOST


@pytest.mark.integration
def test_other_guest_cannot_cancel(engine: Engine, listing: dict[str, Any]) -> None:
    reservation = book(engine, listing, guest_id=51)

    with pytest.raises(ForbiddenActionError):
        cancel_booking(engine, reservation["id"], actor=CancellationActor.GUEST, actor_id=77, today=TODAY)


@pytest.mark.integration
def test_complete_after_checkout(engine: Engine, listing: dict[str, Any]) -> None:
    reservation = book(engine, listing)

    with pytest.raises(InvalidTransitionError, match="cannot be completed yet"):
        complete_booking(engine, reservation["id"], today=date(2030, 3, 3))

    completed = complete_booking(engine, reservation["id"], today=CHECK_OUT)
    assert completed["status"] == ReservationStatus.COMPLETED
    assert completed["completed_at"] is not None


@pytest.mark.integration
def test_completed_stay_still_blocks(engine: Engine, listing: dict[str, Any]) -> None:
    reservation = book(engine, listing)
    complete_booking(engine, reservation["id"], today=CHECK_OUT)

    assert not is_available(engine, listing["id"], CHECK_IN, CHECK_OUT)


@pytest.mark.integration
def test_pending_cannot_complete(engine: Engine, request_listing: dict[str, Any]) -> None:
    pending = book(engine, request_listing)

    with pytest.raises(InvalidTransitionError):
        complete_booking(engine, pending["id"], today=date(2030, 4, 1))


@pytest.mark.integration
@pytest.mark.parametrize("action", ["cancel", "approve", "reject", "complete"])
def test_terminal_reservations_never_change(
    engine: Engine, listing: dict[str, Any], action: str
) -> None:
    reservation = book(engine, listing)
    complete_booking(engine, reservation["id"], today=CHECK_OUT)

    calls = {
        "cancel": lambda: cancel_booking(
            engine, reservation["id"], actor=CancellationActor.ADMIN, today=CHECK_OUT
        ),
        "approve": lambda: approve_booking(engine, reservation["id"]),
        "reject": lambda: reject_booking(engine, reservation["id"]),
        "complete": lambda: complete_booking(engine, reservation["id"], today=CHECK_OUT),
    }
    with pytest.raises(InvalidTransitionError):
        calls[action]()

    assert get_booking(engine, reservation["id"])["status"] == ReservationStatus.COMPLETED


@pytest.mark.integration
def test_unknown_reservation(engine: Engine) -> None:
    with pytest.raises(NotFoundError):
        approve_booking(engine, 4040)
    with pytest.raises(NotFoundError):
        get_booking(engine, 4040)


@pytest.mark.integration
def test_guest_and_host_listings(
    engine: Engine, make_listing: Callable[..., dict[str, Any]]
) -> None:
    mine = make_listing(host_id=7)
    other = make_listing(host_id=8)
    a = book(engine, mine, guest_id=51)
    b = book(engine, other, guest_id=51)
    c = book(engine, mine, guest_id=52, start=date(2030, 4, 1), end=date(2030, 4, 3))

    assert {r["id"] for r in list_guest_bookings(engine, 51)} == {a["id"], b["id"]}
    assert {r["id"] for r in list_host_reservations(engine, 7)} == {a["id"], c["id"]}
    assert list_guest_bookings(engine, 999) == []


@pytest.mark.integration
@pytest.mark.parametrize(
    ("action", "expected"),
    [
        ("approve", ReservationStatus.CONFIRMED),
        ("reject", ReservationStatus.REJECTED),
        ("cancel", ReservationStatus.CANCELLED),
    ],
)
def test_transition_returns_row_and_submits_notification(
    engine: Engine, request_listing: dict[str, Any], action: str, expected: ReservationStatus
) -> None:
    pending = book(engine, request_listing)
    queue = Mock()

    calls = {
        "approve": lambda: approve_booking(engine, pending["id"], jobs=queue),
        "reject": lambda: reject_booking(engine, pending["id"], jobs=queue),
        "cancel": lambda: cancel_booking(engine, pending["id"], today=TODAY, jobs=queue),
    }
    updated = calls[action]()

    assert updated["id"] == pending["id"]
    assert updated["status"] == expected
    queue.enqueue.assert_called_once_with(
        notify_booking_status_changed, engine=engine, reservation_id=pending["id"]
    )


@pytest.mark.integration
def test_complete_returns_row_and_submits_notification(
    engine: Engine, listing: dict[str, Any]
) -> None:
    reservation = book(engine, listing)
    queue = Mock()

    completed = complete_booking(engine, reservation["id"], today=CHECK_OUT, jobs=queue)

    assert completed["status"] == ReservationStatus.COMPLETED
    queue.enqueue.assert_called_once_with(
        notify_booking_status_changed, engine=engine, reservation_id=reservation["id"]
    )
