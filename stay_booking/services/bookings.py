"""
Booking orchestration: create reservations and drive their lifecycle.

Every write runs in one transaction that starts by locking the listing
(see ``lock_listing``). Because the availability check and the insert or
status change happen after that lock inside the same transaction, two
overlapping requests for one listing can never both succeed, on any number
of service instances. Requests for different listings never wait on each
other.

Transactions that fail with a database error (a lock timeout, a constraint
violation after a lost race on the PostgreSQL exclusion constraint) are
retried once. The retry re-reads the calendar, so a slot that was taken in the
meantime surfaces as ``AvailabilityConflictError``; a second database failure
propagates unchanged.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Optional, TypeVar

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, OperationalError

from stay_booking.db.readers.listings import get_listing
from stay_booking.db.readers.reservations import (
    find_finished_stay_ids,
    get_reservation,
    get_reservation_listing_id,
    list_reservations_for_guest,
    list_reservations_for_host,
)
from stay_booking.db.writers.listings import lock_listing
from stay_booking.db.writers.reservations import insert_reservation, update_reservation_status
from stay_booking.errors import (
    AvailabilityConflictError,
    BookingError,
    CapacityExceededError,
    ForbiddenActionError,
    InvalidRangeError,
    InvalidTransitionError,
    ListingNotBookableError,
    NotFoundError,
)
from stay_booking.metrics import (
    booking_duration,
    booking_retries,
    bookings_total,
    reservation_transitions,
    stays_completed,
)
from stay_booking.models.enums import CancellationActor, ListingStatus, ReservationStatus
from stay_booking.services.availability import find_conflict, validate_range
from stay_booking.services.jobs import JobQueue, submit_job
from stay_booking.services.notifications import (
    notify_booking_created,
    notify_booking_status_changed,
)
from stay_booking.services.pricing import compute_refund, nights_between, quote_total
from stay_booking.services.state_machine import ReservationEvent, initial_status, next_status
from stay_booking.utils.datetime import utc_now, utc_today

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 2  # first try plus one retry
RETRYABLE_ERRORS = (IntegrityError, OperationalError)

OUTCOME_LABELS: dict[type[BookingError], str] = {
    InvalidRangeError: "invalid_range",
    CapacityExceededError: "capacity_exceeded",
    AvailabilityConflictError: "conflict",
    NotFoundError: "not_found",
    ListingNotBookableError: "not_bookable",
    ForbiddenActionError: "forbidden",
}


def _run_in_transaction(engine: Engine, work: Callable[[Connection], T], operation: str) -> T:
    """
    Run ``work`` in a fresh transaction, retrying once on a database error.

    Args:
        engine: SQLAlchemy engine
        work: Callable receiving the transaction's connection
        operation: Name used in logs and metrics

    Returns:
        Whatever ``work`` returns
    """
    attempt = 1
    while True:
        try:
            with engine.begin() as conn:
                return work(conn)
        except RETRYABLE_ERRORS as e:
            if attempt >= MAX_ATTEMPTS:
                logger.error(
                    "booking_transaction_failed",
                    operation=operation,
                    attempts=attempt,
                    error=str(e),
                )
                raise
            booking_retries.labels(error=type(e).__name__).inc()
            logger.warning(
                "booking_transaction_retry",
                operation=operation,
                attempt=attempt,
                error=str(e),
            )
            attempt += 1


def _lock_and_load_listing(conn: Connection, listing_id: int) -> dict[str, Any]:
    if not lock_listing(conn, listing_id):
        raise NotFoundError(f"Listing {listing_id} not found")
    listing = get_listing(conn, listing_id)
    if listing is None:
        raise NotFoundError(f"Listing {listing_id} not found")
    return listing


def validate_stay_dates(start_date: date, end_date: date, today: date) -> None:
    """
    Reject empty, inverted and past ranges.

    Args:
        start_date: Check-in date
        end_date: Checkout date
        today: Current date

    Raises:
        InvalidRangeError: start_date >= end_date or start_date < today
    """
    validate_range(start_date, end_date)
    if start_date < today:
        raise InvalidRangeError(f"start_date {start_date.isoformat()} is in the past")


def _check_booking_rules(
    listing: dict[str, Any], guest_id: int, guest_count: int, nights: int
) -> None:
    if listing["status"] != ListingStatus.PUBLISHED:
        raise ListingNotBookableError(f"Listing {listing['id']} is not accepting bookings")

    if listing["host_id"] == guest_id:
        raise ForbiddenActionError("Hosts cannot book their own listing")

    if guest_count < 1 or guest_count > listing["max_guests"]:
        raise CapacityExceededError(
            f"Guest count must be between 1 and {listing['max_guests']}, got {guest_count}"
        )

    minimum_nights = listing.get("minimum_nights")
    if minimum_nights and nights < minimum_nights:
        raise InvalidRangeError(f"Listing requires at least {minimum_nights} nights")

    maximum_nights = listing.get("maximum_nights")
    if maximum_nights and nights > maximum_nights:
        raise InvalidRangeError(f"Listing allows at most {maximum_nights} nights")


def create_booking(
    engine: Engine,
    listing_id: int,
    guest_id: int,
    start_date: date,
    end_date: date,
    guest_count: int,
    today: Optional[date] = None,
    jobs: Optional[JobQueue] = None,
) -> dict[str, Any]:
    """
    Reserve ``[start_date, end_date)`` on a listing for a guest.

    The reservation starts Confirmed on instant-book listings and Pending
    otherwise. Notification jobs are submitted after the commit.

    Args:
        engine: SQLAlchemy engine
        listing_id: Listing to book
        guest_id: Guest user ID
        start_date: Check-in date
        end_date: Checkout date (exclusive)
        guest_count: Number of guests
        today: Override for the current date
        jobs: Queue for post-booking side effects

    Returns:
        dict: The persisted reservation

    Raises:
        InvalidRangeError: Empty, inverted or past range, or night limits broken
        NotFoundError: Unknown listing
        ListingNotBookableError: Listing is not published
        ForbiddenActionError: The guest is the listing's host
        CapacityExceededError: guest_count outside 1..max_guests
        AvailabilityConflictError: The range overlaps an existing reservation or blocked range
    """
    today = today or utc_today()
    log = logger.bind(
        listing_id=listing_id,
        guest_id=guest_id,
        start_date=start_date.isoformat(),
        end_date=end_date.isoformat(),
    )

    def reserve(conn: Connection) -> dict[str, Any]:
        listing = _lock_and_load_listing(conn, listing_id)
        nights = nights_between(start_date, end_date)
        _check_booking_rules(listing, guest_id, guest_count, nights)

        conflict = find_conflict(conn, listing_id, start_date, end_date)
        if conflict is not None:
            raise AvailabilityConflictError(conflict)

        reservation_id = insert_reservation(
            conn,
            {
                "listing_id": listing_id,
                "guest_id": guest_id,
                "start_date": start_date,
                "end_date": end_date,
                "guest_count": guest_count,
                "status": initial_status(listing["instant_booking"]),
                "total_price": quote_total(listing, nights),
            },
        )
        reservation = get_reservation(conn, reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    with booking_duration.time():
        try:
            validate_stay_dates(start_date, end_date, today)
            reservation = _run_in_transaction(engine, reserve, operation="create_booking")
        except BookingError as e:
            bookings_total.labels(outcome=OUTCOME_LABELS.get(type(e), "rejected")).inc()
            log.info("booking_rejected", reason=type(e).__name__, detail=str(e))
            raise
        except Exception:
            bookings_total.labels(outcome="error").inc()
            log.exception("booking_failed")
            raise

    bookings_total.labels(outcome="created").inc()
    log.info(
        "booking_created",
        reservation_id=reservation["id"],
        status=ReservationStatus(reservation["status"]).value,
    )

    submit_job(jobs, notify_booking_created, engine=engine, reservation_id=reservation["id"])
    return reservation


PrepareFn = Callable[[Connection, dict[str, Any], dict[str, Any]], dict[str, Any]]


def _apply_event(
    engine: Engine,
    reservation_id: int,
    event: ReservationEvent,
    host_id: Optional[int] = None,
    prepare: Optional[PrepareFn] = None,
    jobs: Optional[JobQueue] = None,
) -> dict[str, Any]:
    """
    Apply a lifecycle event under the listing lock.

    ``prepare`` runs after the transition is known to be legal; it evaluates the
    event's guard (raising to abort) and returns extra columns to write.
    """

    def work(conn: Connection) -> tuple[dict[str, Any], ReservationStatus]:
        listing_id = get_reservation_listing_id(conn, reservation_id)
        if listing_id is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")

        listing = _lock_and_load_listing(conn, listing_id)
        reservation = get_reservation(conn, reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")

        if host_id is not None and listing["host_id"] != host_id:
            raise ForbiddenActionError("Only the listing's host can do this")

        current = ReservationStatus(reservation["status"])
        new = next_status(current, event)
        fields = prepare(conn, reservation, listing) if prepare else {}

        if not update_reservation_status(conn, reservation_id, current, new, **fields):
            raise InvalidTransitionError(
                f"Reservation {reservation_id} changed while being updated"
            )

        updated = get_reservation(conn, reservation_id)
        if updated is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return updated, current

    updated, previous = _run_in_transaction(engine, work, operation=event.value)

    new_status = ReservationStatus(updated["status"])
    reservation_transitions.labels(
        from_status=previous.value, to_status=new_status.value
    ).inc()
    logger.info(
        "reservation_transitioned",
        reservation_id=reservation_id,
        lifecycle_event=event.value,
        from_status=previous.value,
        to_status=new_status.value,
    )

    submit_job(jobs, notify_booking_status_changed, engine=engine, reservation_id=reservation_id)
    return updated


def approve_booking(
    engine: Engine,
    reservation_id: int,
    host_id: Optional[int] = None,
    jobs: Optional[JobQueue] = None,
) -> dict[str, Any]:
    """
    Confirm a Pending reservation after re-checking the listing is still free.

    Args:
        engine: SQLAlchemy engine
        reservation_id: Reservation to confirm
        host_id: If given, must own the listing
        jobs: Queue for notifications

    Returns:
        dict: The updated reservation
    """

    def still_available(
        conn: Connection, reservation: dict[str, Any], listing: dict[str, Any]
    ) -> dict[str, Any]:
        conflict = find_conflict(
            conn,
            listing["id"],
            reservation["start_date"],
            reservation["end_date"],
            exclude_reservation_id=reservation["id"],
        )
        if conflict is not None:
            raise AvailabilityConflictError(conflict)
        return {}

    return _apply_event(
        engine,
        reservation_id,
        ReservationEvent.APPROVE,
        host_id=host_id,
        prepare=still_available,
        jobs=jobs,
    )


def reject_booking(
    engine: Engine,
    reservation_id: int,
    host_id: Optional[int] = None,
    jobs: Optional[JobQueue] = None,
) -> dict[str, Any]:
    """Decline a Pending reservation; its dates become available again."""
    return _apply_event(
        engine,
        reservation_id,
        ReservationEvent.REJECT,
        host_id=host_id,
        jobs=jobs,
    )


def cancel_booking(
    engine: Engine,
    reservation_id: int,
    actor: CancellationActor = CancellationActor.GUEST,
    actor_id: Optional[int] = None,
    reason: Optional[str] = None,
    today: Optional[date] = None,
    jobs: Optional[JobQueue] = None,
) -> dict[str, Any]:
    """
    Cancel a Pending or Confirmed reservation.

    Guests can only cancel before check-in. Cancelling a Confirmed stay records
    the refund owed under the listing's cancellation policy; a Pending one was
    never charged and records none. The reservation row and its dates stay in
    place for history; only the status changes.

    Args:
        engine: SQLAlchemy engine
        reservation_id: Reservation to cancel
        actor: Who is cancelling
        actor_id: Guest or host ID of the actor, checked against the reservation
        reason: Free-text reason
        today: Override for the current date
        jobs: Queue for notifications

    Returns:
        dict: The updated reservation
    """
    today = today or utc_today()
    host_id = actor_id if actor == CancellationActor.HOST else None

    def cancellation_fields(
        conn: Connection, reservation: dict[str, Any], listing: dict[str, Any]
    ) -> dict[str, Any]:
        if actor == CancellationActor.GUEST:
            if actor_id is not None and reservation["guest_id"] != actor_id:
                raise ForbiddenActionError("Only the guest who booked can cancel this reservation")
            if reservation["start_date"] <= today:
                raise InvalidTransitionError(
                    "Cannot cancel a booking that has already started or is in the past"
                )

        refund = None
        if reservation["status"] == ReservationStatus.CONFIRMED:
            refund = compute_refund(
                listing.get("cancellation_policy"),
                reservation["total_price"],
                reservation["start_date"],
                today,
            )

        return {
            "cancelled_at": utc_now(),
            "cancelled_by": actor,
            "cancellation_reason": reason,
            "refund_amount": refund,
        }

    return _apply_event(
        engine,
        reservation_id,
        ReservationEvent.CANCEL,
        host_id=host_id,
        prepare=cancellation_fields,
        jobs=jobs,
    )


def complete_booking(
    engine: Engine,
    reservation_id: int,
    today: Optional[date] = None,
    jobs: Optional[JobQueue] = None,
) -> dict[str, Any]:
    """
    Mark a Confirmed stay as Completed once its checkout date has been reached.

    Raises:
        InvalidTransitionError: Not Confirmed, or the stay has not ended yet
    """
    today = today or utc_today()

    def stay_ended(
        conn: Connection, reservation: dict[str, Any], listing: dict[str, Any]
    ) -> dict[str, Any]:
        if reservation["end_date"] > today:
            raise InvalidTransitionError(
                f"Stay ends {reservation['end_date'].isoformat()}; it cannot be completed yet"
            )
        return {"completed_at": utc_now()}

    return _apply_event(
        engine,
        reservation_id,
        ReservationEvent.COMPLETE,
        prepare=stay_ended,
        jobs=jobs,
    )


def complete_finished_stays(
    engine: Engine,
    today: Optional[date] = None,
    jobs: Optional[JobQueue] = None,
) -> int:
    """
    Complete every Confirmed reservation whose checkout date has passed.

    Each reservation is completed in its own transaction; one failure is logged
    and does not stop the sweep.

    Args:
        engine: SQLAlchemy engine
        today: Override for the current date
        jobs: Queue for notifications

    Returns:
        int: Number of reservations completed
    """
    today = today or utc_today()
    logger.info("stay_completion_started", today=today.isoformat())

    with engine.connect() as conn:
        reservation_ids = find_finished_stay_ids(conn, today)

    completed = 0
    for reservation_id in reservation_ids:
        try:
            complete_booking(engine, reservation_id, today=today, jobs=jobs)
        except BookingError as e:
            logger.warning("stay_completion_skipped", reservation_id=reservation_id, error=str(e))
            continue
        except Exception as e:
            logger.exception("stay_completion_failed", reservation_id=reservation_id, error=str(e))
            continue
        completed += 1
        stays_completed.inc()

    logger.info("stay_completion_finished", candidates=len(reservation_ids), completed=completed)
    return completed


def get_booking(engine: Engine, reservation_id: int) -> dict[str, Any]:
    with engine.connect() as conn:
        reservation = get_reservation(conn, reservation_id)
    if reservation is None:
        raise NotFoundError(f"Reservation {reservation_id} not found")
    return reservation


def list_guest_bookings(engine: Engine, guest_id: int) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return list_reservations_for_guest(conn, guest_id)


def list_host_reservations(engine: Engine, host_id: int) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return list_reservations_for_host(conn, host_id)
