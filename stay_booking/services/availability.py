"""
Availability checks and the listing calendar.

A listing is available for ``[start_date, end_date)`` when no blocking
reservation and no blocked date range overlaps it. Two ranges overlap when
``existing.start < end_date AND start_date < existing.end``; ranges that only
touch (checkout day equals the next check-in day) do not.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from stay_booking.db.readers.listings import find_blocked_ranges, listing_exists
from stay_booking.db.readers.reservations import find_reservations_for_listing
from stay_booking.errors import Conflict, InvalidRangeError, NotFoundError
from stay_booking.metrics import availability_checks
from stay_booking.models.enums import ReservationStatus

logger = structlog.get_logger(__name__)

# Statuses that no longer hold their interval
NON_BLOCKING_STATUSES: tuple[ReservationStatus, ...] = (
    ReservationStatus.CANCELLED,
    ReservationStatus.REJECTED,
)


def validate_range(start_date: date, end_date: date) -> None:
    """
    Raise InvalidRangeError unless ``start_date < end_date``.

    Args:
        start_date: Check-in date
        end_date: Checkout date
    """
    if start_date >= end_date:
        raise InvalidRangeError(
            f"start_date {start_date.isoformat()} must be before end_date {end_date.isoformat()}"
        )


def find_conflict(
    conn: Connection,
    listing_id: int,
    start_date: date,
    end_date: date,
    exclude_reservation_id: Optional[int] = None,
) -> Optional[Conflict]:
    """
    Return the earliest interval that blocks ``[start_date, end_date)``, if any.

    Runs inside the caller's transaction and lets database errors propagate;
    the booking service owns retries. Call it only after taking the listing
    lock when the result decides a write.

    Args:
        conn: Connection inside the caller's transaction
        listing_id: Listing ID
        start_date: Requested check-in
        end_date: Requested checkout
        exclude_reservation_id: Reservation to ignore (the one being approved)

    Returns:
        Optional[Conflict]: The conflicting interval, or None if the range is free
    """
    conflicts: list[Conflict] = []

    for reservation in find_reservations_for_listing(
        conn,
        listing_id,
        exclude_statuses=NON_BLOCKING_STATUSES,
        start_date=start_date,
        end_date=end_date,
        exclude_reservation_id=exclude_reservation_id,
    ):
        conflicts.append(
            Conflict(
                start_date=reservation["start_date"],
                end_date=reservation["end_date"],
                source="reservation",
                reservation_id=reservation["id"],
            )
        )

    for blocked in find_blocked_ranges(conn, listing_id, start_date, end_date):
        conflicts.append(
            Conflict(
                start_date=blocked["start_date"],
                end_date=blocked["end_date"],
                source="blocked",
            )
        )

    if not conflicts:
        return None
    return min(conflicts, key=lambda c: (c.start_date, c.end_date))


def is_available(engine: Engine, listing_id: int, start_date: date, end_date: date) -> bool:
    """
    Read-only availability check for a listing.

    If the query fails for any database reason the listing is reported as
    unavailable; this function never answers "available" without a completed
    query.

    Args:
        engine: SQLAlchemy engine
        listing_id: Listing ID
        start_date: Requested check-in
        end_date: Requested checkout

    Returns:
        bool: True if nothing overlaps the range

    Raises:
        InvalidRangeError: start_date is not before end_date
        NotFoundError: The listing does not exist
    """
    validate_range(start_date, end_date)

    try:
        with engine.connect() as conn:
            if not listing_exists(conn, listing_id):
                raise NotFoundError(f"Listing {listing_id} not found")
            conflict = find_conflict(conn, listing_id, start_date, end_date)
    except SQLAlchemyError as e:
        logger.exception(
            "availability_check_failed",
            listing_id=listing_id,
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
            error=str(e),
        )
        availability_checks.labels(result="error").inc()
        return False

    available = conflict is None
    availability_checks.labels(result="available" if available else "unavailable").inc()
    logger.debug(
        "availability_checked",
        listing_id=listing_id,
        start_date=start_date.isoformat(),
        end_date=end_date.isoformat(),
        available=available,
    )
    return available


def get_listing_calendar(
    engine: Engine,
    listing_id: int,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
) -> dict[str, Any]:
    """
    Occupied intervals of a listing: blocking reservations and blocked ranges.

    Args:
        engine: SQLAlchemy engine
        listing_id: Listing ID
        from_date: Window start (inclusive), optional
        to_date: Window end (exclusive), optional

    Returns:
        dict: ``listing_id``, ``reservations`` (id, dates, status) and ``blocked``

    Raises:
        NotFoundError: The listing does not exist
    """
    if from_date is not None and to_date is not None:
        validate_range(from_date, to_date)

    with engine.connect() as conn:
        if not listing_exists(conn, listing_id):
            raise NotFoundError(f"Listing {listing_id} not found")

        reservations = find_reservations_for_listing(
            conn,
            listing_id,
            exclude_statuses=NON_BLOCKING_STATUSES,
            start_date=from_date,
            end_date=to_date,
        )
        blocked = find_blocked_ranges(conn, listing_id, from_date, to_date)

    return {
        "listing_id": listing_id,
        "reservations": [
            {
                "reservation_id": r["id"],
                "start_date": r["start_date"],
                "end_date": r["end_date"],
                "status": r["status"],
            }
            for r in reservations
        ],
        "blocked": [
            {
                "start_date": b["start_date"],
                "end_date": b["end_date"],
                "reason": b["reason"],
            }
            for b in blocked
        ],
    }
