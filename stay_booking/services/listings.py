"""Listing management: create, update, search and block dates on listings."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from stay_booking.config import DEFAULT_CURRENCY
from stay_booking.db.readers.listings import get_listing as read_listing
from stay_booking.db.readers.listings import search_listings as read_matching_listings
from stay_booking.db.writers.listings import create_listing as insert_listing
from stay_booking.db.writers.listings import insert_blocked_range, lock_listing
from stay_booking.db.writers.listings import update_listing as write_listing
from stay_booking.errors import (
    AvailabilityConflictError,
    CapacityExceededError,
    InvalidRangeError,
    NotFoundError,
)
from stay_booking.models.enums import ListingStatus
from stay_booking.services.availability import (
    NON_BLOCKING_STATUSES,
    find_conflict,
    validate_range,
)

logger = structlog.get_logger(__name__)

# Columns a PATCH may clear by sending null
CLEARABLE_FIELDS = frozenset(
    {
        "city",
        "country",
        "cleaning_fee",
        "service_fee",
        "minimum_nights",
        "maximum_nights",
        "cancellation_policy",
    }
)


def _check_night_limits(minimum_nights: Optional[int], maximum_nights: Optional[int]) -> None:
    if minimum_nights and maximum_nights and minimum_nights > maximum_nights:
        raise InvalidRangeError(
            f"minimum_nights ({minimum_nights}) cannot exceed maximum_nights ({maximum_nights})"
        )


def create_listing(engine: Engine, data: dict[str, Any]) -> dict[str, Any]:
    """
    Create a listing. New listings default to Draft and the service currency.

    Args:
        engine: SQLAlchemy engine
        data: Listing fields

    Returns:
        dict: The persisted listing
    """
    row = {
        "status": ListingStatus.DRAFT,
        "currency": DEFAULT_CURRENCY,
        "instant_booking": False,
        **{k: v for k, v in data.items() if v is not None},
    }
    _check_night_limits(row.get("minimum_nights"), row.get("maximum_nights"))

    with engine.begin() as conn:
        listing_id = insert_listing(conn, row)
        listing = read_listing(conn, listing_id)

    if listing is None:
        raise NotFoundError(f"Listing {listing_id} not found")
    return listing


def update_listing(engine: Engine, listing_id: int, data: dict[str, Any]) -> dict[str, Any]:
    """
    Update listing fields under the listing lock.

    Changing rules such as ``max_guests`` or ``status`` waits for any booking
    in flight on the same listing, so a booking is checked against either the
    old rules or the new ones, never a mix.

    Args:
        engine: SQLAlchemy engine
        listing_id: Listing ID
        data: Fields to change. None clears a nullable field and is ignored
            for required ones

    Returns:
        dict: The updated listing

    Raises:
        NotFoundError: Unknown listing
        InvalidRangeError: Night limits would be inconsistent
    """
    changes = {k: v for k, v in data.items() if v is not None or k in CLEARABLE_FIELDS}

    with engine.begin() as conn:
        if not lock_listing(conn, listing_id):
            raise NotFoundError(f"Listing {listing_id} not found")
        current = read_listing(conn, listing_id)
        if current is None:
            raise NotFoundError(f"Listing {listing_id} not found")

        _check_night_limits(
            changes.get("minimum_nights", current["minimum_nights"]),
            changes.get("maximum_nights", current["maximum_nights"]),
        )
        if changes:
            write_listing(conn, listing_id, changes)
        listing = read_listing(conn, listing_id)

    logger.info("listing_updated", listing_id=listing_id, fields=sorted(changes))
    if listing is None:
        raise NotFoundError(f"Listing {listing_id} not found")
    return listing


def get_listing(engine: Engine, listing_id: int) -> dict[str, Any]:
    with engine.connect() as conn:
        listing = read_listing(conn, listing_id)
    if listing is None:
        raise NotFoundError(f"Listing {listing_id} not found")
    return listing


def search_listings(
    engine: Engine,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    guests: Optional[int] = None,
    location: Optional[str] = None,
    city: Optional[str] = None,
) -> list[dict[str, Any]]:
    """
    Find published listings free for a stay, with room for the party.

    Like ``is_available``, the result is advisory; only a booking reserves dates.

    Args:
        engine: SQLAlchemy engine
        start_date: Check-in; must be given together with end_date
        end_date: Checkout (exclusive)
        guests: Number of guests the listing must hold
        location: Substring of the city or country, any case
        city: Exact city, any case

    Returns:
        list[dict]: Matching listings ordered by ID

    Raises:
        InvalidRangeError: Only one date given, or start_date is not before end_date
        CapacityExceededError: guests is below 1
    """
    if (start_date is None) != (end_date is None):
        raise InvalidRangeError("start_date and end_date must be given together")
    if start_date is not None and end_date is not None:
        validate_range(start_date, end_date)
    if guests is not None and guests < 1:
        raise CapacityExceededError(f"Guest count must be at least 1, got {guests}")

    with engine.connect() as conn:
        listings = read_matching_listings(
            conn,
            start_date=start_date,
            end_date=end_date,
            guests=guests,
            location=location,
            city=city,
            exclude_statuses=NON_BLOCKING_STATUSES,
        )

    logger.info(
        "listings_searched",
        start_date=start_date.isoformat() if start_date else None,
        end_date=end_date.isoformat() if end_date else None,
        guests=guests,
        location=location,
        city=city,
        results=len(listings),
    )
    return listings


def add_blocked_dates(
    engine: Engine,
    listing_id: int,
    start_date: date,
    end_date: date,
    reason: Optional[str] = None,
) -> dict[str, Any]:
    """
    Block ``[start_date, end_date)`` so it cannot be booked.

    The range may not overlap an existing blocking reservation or another
    blocked range; the check and the insert happen under the listing lock.

    Args:
        engine: SQLAlchemy engine
        listing_id: Listing ID
        start_date: First blocked night
        end_date: Day after the last blocked night
        reason: Free-text reason shown on the calendar

    Returns:
        dict: The blocked range

    Raises:
        InvalidRangeError: start_date is not before end_date
        NotFoundError: Unknown listing
        AvailabilityConflictError: The range is already occupied
    """
    validate_range(start_date, end_date)

    with engine.begin() as conn:
        if not lock_listing(conn, listing_id):
            raise NotFoundError(f"Listing {listing_id} not found")

        conflict = find_conflict(conn, listing_id, start_date, end_date)
        if conflict is not None:
            raise AvailabilityConflictError(conflict)

        blocked_id = insert_blocked_range(conn, listing_id, start_date, end_date, reason)

    logger.info(
        "dates_blocked",
        listing_id=listing_id,
        blocked_id=blocked_id,
        start_date=start_date.isoformat(),
        end_date=end_date.isoformat(),
    )
    return {
        "id": blocked_id,
        "listing_id": listing_id,
        "start_date": start_date,
        "end_date": end_date,
        "reason": reason,
    }
