from datetime import date
from typing import Any, Iterable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.engine import Connection

from stay_booking.models.blocked_dates import BlockedDateRange
from stay_booking.models.enums import ListingStatus, ReservationStatus
from stay_booking.models.listings import Listing
from stay_booking.models.reservations import Reservation


def get_listing(conn: Connection, listing_id: int) -> Optional[dict[str, Any]]:
    """
    Fetch a listing row.

    Args:
        conn (Connection): Active SQLAlchemy connection.
        listing_id (int): Listing ID.

    Returns:
        Optional[dict[str, Any]]: Column values keyed by name, or None if not found.
    """
    row = (
        conn.execute(select(Listing.__table__).where(Listing.id == listing_id))
        .mappings()
        .first()
    )
    return dict(row) if row else None


def listing_exists(conn: Connection, listing_id: int) -> bool:
    result = conn.execute(select(Listing.id).where(Listing.id == listing_id))
    return result.first() is not None


def find_blocked_ranges(
    conn: Connection,
    listing_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[dict[str, Any]]:
    """
    Fetch blocked date ranges of a listing, optionally only those overlapping a window.

    Args:
        conn (Connection): Active SQLAlchemy connection.
        listing_id (int): Listing ID.
        start_date (Optional[date]): Window start (inclusive).
        end_date (Optional[date]): Window end (exclusive).

    Returns:
        list[dict[str, Any]]: Blocked ranges ordered by start date.
    """
    stmt = select(BlockedDateRange.__table__).where(BlockedDateRange.listing_id == listing_id)
    if end_date is not None:
        stmt = stmt.where(BlockedDateRange.start_date < end_date)
    if start_date is not None:
        stmt = stmt.where(BlockedDateRange.end_date > start_date)
    stmt = stmt.order_by(BlockedDateRange.start_date, BlockedDateRange.id)
    return [dict(row) for row in conn.execute(stmt).mappings()]


def search_listings(
    conn: Connection,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    guests: Optional[int] = None,
    location: Optional[str] = None,
    city: Optional[str] = None,
    exclude_statuses: Iterable[ReservationStatus] = (),
) -> list[dict[str, Any]]:
    """
    Fetch published listings matching the search filters.

    With a date window, listings with a reservation (other than those in
    ``exclude_statuses``) or a blocked range overlapping
    ``[start_date, end_date)`` are left out, using the same half-open test as
    ``find_reservations_for_listing``.

    Args:
        conn (Connection): Active SQLAlchemy connection.
        start_date (Optional[date]): Requested check-in; used with end_date.
        end_date (Optional[date]): Requested checkout (exclusive).
        guests (Optional[int]): Minimum capacity.
        location (Optional[str]): Case-insensitive substring of city or country.
        city (Optional[str]): Case-insensitive exact city.
        exclude_statuses (Iterable[ReservationStatus]): Reservation statuses that do not block.

    Returns:
        list[dict[str, Any]]: Listings ordered by ID.
    """
    stmt = select(Listing.__table__).where(Listing.status == ListingStatus.PUBLISHED)

    if guests is not None:
        stmt = stmt.where(Listing.max_guests >= guests)
    if city:
        stmt = stmt.where(func.lower(Listing.city) == city.lower())
    if location:
        term = location.lower()
        stmt = stmt.where(
            or_(
                func.lower(Listing.city).contains(term, autoescape=True),
                func.lower(Listing.country).contains(term, autoescape=True),
            )
        )

    if start_date is not None and end_date is not None:
        booked = select(Reservation.id).where(
            Reservation.listing_id == Listing.id,
            Reservation.start_date < end_date,
            Reservation.end_date > start_date,
        )
        excluded = list(exclude_statuses)
        if excluded:
            booked = booked.where(Reservation.status.notin_(excluded))
        blocked = select(BlockedDateRange.id).where(
            BlockedDateRange.listing_id == Listing.id,
            BlockedDateRange.start_date < end_date,
            BlockedDateRange.end_date > start_date,
        )
        stmt = stmt.where(~booked.exists(), ~blocked.exists())

    stmt = stmt.order_by(Listing.id)
    return [dict(row) for row in conn.execute(stmt).mappings()]
