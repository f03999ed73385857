from datetime import date
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from stay_booking.models.enums import ReservationStatus
from stay_booking.models.listings import Listing
from stay_booking.models.reservations import Reservation


def get_reservation(conn: Connection, reservation_id: int) -> Optional[dict[str, Any]]:
    """
    Fetch a single reservation.

    Args:
        conn (Connection): Active SQLAlchemy connection.
        reservation_id (int): Reservation ID.

    Returns:
        Optional[dict[str, Any]]: Reservation columns, or None if not found.
    """
    row = (
        conn.execute(select(Reservation.__table__).where(Reservation.id == reservation_id))
        .mappings()
        .first()
    )
    return dict(row) if row else None


def get_reservation_listing_id(conn: Connection, reservation_id: int) -> Optional[int]:
    result = conn.execute(
        select(Reservation.listing_id).where(Reservation.id == reservation_id)
    ).first()
    return result[0] if result else None


def find_reservations_for_listing(
    conn: Connection,
    listing_id: int,
    exclude_statuses: Iterable[ReservationStatus] = (),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    exclude_reservation_id: Optional[int] = None,
) -> list[dict[str, Any]]:
    """
    Fetch the reservations of a listing, optionally restricted to a window.

    When both window bounds are given only reservations overlapping
    ``[start_date, end_date)`` are returned, using the half-open test
    ``existing.start < end AND start < existing.end``.

    Args:
        conn (Connection): Active SQLAlchemy connection.
        listing_id (int): Listing ID.
        exclude_statuses (Iterable[ReservationStatus]): Statuses to leave out.
        start_date (Optional[date]): Window start (inclusive).
        end_date (Optional[date]): Window end (exclusive).
        exclude_reservation_id (Optional[int]): Reservation to leave out (itself, on approval).

    Returns:
        list[dict[str, Any]]: Reservations ordered by start date.
    """
    stmt = select(Reservation.__table__).where(Reservation.listing_id == listing_id)

    excluded = list(exclude_statuses)
    if excluded:
        stmt = stmt.where(Reservation.status.notin_(excluded))
    if end_date is not None:
        stmt = stmt.where(Reservation.start_date < end_date)
    if start_date is not None:
        stmt = stmt.where(Reservation.end_date > start_date)
    if exclude_reservation_id is not None:
        stmt = stmt.where(Reservation.id != exclude_reservation_id)

    stmt = stmt.order_by(Reservation.start_date, Reservation.id)
    return [dict(row) for row in conn.execute(stmt).mappings()]


def list_reservations_for_guest(conn: Connection, guest_id: int) -> list[dict[str, Any]]:
    stmt = (
        select(Reservation.__table__)
        .where(Reservation.guest_id == guest_id)
        .order_by(Reservation.created_at.desc(), Reservation.id.desc())
    )
    return [dict(row) for row in conn.execute(stmt).mappings()]


def list_reservations_for_host(conn: Connection, host_id: int) -> list[dict[str, Any]]:
    """
    Fetch all reservations on listings owned by a host, newest first.

    Args:
        conn (Connection): Active SQLAlchemy connection.
        host_id (int): Host user ID.

    Returns:
        list[dict[str, Any]]: Reservations across the host's listings.
    """
    stmt = (
        select(Reservation.__table__)
        .join(Listing, Reservation.listing_id == Listing.id)
        .where(Listing.host_id == host_id)
        .order_by(Reservation.created_at.desc(), Reservation.id.desc())
    )
    return [dict(row) for row in conn.execute(stmt).mappings()]


def find_finished_stay_ids(conn: Connection, today: date) -> list[int]:
    """
    IDs of Confirmed reservations whose checkout date is today or earlier.

    Args:
        conn (Connection): Active SQLAlchemy connection.
        today (date): Current date.

    Returns:
        list[int]: Reservation IDs ordered by end date.
    """
    result = conn.execute(
        select(Reservation.id)
        .where(Reservation.status == ReservationStatus.CONFIRMED)
        .where(Reservation.end_date <= today)
        .order_by(Reservation.end_date, Reservation.id)
    )
    return list(result.scalars().all())
