import json
from typing import Any

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from stay_booking.config import DEBUG
from stay_booking.models.enums import ReservationStatus
from stay_booking.models.reservations import Reservation
from stay_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def insert_reservation(conn: Connection, row: dict[str, Any]) -> int:
    """
    Insert a reservation row.

    The caller must hold the listing lock and have checked availability in the
    same transaction.

    Args:
        conn (Connection): SQLAlchemy connection inside a transaction.
        row (dict[str, Any]): Column values (listing_id, guest_id, dates, status, ...).

    Returns:
        int: New reservation ID.
    """
    now = utc_now()
    values = {**row, "created_at": now, "updated_at": now}

    if DEBUG:
        logger.debug("Reservation to insert:\n%s", json.dumps(values, indent=2, default=str))

    result = conn.execute(insert(Reservation).values(values))
    return int(result.inserted_primary_key[0])


def update_reservation_status(
    conn: Connection,
    reservation_id: int,
    expected: ReservationStatus,
    new_status: ReservationStatus,
    **fields: Any,
) -> bool:
    """
    Compare-and-set a reservation's status.

    The row is only updated while its status still equals ``expected``, so a
    transition computed from a stale read cannot overwrite a newer one.

    Args:
        conn (Connection): SQLAlchemy connection inside a transaction.
        reservation_id (int): Reservation ID.
        expected (ReservationStatus): Status the transition was computed from.
        new_status (ReservationStatus): Target status.
        **fields: Extra columns to set (cancelled_at, refund_amount, ...).

    Returns:
        bool: True if the row was updated.
    """
    stmt = (
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .where(Reservation.status == expected)
        .values(status=new_status, updated_at=utc_now(), **fields)
    )
    result = conn.execute(stmt)
    return result.rowcount > 0
