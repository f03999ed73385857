import json
from datetime import date
from typing import Any, Optional

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from stay_booking.config import DEBUG
from stay_booking.models.blocked_dates import BlockedDateRange
from stay_booking.models.listings import Listing
from stay_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def create_listing(conn: Connection, data: dict[str, Any]) -> int:
    """
    Insert a listing.

    Args:
        conn (Connection): SQLAlchemy connection inside a transaction.
        data (dict[str, Any]): Column values; ``id`` is assigned by the database.

    Returns:
        int: New listing ID.
    """
    now = utc_now()
    row = {**data, "calendar_version": 0, "created_at": now, "updated_at": now}

    if DEBUG:
        logger.debug("Listing to insert:\n%s", json.dumps(row, indent=2, default=str))

    result = conn.execute(insert(Listing).values(row))
    listing_id = int(result.inserted_primary_key[0])

    logger.info("listing_created", listing_id=listing_id, host_id=data.get("host_id"))
    return listing_id


def update_listing(conn: Connection, listing_id: int, data: dict[str, Any]) -> bool:
    """
    Update listing fields.

    Args:
        conn (Connection): SQLAlchemy connection inside a transaction.
        listing_id (int): Listing ID.
        data (dict[str, Any]): Fields to update; None clears a nullable column.

    Returns:
        bool: False if the listing does not exist.
    """
    values = {**data, "updated_at": utc_now()}
    result = conn.execute(update(Listing).where(Listing.id == listing_id).values(**values))
    return result.rowcount > 0


def lock_listing(conn: Connection, listing_id: int) -> bool:
    """
    Take the per-listing write lock for the current transaction.

    Increments ``calendar_version``. The UPDATE holds a row lock on
    PostgreSQL and the database write lock on SQLite until the transaction
    ends, so any other transaction locking the same listing waits here.
    It must be the first statement of the transaction.

    Args:
        conn (Connection): SQLAlchemy connection inside a transaction.
        listing_id (int): Listing ID.

    Returns:
        bool: False if the listing does not exist.
    """
    result = conn.execute(
        update(Listing)
        .where(Listing.id == listing_id)
        .values(calendar_version=Listing.calendar_version + 1)
    )
    return result.rowcount > 0


def insert_blocked_range(
    conn: Connection,
    listing_id: int,
    start_date: date,
    end_date: date,
    reason: Optional[str] = None,
) -> int:
    """
    Block ``[start_date, end_date)`` on a listing's calendar.

    Args:
        conn (Connection): SQLAlchemy connection inside a transaction.
        listing_id (int): Listing ID.
        start_date (date): First blocked night.
        end_date (date): Day after the last blocked night.
        reason (Optional[str]): Free-text reason.

    Returns:
        int: New blocked range ID.
    """
    result = conn.execute(
        insert(BlockedDateRange).values(
            listing_id=listing_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
            created_at=utc_now(),
        )
    )
    return int(result.inserted_primary_key[0])
