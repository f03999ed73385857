from typing import Any

import structlog
from sqlalchemy import insert
from sqlalchemy.engine import Connection

from stay_booking.models.notifications import Notification
from stay_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def insert_notifications(conn: Connection, rows: list[dict[str, Any]]) -> None:
    """
    Append rows to the notifications outbox.

    Args:
        conn (Connection): SQLAlchemy connection inside a transaction.
        rows (list[dict[str, Any]]): recipient_id, reservation_id, kind and payload per row.
    """
    if not rows:
        logger.info("No notifications to insert")
        return

    now = utc_now()
    conn.execute(insert(Notification), [{**row, "created_at": now} for row in rows])

    logger.info("Inserted %d notifications", len(rows))
