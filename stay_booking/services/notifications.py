"""Background jobs that write guest and host notifications to the outbox."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.engine import Engine

from stay_booking.db.readers.listings import get_listing
from stay_booking.db.readers.reservations import get_reservation
from stay_booking.db.writers.notifications import insert_notifications
from stay_booking.models.enums import ReservationStatus

logger = structlog.get_logger(__name__)


def _payload(reservation: dict[str, Any], listing: dict[str, Any]) -> dict[str, Any]:
    return {
        "listing_id": listing["id"],
        "listing_title": listing["title"],
        "start_date": reservation["start_date"].isoformat(),
        "end_date": reservation["end_date"].isoformat(),
        "guest_count": reservation["guest_count"],
        "status": ReservationStatus(reservation["status"]).value,
        "total_price": str(reservation["total_price"]),
    }


def notify_booking_created(engine: Engine, reservation_id: int) -> None:
    """
    Tell the guest their booking exists; ask the host to review Pending ones.

    Args:
        engine: SQLAlchemy engine
        reservation_id: Newly created reservation
    """
    with engine.begin() as conn:
        reservation = get_reservation(conn, reservation_id)
        if reservation is None:
            logger.warning("notification_skipped", reservation_id=reservation_id, reason="missing")
            return
        listing = get_listing(conn, reservation["listing_id"])
        if listing is None:
            logger.warning("notification_skipped", reservation_id=reservation_id, reason="no_listing")
            return

        payload = _payload(reservation, listing)
        rows = [
            {
                "recipient_id": reservation["guest_id"],
                "reservation_id": reservation_id,
                "kind": "booking_created",
                "payload": payload,
            }
        ]
        if reservation["status"] == ReservationStatus.PENDING:
            rows.append(
                {
                    "recipient_id": listing["host_id"],
                    "reservation_id": reservation_id,
                    "kind": "booking_requested",
                    "payload": payload,
                }
            )
        insert_notifications(conn, rows)

    logger.info("booking_created_notified", reservation_id=reservation_id, recipients=len(rows))


def notify_booking_status_changed(engine: Engine, reservation_id: int) -> None:
    """
    Tell guest and host about a reservation's new status.

    Args:
        engine: SQLAlchemy engine
        reservation_id: Reservation whose status changed
    """
    with engine.begin() as conn:
        reservation = get_reservation(conn, reservation_id)
        if reservation is None:
            logger.warning("notification_skipped", reservation_id=reservation_id, reason="missing")
            return
        listing = get_listing(conn, reservation["listing_id"])
        if listing is None:
            logger.warning("notification_skipped", reservation_id=reservation_id, reason="no_listing")
            return

        payload = _payload(reservation, listing)
        if reservation.get("refund_amount") is not None:
            payload["refund_amount"] = str(reservation["refund_amount"])

        insert_notifications(
            conn,
            [
                {
                    "recipient_id": recipient,
                    "reservation_id": reservation_id,
                    "kind": "booking_status_changed",
                    "payload": payload,
                }
                for recipient in (reservation["guest_id"], listing["host_id"])
            ],
        )

    logger.info(
        "booking_status_notified",
        reservation_id=reservation_id,
        status=payload["status"],
    )
