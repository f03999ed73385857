# models/reservations.py

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.sql import func

from stay_booking.models.base import Base
from stay_booking.models.enums import CancellationActor, ReservationStatus, enum_values


class Reservation(Base):
    """
    ORM model for a guest's claim on a listing.

    The stay occupies the half-open interval ``[start_date, end_date)``, so a
    checkout day can be the next guest's check-in day. Rows are never deleted:
    cancellation, rejection and completion are status changes, which keeps the
    audit trail and lets the availability check simply ignore non-blocking
    statuses.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_reservations_date_order"),
        Index("ix_reservations_listing_dates", "listing_id", "start_date", "end_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    listing_id = Column(
        Integer, ForeignKey("listings.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    guest_id = Column(Integer, nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    guest_count = Column(Integer, nullable=False)
    status = Column(
        Enum(
            ReservationStatus,
            native_enum=False,
            values_callable=enum_values,
            length=20,
            name="reservation_status",
        ),
        nullable=False,
        index=True,
    )

    total_price = Column(Numeric(12, 2), nullable=False)
    refund_amount = Column(Numeric(12, 2), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    cancelled_by = Column(
        Enum(
            CancellationActor,
            native_enum=False,
            values_callable=enum_values,
            length=10,
            name="cancellation_actor",
        ),
        nullable=True,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
