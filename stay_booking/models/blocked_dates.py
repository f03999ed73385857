from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from stay_booking.models.base import Base


class BlockedDateRange(Base):
    """
    Host-blocked nights on a listing (maintenance, personal use).

    Uses the same half-open ``[start_date, end_date)`` convention as
    reservations so one overlap predicate covers both.
    """

    __tablename__ = "blocked_date_ranges"
    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_blocked_date_ranges_date_order"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    listing_id = Column(
        Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
