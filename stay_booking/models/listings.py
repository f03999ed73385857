from sqlalchemy import Boolean, Column, DateTime, Enum, Float, Integer, Numeric, String, text
from sqlalchemy.sql import func

from stay_booking.models.base import Base
from stay_booking.models.enums import CancellationPolicy, ListingStatus, enum_values


class Listing(Base):
    """
    ORM model for a rentable property unit.

    Besides the descriptive and pricing columns, a listing carries the booking
    rules the engine enforces (capacity, minimum/maximum nights, instant
    booking) and ``calendar_version``. Every transaction that writes to the
    listing's calendar increments that counter first; the UPDATE is what
    serializes concurrent bookings of the same listing.
    """

    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    host_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    city = Column(String(100), nullable=True, index=True)
    country = Column(String(100), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    price_per_night = Column(Numeric(10, 2), nullable=False)
    cleaning_fee = Column(Numeric(10, 2), nullable=True)
    service_fee = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=False)

    max_guests = Column(Integer, nullable=False)
    minimum_nights = Column(Integer, nullable=True)
    maximum_nights = Column(Integer, nullable=True)
    cancellation_policy = Column(
        Enum(
            CancellationPolicy,
            native_enum=False,
            values_callable=enum_values,
            length=20,
            name="cancellation_policy",
        ),
        nullable=True,
    )
    instant_booking = Column(Boolean, nullable=False, server_default=text("false"))
    status = Column(
        Enum(
            ListingStatus,
            native_enum=False,
            values_callable=enum_values,
            length=20,
            name="listing_status",
        ),
        nullable=False,
        index=True,
    )

    calendar_version = Column(Integer, nullable=False, server_default=text("0"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
