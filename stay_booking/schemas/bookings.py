from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from stay_booking.models.enums import CancellationActor, ReservationStatus


class BookingCreatePayload(BaseModel):
    """
    Schema for requesting a stay. ``end_date`` is the checkout day and is not a booked night.
    """

    listing_id: int = Field(..., description="Listing to book")
    guest_id: int = Field(..., description="Guest user ID")
    start_date: date = Field(..., description="Check-in date")
    end_date: date = Field(..., description="Checkout date (exclusive)")
    guest_count: int = Field(1, description="Number of guests")


class HostActionPayload(BaseModel):
    host_id: Optional[int] = Field(None, description="If given, must own the listing")


class CancelPayload(BaseModel):
    actor: CancellationActor = Field(CancellationActor.GUEST, description="Who is cancelling")
    actor_id: Optional[int] = Field(None, description="Guest or host ID of the actor")
    reason: Optional[str] = Field(None, max_length=500)


class ReservationOut(BaseModel):
    id: int
    listing_id: int
    guest_id: int
    start_date: date
    end_date: date
    guest_count: int
    status: ReservationStatus
    total_price: Decimal
    refund_amount: Optional[Decimal] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[CancellationActor] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
