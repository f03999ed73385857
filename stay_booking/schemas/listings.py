from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from stay_booking.models.enums import CancellationPolicy, ListingStatus, ReservationStatus


class ListingCreatePayload(BaseModel):
    """
    Schema for creating a listing. New listings start as Draft unless a status is given.
    """

    host_id: int = Field(..., description="Owning host user ID")
    title: str = Field(..., min_length=1, max_length=255, description="Listing title")
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    price_per_night: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    cleaning_fee: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    service_fee: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=3, description="ISO 4217 code")
    max_guests: int = Field(..., ge=1, description="Maximum number of guests per stay")
    minimum_nights: Optional[int] = Field(None, ge=1)
    maximum_nights: Optional[int] = Field(None, ge=1)
    cancellation_policy: Optional[CancellationPolicy] = None
    instant_booking: Optional[bool] = Field(None, description="Confirm bookings without host approval")
    status: Optional[ListingStatus] = None


class ListingUpdatePayload(BaseModel):
    """
    Schema for updating a listing. All fields are optional; omitted fields are unchanged.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    price_per_night: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    cleaning_fee: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    service_fee: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    max_guests: Optional[int] = Field(None, ge=1)
    minimum_nights: Optional[int] = Field(None, ge=1)
    maximum_nights: Optional[int] = Field(None, ge=1)
    cancellation_policy: Optional[CancellationPolicy] = None
    instant_booking: Optional[bool] = None
    status: Optional[ListingStatus] = None


class ListingOut(BaseModel):
    id: int
    host_id: int
    title: str
    city: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    price_per_night: Decimal
    cleaning_fee: Optional[Decimal] = None
    service_fee: Optional[Decimal] = None
    currency: str
    max_guests: int
    minimum_nights: Optional[int] = None
    maximum_nights: Optional[int] = None
    cancellation_policy: Optional[CancellationPolicy] = None
    instant_booking: bool
    status: ListingStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BlockedDatesPayload(BaseModel):
    start_date: date = Field(..., description="First blocked night")
    end_date: date = Field(..., description="Day after the last blocked night")
    reason: Optional[str] = Field(None, max_length=100)


class BlockedRangeOut(BaseModel):
    id: Optional[int] = None
    start_date: date
    end_date: date
    reason: Optional[str] = None


class CalendarReservationOut(BaseModel):
    reservation_id: int
    start_date: date
    end_date: date
    status: ReservationStatus


class CalendarOut(BaseModel):
    """Occupied intervals of a listing. Cancelled and rejected reservations are left out."""

    listing_id: int
    reservations: list[CalendarReservationOut]
    blocked: list[BlockedRangeOut]


class AvailabilityOut(BaseModel):
    listing_id: int
    start_date: date
    end_date: date
    available: bool
