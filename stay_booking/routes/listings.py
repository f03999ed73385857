from datetime import date
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from stay_booking.dependencies import get_db_engine
from stay_booking.errors import BookingError
from stay_booking.routes._booking_helpers import booking_error_to_http
from stay_booking.schemas.listings import (
    AvailabilityOut,
    BlockedDatesPayload,
    BlockedRangeOut,
    CalendarOut,
    ListingCreatePayload,
    ListingOut,
    ListingUpdatePayload,
)
from stay_booking.services.availability import get_listing_calendar, is_available
from stay_booking.services.listings import (
    add_blocked_dates,
    create_listing,
    get_listing,
    search_listings,
    update_listing,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/listings", status_code=status.HTTP_201_CREATED, response_model=ListingOut)
def create_listing_route(
    payload: ListingCreatePayload,
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """
    Create a listing.

    Args:
        payload: Listing fields
        engine: Database engine (injected)

    Returns:
        ListingOut: The created listing
    """
    try:
        listing = create_listing(engine, payload.model_dump())
        return listing

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("listing_creation_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/listings", response_model=list[ListingOut])
def search_listings_route(
    start_date: Optional[date] = Query(None, description="Check-in date"),
    end_date: Optional[date] = Query(None, description="Checkout date (exclusive)"),
    guests: Optional[int] = Query(None, ge=1, description="Number of guests"),
    location: Optional[str] = Query(None, max_length=100, description="City or country, partial match"),
    city: Optional[str] = Query(None, max_length=100, description="City, exact match"),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """
    Search published listings by dates, guest count and place.

    With both dates given, listings that have a reservation or blocked range
    overlapping ``[start_date, end_date)`` are left out.

    Args:
        start_date: Check-in date, given together with end_date
        end_date: Checkout date
        guests: Minimum capacity
        location: Partial city or country
        city: Exact city
        engine: Database engine (injected)

    Returns:
        list[ListingOut]: Matching listings
    """
    try:
        return search_listings(
            engine,
            start_date=start_date,
            end_date=end_date,
            guests=guests,
            location=location,
            city=city,
        )

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("listing_search_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/listings/{listing_id}", response_model=ListingOut)
def get_listing_route(
    listing_id: int,
    engine: Engine = Depends(get_db_engine),
) -> Any:
    try:
        return get_listing(engine, listing_id)

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("listing_fetch_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/listings/{listing_id}", response_model=ListingOut)
def update_listing_route(
    listing_id: int,
    payload: ListingUpdatePayload,
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """
    Update listing fields. Only fields present in the payload are changed.

    Args:
        listing_id: Listing ID
        payload: Fields to change
        engine: Database engine (injected)

    Returns:
        ListingOut: The updated listing
    """
    try:
        return update_listing(engine, listing_id, payload.model_dump(exclude_unset=True))

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("listing_update_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/listings/{listing_id}/availability", response_model=AvailabilityOut)
def check_availability(
    listing_id: int,
    start_date: date = Query(..., description="Check-in date"),
    end_date: date = Query(..., description="Checkout date (exclusive)"),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """
    Report whether a listing is free for ``[start_date, end_date)``.

    This is advisory: the answer can change before a booking is made, and only
    ``POST /bookings`` reserves dates.
    """
    try:
        available = is_available(engine, listing_id, start_date, end_date)
        return {
            "listing_id": listing_id,
            "start_date": start_date,
            "end_date": end_date,
            "available": available,
        }

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("availability_check_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/listings/{listing_id}/calendar", response_model=CalendarOut)
def get_calendar(
    listing_id: int,
    from_date: Optional[date] = Query(None, description="Window start (inclusive)"),
    to_date: Optional[date] = Query(None, description="Window end (exclusive)"),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    try:
        return get_listing_calendar(engine, listing_id, from_date, to_date)

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("calendar_fetch_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post(
    "/listings/{listing_id}/blocked-dates",
    status_code=status.HTTP_201_CREATED,
    response_model=BlockedRangeOut,
)
def block_dates(
    listing_id: int,
    payload: BlockedDatesPayload,
    engine: Engine = Depends(get_db_engine),
) -> Any:
    """
    Block a date range on a listing's calendar.

    Returns 409 if the range overlaps an existing reservation or blocked range.
    """
    try:
        return add_blocked_dates(
            engine,
            listing_id,
            payload.start_date,
            payload.end_date,
            payload.reason,
        )

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("block_dates_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
