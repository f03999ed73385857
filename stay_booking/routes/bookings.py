from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from stay_booking.dependencies import get_db_engine, get_job_queue
from stay_booking.errors import BookingError
from stay_booking.routes._booking_helpers import booking_error_to_http
from stay_booking.schemas.bookings import (
    BookingCreatePayload,
    CancelPayload,
    HostActionPayload,
    ReservationOut,
)
from stay_booking.services.bookings import (
    approve_booking,
    cancel_booking,
    complete_booking,
    create_booking,
    get_booking,
    list_guest_bookings,
    list_host_reservations,
    reject_booking,
)
from stay_booking.services.jobs import JobQueue

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/bookings", status_code=status.HTTP_201_CREATED, response_model=ReservationOut)
def create_booking_route(
    payload: BookingCreatePayload,
    engine: Engine = Depends(get_db_engine),
    jobs: JobQueue = Depends(get_job_queue),
) -> Any:
    """
    Book a listing for ``[start_date, end_date)``.

    Succeeds only if no other blocking reservation or blocked range overlaps
    the range at commit time. Notifications are sent after the response.

    Args:
        payload: Listing, guest, dates and guest count
        engine: Database engine (injected)
        jobs: Post-booking job queue (injected)

    Returns:
        ReservationOut: The reservation, Confirmed on instant-book listings, Pending otherwise

    Raises:
        HTTPException: 400 invalid range or capacity, 403 own listing, 404 unknown
            listing, 409 dates taken or listing not bookable
    """
    try:
        return create_booking(
            engine,
            listing_id=payload.listing_id,
            guest_id=payload.guest_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            guest_count=payload.guest_count,
            jobs=jobs,
        )

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("booking_creation_failed", listing_id=payload.listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/bookings/{reservation_id}", response_model=ReservationOut)
def get_booking_route(
    reservation_id: int,
    engine: Engine = Depends(get_db_engine),
) -> Any:
    try:
        return get_booking(engine, reservation_id)

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("booking_fetch_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/bookings", response_model=list[ReservationOut])
def list_bookings_route(
    guest_id: int = Query(..., description="Guest user ID"),
    engine: Engine = Depends(get_db_engine),
) -> Any:
    try:
        return list_guest_bookings(engine, guest_id)

    except Exception as e:
        logger.exception("booking_list_failed", guest_id=guest_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/hosts/{host_id}/reservations", response_model=list[ReservationOut])
def list_host_reservations_route(
    host_id: int,
    engine: Engine = Depends(get_db_engine),
) -> Any:
    try:
        return list_host_reservations(engine, host_id)

    except Exception as e:
        logger.exception("host_reservation_list_failed", host_id=host_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/bookings/{reservation_id}/approve", response_model=ReservationOut)
def approve_booking_route(
    reservation_id: int,
    payload: Optional[HostActionPayload] = None,
    engine: Engine = Depends(get_db_engine),
    jobs: JobQueue = Depends(get_job_queue),
) -> Any:
    """
    Confirm a Pending reservation. Fails with 409 if its dates are no longer free.
    """
    try:
        return approve_booking(
            engine,
            reservation_id,
            host_id=payload.host_id if payload else None,
            jobs=jobs,
        )

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("booking_approval_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/bookings/{reservation_id}/reject", response_model=ReservationOut)
def reject_booking_route(
    reservation_id: int,
    payload: Optional[HostActionPayload] = None,
    engine: Engine = Depends(get_db_engine),
    jobs: JobQueue = Depends(get_job_queue),
) -> Any:
    try:
        return reject_booking(
            engine,
            reservation_id,
            host_id=payload.host_id if payload else None,
            jobs=jobs,
        )

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("booking_rejection_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/bookings/{reservation_id}/cancel", response_model=ReservationOut)
def cancel_booking_route(
    reservation_id: int,
    payload: Optional[CancelPayload] = None,
    engine: Engine = Depends(get_db_engine),
    jobs: JobQueue = Depends(get_job_queue),
) -> Any:
    """
    Cancel a Pending or Confirmed reservation and free its dates.

    The response carries the refund owed under the listing's cancellation policy.
    """
    payload = payload or CancelPayload()
    try:
        return cancel_booking(
            engine,
            reservation_id,
            actor=payload.actor,
            actor_id=payload.actor_id,
            reason=payload.reason,
            jobs=jobs,
        )

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("booking_cancellation_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/bookings/{reservation_id}/complete", response_model=ReservationOut)
def complete_booking_route(
    reservation_id: int,
    engine: Engine = Depends(get_db_engine),
    jobs: JobQueue = Depends(get_job_queue),
) -> Any:
    try:
        return complete_booking(engine, reservation_id, jobs=jobs)

    except BookingError as e:
        raise booking_error_to_http(e)
    except Exception as e:
        logger.exception("booking_completion_failed", reservation_id=reservation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
