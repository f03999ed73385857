"""
Internal helpers shared by the listing and booking route handlers.

Booking engine errors are translated to HTTP responses here so every route
maps the same failure to the same status code.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status

from stay_booking.errors import (
    AvailabilityConflictError,
    BookingError,
    CapacityExceededError,
    ForbiddenActionError,
    InvalidRangeError,
    InvalidTransitionError,
    ListingNotBookableError,
    NotFoundError,
)

ERROR_STATUS_CODES: dict[type[BookingError], int] = {
    InvalidRangeError: status.HTTP_400_BAD_REQUEST,
    CapacityExceededError: status.HTTP_400_BAD_REQUEST,
    AvailabilityConflictError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    ListingNotBookableError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenActionError: status.HTTP_403_FORBIDDEN,
}


def booking_error_to_http(error: BookingError) -> HTTPException:
    """
    Build the HTTPException for a booking engine error.

    Conflicts carry the overlapping interval so clients can show which dates
    are taken.

    Args:
        error: Error raised by a service function

    Returns:
        HTTPException: Exception to raise from the route handler
    """
    detail: Any = str(error)
    if isinstance(error, AvailabilityConflictError):
        detail = {"message": str(error), "conflict": error.conflict.to_dict()}

    return HTTPException(
        status_code=ERROR_STATUS_CODES.get(type(error), status.HTTP_400_BAD_REQUEST),
        detail=detail,
    )
