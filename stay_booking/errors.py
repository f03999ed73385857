"""
Typed failures raised by the booking engine.

Every error here is recoverable and user-facing: routes translate them to HTTP
responses, scripts log them and move on. Database and other infrastructure
failures are not wrapped and propagate as-is.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional


@dataclass(frozen=True)
class Conflict:
    """An existing interval that overlaps a requested stay."""

    start_date: date
    end_date: date
    source: str  # "reservation" or "blocked"
    reservation_id: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "source": self.source,
            "reservation_id": self.reservation_id,
        }


class BookingError(Exception):
    """Base class for booking engine failures."""


class InvalidRangeError(BookingError):
    """Start is not before end, the range is in the past, or it breaks night limits."""


class CapacityExceededError(BookingError):
    """Guest count is outside what the listing accepts."""


class AvailabilityConflictError(BookingError):
    """The requested range overlaps an existing reservation or blocked range."""

    def __init__(self, conflict: Conflict) -> None:
        self.conflict = conflict
        super().__init__(
            f"Listing is not available: {conflict.source} occupies "
            f"{conflict.start_date.isoformat()} to {conflict.end_date.isoformat()}"
        )


class InvalidTransitionError(BookingError):
    """The requested status change is not allowed from the current status."""


class NotFoundError(BookingError):
    """Unknown listing or reservation."""


class ListingNotBookableError(BookingError):
    """The listing exists but is not published."""


class ForbiddenActionError(BookingError):
    """The caller may not act on this listing or reservation."""
