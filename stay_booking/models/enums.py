"""Enumerations stored as plain strings in the database."""

from enum import Enum


class ListingStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    UNDER_REVIEW = "under_review"


class CancellationPolicy(str, Enum):
    """Refund window offered to guests; see services.pricing for the amounts."""

    FLEXIBLE = "flexible"
    MODERATE = "moderate"
    STRICT = "strict"
    SUPER_STRICT = "super_strict"


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    REJECTED = "rejected"


class CancellationActor(str, Enum):
    GUEST = "guest"
    HOST = "host"
    ADMIN = "admin"


def enum_values(enum_cls: type[Enum]) -> list[str]:
    """Persist enum values (``"pending"``) rather than member names (``"PENDING"``)."""
    return [member.value for member in enum_cls]
