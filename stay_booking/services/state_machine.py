"""
Reservation lifecycle as an explicit transition table.

Each ``(status, event)`` pair that is allowed maps to exactly one next status;
every other pair, including all events on terminal statuses, is rejected with
``InvalidTransitionError``. Guards that need the database or the clock (the
availability re-check on approval, the end-date check on completion) are
evaluated by the booking service before it applies the transition.

The table is checked when this module is imported, so an edit that leaves a
status unreachable or gives a terminal status an outgoing edge fails at
startup rather than at request time.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from stay_booking.errors import InvalidTransitionError
from stay_booking.models.enums import ReservationStatus


class ReservationEvent(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    COMPLETE = "complete"


TERMINAL_STATUSES: frozenset[ReservationStatus] = frozenset(
    {
        ReservationStatus.CANCELLED,
        ReservationStatus.COMPLETED,
        ReservationStatus.REJECTED,
    }
)

TRANSITIONS: Mapping[tuple[ReservationStatus, ReservationEvent], ReservationStatus] = (
    MappingProxyType(
        {
            (ReservationStatus.PENDING, ReservationEvent.APPROVE): ReservationStatus.CONFIRMED,
            (ReservationStatus.PENDING, ReservationEvent.REJECT): ReservationStatus.REJECTED,
            (ReservationStatus.PENDING, ReservationEvent.CANCEL): ReservationStatus.CANCELLED,
            (ReservationStatus.CONFIRMED, ReservationEvent.CANCEL): ReservationStatus.CANCELLED,
            (ReservationStatus.CONFIRMED, ReservationEvent.COMPLETE): ReservationStatus.COMPLETED,
        }
    )
)


def _validate_table(
    transitions: Mapping[tuple[ReservationStatus, ReservationEvent], ReservationStatus],
    terminal: frozenset[ReservationStatus],
) -> None:
    """
    Check the structural rules of a transition table.

    Raises:
        ValueError: a terminal status has an outgoing edge, a non-terminal
            status has none, or a status is neither a source nor a target.
    """
    sources = {status for status, _ in transitions}
    targets = set(transitions.values())

    leaking = sources & terminal
    if leaking:
        raise ValueError(f"Terminal statuses with outgoing transitions: {sorted(leaking)}")

    for status in ReservationStatus:
        if status not in terminal and status not in sources:
            raise ValueError(f"Non-terminal status {status.value} has no transitions")
        if status not in sources and status not in targets:
            raise ValueError(f"Status {status.value} is unreachable")


_validate_table(TRANSITIONS, TERMINAL_STATUSES)


def initial_status(instant_booking: bool) -> ReservationStatus:
    """Status a new reservation starts in: Confirmed for instant-book listings."""
    return ReservationStatus.CONFIRMED if instant_booking else ReservationStatus.PENDING


def is_terminal(status: ReservationStatus) -> bool:
    return status in TERMINAL_STATUSES


def next_status(current: ReservationStatus, event: ReservationEvent) -> ReservationStatus:
    """
    Look up the status an event moves a reservation to.

    Args:
        current: Current reservation status
        event: Lifecycle event being applied

    Returns:
        ReservationStatus: The next status

    Raises:
        InvalidTransitionError: The pair is not in the transition table

    Example:
        >>> next_status(ReservationStatus.PENDING, ReservationEvent.APPROVE)
        <ReservationStatus.CONFIRMED: 'confirmed'>
    """
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        if is_terminal(current):
            raise InvalidTransitionError(
                f"Reservation is {current.value}; no further changes are allowed"
            ) from None
        raise InvalidTransitionError(
            f"Cannot {event.value} a reservation that is {current.value}"
        ) from None


def allowed_events(current: ReservationStatus) -> list[ReservationEvent]:
    """Events that are valid from ``current``, in declaration order."""
    return [event for (status, event) in TRANSITIONS if status == current]
