"""
Prometheus metrics for the booking engine.

All metrics are registered on the default registry at import time and exposed
through the ``/metrics`` route for scraping.

Example:
    >>> from stay_booking.metrics import booking_duration, bookings_total
    >>> with booking_duration.time():
    ...     reservation = create_booking(engine, listing_id=1, ...)
    ...     bookings_total.labels(outcome="created").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Booking Metrics
# =============================================================================

bookings_total = Counter(
    "stay_bookings_total",
    "Booking attempts by outcome",
    ["outcome"],
)
"""
Counter for create-booking attempts.

Labels:
    outcome: created, conflict, invalid_range, capacity_exceeded, not_found,
             not_bookable, forbidden, error
"""

booking_duration = Histogram(
    "stay_booking_duration_seconds",
    "Time spent creating a booking, lock wait included",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)

booking_retries = Counter(
    "stay_booking_retries_total",
    "Booking transactions retried after a database error",
    ["error"],
)
"""
Labels:
    error: Exception class name (IntegrityError, OperationalError)
"""

# =============================================================================
# Availability Metrics
# =============================================================================

availability_checks = Counter(
    "stay_availability_checks_total",
    "Read-only availability checks by result",
    ["result"],
)
"""
Labels:
    result: available, unavailable, error
"""

# =============================================================================
# Lifecycle Metrics
# =============================================================================

reservation_transitions = Counter(
    "stay_reservation_transitions_total",
    "Reservation status transitions applied",
    ["from_status", "to_status"],
)

stays_completed = Counter(
    "stay_stays_completed_total",
    "Reservations completed by the stay completion sweep",
)

# =============================================================================
# Job Metrics
# =============================================================================

job_enqueue_failures = Counter(
    "stay_job_enqueue_failures_total",
    "Post-booking jobs that could not be submitted",
    ["job"],
)
