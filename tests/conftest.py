"""
Shared fixtures for the booking engine tests.

Settings are read from the environment at import time, so they are set here
before any ``stay_booking`` module is imported. Each test that needs a database
gets its own SQLite file with the full schema.
"""

from __future__ import annotations

import os
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Generator

os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+pysqlite:///{Path(tempfile.gettempdir()) / 'stay_booking_test.db'}",
)
os.environ.setdefault("ALLOWED_ORIGINS", "*")
os.environ.setdefault("LOG_LEVEL", "INFO")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402

from stay_booking.db.engine import build_engine  # noqa: E402
from stay_booking.dependencies import get_db_engine  # noqa: E402
from stay_booking.main import app  # noqa: E402
from stay_booking.models.base import Base  # noqa: E402
from stay_booking.models.blocked_dates import BlockedDateRange  # noqa: E402,F401
from stay_booking.models.enums import CancellationPolicy, ListingStatus  # noqa: E402
from stay_booking.models.listings import Listing  # noqa: E402,F401
from stay_booking.models.notifications import Notification  # noqa: E402,F401
from stay_booking.models.reservations import Reservation  # noqa: E402,F401
from stay_booking.services.listings import create_listing  # noqa: E402

HOST_ID = 1


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Engine on a fresh SQLite file with every table created."""
    db_engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'bookings.db'}")
    Base.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def make_listing(engine: Engine) -> Callable[..., dict[str, Any]]:
    """
    Factory for published listings.

    Defaults: host 1, 100.00 per night plus 20.00 cleaning and 10.00 service,
    up to 4 guests, instant booking, flexible cancellation.
    """

    def _make(**overrides: Any) -> dict[str, Any]:
        data: dict[str, Any] = {
            "host_id": HOST_ID,
            "title": "Canal-side loft",
            "city": "Amsterdam",
            "country": "NL",
            "price_per_night": Decimal("100.00"),
            "cleaning_fee": Decimal("20.00"),
            "service_fee": Decimal("10.00"),
            "max_guests": 4,
            "cancellation_policy": CancellationPolicy.FLEXIBLE,
            "instant_booking": True,
            "status": ListingStatus.PUBLISHED,
        }
        data.update(overrides)
        return create_listing(engine, data)

    return _make


@pytest.fixture
def listing(make_listing: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    return make_listing()


@pytest.fixture
def client(engine: Engine) -> Generator[TestClient, None, None]:
    """Test client whose routes use the per-test SQLite engine."""
    app.dependency_overrides[get_db_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()
