"""
Integration tests for booking routes.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.engine import Engine

from stay_booking.dependencies import get_db_engine
from stay_booking.main import app
from stay_booking.models.notifications import Notification
from stay_booking.services.bookings import create_booking


def booking_payload(booked_listing_id: int, **overrides: Any) -> dict[str, Any]:
    return {
        "listing_id": booked_listing_id,
        "guest_id": 40,
        "start_date": "2031-03-01",
        "end_date": "2031-03-04",
        "guest_count": 2,
        **overrides,
    }


@pytest.mark.integration
def test_create_booking(client: TestClient, listing: dict[str, Any], engine: Engine) -> None:
    response = client.post("/bookings", json=booking_payload(listing["id"]))

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "confirmed"
    assert Decimal(data["total_price"]) == Decimal("330.00")
    assert "X-Request-ID" in response.headers

    # notification job ran after the response
    with engine.connect() as conn:
        kinds = conn.execute(select(Notification.kind)).scalars().all()
    assert kinds == ["booking_created"]


@pytest.mark.integration
def test_overlapping_booking_conflict(client: TestClient, listing: dict[str, Any]) -> None:
    first = client.post("/bookings", json=booking_payload(listing["id"])).json()

    response = client.post(
        "/bookings",
        json=booking_payload(listing["id"], guest_id=41, start_date="2031-03-03", end_date="2031-03-06"),
    )

    assert response.status_code == 409
    conflict = response.json()["detail"]["conflict"]
    assert conflict == {
        "start_date": "2031-03-01",
        "end_date": "2031-03-04",
        "source": "reservation",
        "reservation_id": first["id"],
    }


@pytest.mark.integration
def test_adjacent_booking_succeeds(client: TestClient, listing: dict[str, Any]) -> None:
    client.post("/bookings", json=booking_payload(listing["id"]))

    response = client.post(
        "/bookings",
        json=booking_payload(listing["id"], guest_id=41, start_date="2031-03-04", end_date="2031-03-06"),
    )

    assert response.status_code == 201


@pytest.mark.integration
@pytest.mark.parametrize(
    ("overrides", "status_code"),
    [
        ({"end_date": "2031-03-01"}, 400),
        ({"start_date": "2020-01-01", "end_date": "2020-01-03"}, 400),
        ({"guest_count": 9}, 400),
        ({"guest_count": 0}, 400),
        ({"guest_id": 1}, 403),
        ({"listing_id": 4040}, 404),
        ({"start_date": "not-a-date"}, 422),
    ],
)
def test_create_booking_errors(
    client: TestClient, listing: dict[str, Any], overrides: dict[str, Any], status_code: int
) -> None:
    response = client.post("/bookings", json=booking_payload(listing["id"], **overrides))

    assert response.status_code == status_code


@pytest.mark.integration
def test_unpublished_listing(
    client: TestClient, make_listing: Callable[..., dict[str, Any]]
) -> None:
    from stay_booking.models.enums import ListingStatus

    draft = make_listing(status=ListingStatus.DRAFT)

    response = client.post("/bookings", json=booking_payload(draft["id"]))

    assert response.status_code == 409


@pytest.mark.integration
def test_approve_and_cancel_flow(
    client: TestClient, make_listing: Callable[..., dict[str, Any]]
) -> None:
    listing = make_listing(instant_booking=False, host_id=7)
    pending = client.post("/bookings", json=booking_payload(listing["id"])).json()
    assert pending["status"] == "pending"

    wrong_host = client.post(f"/bookings/{pending['id']}/approve", json={"host_id": 8})
    approved = client.post(f"/bookings/{pending['id']}/approve", json={"host_id": 7})
    cancelled = client.post(
        f"/bookings/{pending['id']}/cancel",
        json={"actor": "guest", "actor_id": 40, "reason": "flight cancelled"},
    )
    again = client.post(f"/bookings/{pending['id']}/cancel")

    assert wrong_host.status_code == 403
    assert approved.json()["status"] == "confirmed"
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancelled_by"] == "guest"
    assert Decimal(cancelled.json()["refund_amount"]) == Decimal("330.00")
    assert again.status_code == 409


@pytest.mark.integration
def test_reject_route(client: TestClient, make_listing: Callable[..., dict[str, Any]]) -> None:
    listing = make_listing(instant_booking=False)
    pending = client.post("/bookings", json=booking_payload(listing["id"])).json()

    response = client.post(f"/bookings/{pending['id']}/reject")

    assert response.status_code == 200
    assert response.json()["status"] == "rejected"


@pytest.mark.integration
def test_complete_route(client: TestClient, engine: Engine, listing: dict[str, Any]) -> None:
    past = create_booking(
        engine, listing["id"], 40, date(2020, 5, 1), date(2020, 5, 3), 1, today=date(2020, 4, 1)
    )
    future = client.post("/bookings", json=booking_payload(listing["id"])).json()

    done = client.post(f"/bookings/{past['id']}/complete")
    early = client.post(f"/bookings/{future['id']}/complete")

    assert done.json()["status"] == "completed"
    assert early.status_code == 409


@pytest.mark.integration
def test_get_and_list_bookings(
    client: TestClient, make_listing: Callable[..., dict[str, Any]]
) -> None:
    listing = make_listing(host_id=7)
    created = client.post("/bookings", json=booking_payload(listing["id"])).json()

    fetched = client.get(f"/bookings/{created['id']}")
    by_guest = client.get("/bookings", params={"guest_id": 40})
    by_host = client.get("/hosts/7/reservations")
    missing = client.get("/bookings/4040")

    assert fetched.json()["id"] == created["id"]
    assert [r["id"] for r in by_guest.json()] == [created["id"]]
    assert [r["id"] for r in by_host.json()] == [created["id"]]
    assert missing.status_code == 404


@pytest.mark.integration
def test_unexpected_error_returns_500(client: TestClient, listing: dict[str, Any]) -> None:
    from unittest.mock import patch

    with patch(
        "stay_booking.routes.bookings.create_booking", side_effect=RuntimeError("boom")
    ):
        response = client.post("/bookings", json=booking_payload(listing["id"]))

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_booking_async_client(engine: Engine, listing: dict[str, Any]) -> None:
    app.dependency_overrides[get_db_engine] = lambda: engine
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.post(
                "/bookings",
                json=booking_payload(listing["id"]),
                headers={"X-Request-ID": "req-42"},
            )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 201
    assert response.headers["X-Request-ID"] == "req-42"
