"""
Tests for event endpoints.
"""

import uuid
from datetime import datetime, timezone, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient


def _event_payload(**overrides) -> dict:
    payload = {
        "title": "Python Conference 2026",
        "description": "Annual Python gathering",
        "venue": "Convention Center",
        "date": (datetime.now(timezone.utc) + timedelta(days=30)).isoformat(),
        "category": "conference",
        "total_seats": 500,
        "ticket_price": "25.50",
    }
    payload.update(overrides)
    return payload


async def _book(client: AsyncClient, headers: dict, event_id: str, seats: int = 1) -> dict:
    response = await client.post(
        "/api/v1/bookings",
        json={"event_id": event_id, "seat_count": seats},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["data"]["booking"]


@pytest.mark.asyncio
async def test_create_event(client: AsyncClient, admin_headers):
    """Administrator creates an event with every seat available."""
    response = await client.post("/api/v1/events", json=_event_payload(), headers=admin_headers)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    event = body["data"]["event"]
    assert event["title"] == "Python Conference 2026"
    assert event["total_seats"] == 500
    assert event["available_seats"] == 500
    assert event["booked_seats"] == 0
    assert event["status"] == "active"
    assert event["is_bookable"] is True
    assert Decimal(event["ticket_price"]) == Decimal("25.50")


@pytest.mark.asyncio
async def test_create_event_requires_admin(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/events", json=_event_payload(), headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_event_unauthenticated(client: AsyncClient):
    response = await client.post("/api/v1/events", json=_event_payload())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_event_past_date(client: AsyncClient, admin_headers):
    past_date = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    response = await client.post("/api/v1/events", json=_event_payload(date=past_date), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "validation_error"


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [{"total_seats": 0}, {"ticket_price": "-1"}, {"title": "AB"}])
async def test_create_event_invalid_fields(client: AsyncClient, admin_headers, overrides):
    response = await client.post("/api/v1/events", json=_event_payload(**overrides), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Validation error"


@pytest.mark.asyncio
async def test_get_event(client: AsyncClient, test_event):
    """Event detail is public and reports live seat figures."""
    event_id = str(test_event.id)
    response = await client.get(f"/api/v1/events/{event_id}")
    assert response.status_code == 200
    event = response.json()["data"]["event"]
    assert event["id"] == event_id
    assert event["title"] == "Test Concert"
    assert event["available_seats"] == 50
    assert Decimal(event["occupancy_rate"]) == Decimal("0")


@pytest.mark.asyncio
async def test_get_event_not_found(client: AsyncClient):
    response = await client.get(f"/api/v1/events/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_update_event_total_seats(client: AsyncClient, auth_headers, admin_headers, test_event):
    """Changing capacity keeps booked seats fixed."""
    event_id = str(test_event.id)
    await _book(client, auth_headers, event_id, seats=5)

    response = await client.put(f"/api/v1/events/{event_id}", json={"total_seats": 60}, headers=admin_headers)
    assert response.status_code == 200
    event = response.json()["data"]["event"]
    assert event["total_seats"] == 60
    assert event["available_seats"] == 55
    assert event["booked_seats"] == 5

    too_small = await client.put(f"/api/v1/events/{event_id}", json={"total_seats": 4}, headers=admin_headers)
    assert too_small.status_code == 400


@pytest.mark.asyncio
async def test_update_event_fields(client: AsyncClient, admin_headers, test_event):
    event_id = str(test_event.id)
    response = await client.put(
        f"/api/v1/events/{event_id}",
        json={"title": "Renamed Concert", "ticket_price": "30.00"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    event = response.json()["data"]["event"]
    assert event["title"] == "Renamed Concert"
    assert Decimal(event["ticket_price"]) == Decimal("30.00")
    assert event["available_seats"] == 50


@pytest.mark.asyncio
async def test_update_event_rejects_past_date(client: AsyncClient, admin_headers, test_event):
    past_date = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    response = await client.put(f"/api/v1/events/{test_event.id}", json={"date": past_date}, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_event_requires_admin(client: AsyncClient, auth_headers, test_event):
    response = await client.put(f"/api/v1/events/{test_event.id}", json={"title": "Mine now"}, headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cancel_event_refunds_bookings(client: AsyncClient, auth_headers, other_headers, admin_headers, test_event):
    """Cancelling an event refunds every confirmed booking and frees its seats."""
    event_id = str(test_event.id)
    first = await _book(client, auth_headers, event_id, seats=2)
    await _book(client, other_headers, event_id, seats=3)

    response = await client.put(f"/api/v1/events/{event_id}/cancel", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["bookings_cancelled"] == 2
    assert data["event"]["status"] == "cancelled"
    assert data["event"]["available_seats"] == 50
    assert data["event"]["is_bookable"] is False

    booking = await client.get(f"/api/v1/bookings/{first['id']}", headers=auth_headers)
    assert booking.json()["data"]["booking"]["status"] == "cancelled"
    assert booking.json()["data"]["booking"]["payment_status"] == "refunded"

    again = await client.put(f"/api/v1/events/{event_id}/cancel", headers=admin_headers)
    assert again.status_code == 400

    rebook = await client.post(
        "/api/v1/bookings", json={"event_id": event_id, "seat_count": 1}, headers=auth_headers
    )
    assert rebook.status_code == 400


@pytest.mark.asyncio
async def test_delete_event(client: AsyncClient, admin_headers, test_event):
    event_id = str(test_event.id)
    response = await client.delete(f"/api/v1/events/{event_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["success"] is True

    assert (await client.get(f"/api/v1/events/{event_id}")).status_code == 404


@pytest.mark.asyncio
async def test_delete_event_with_bookings(client: AsyncClient, auth_headers, admin_headers, test_event):
    """Events referenced by any booking, even a cancelled one, are kept."""
    event_id = str(test_event.id)
    booking = await _book(client, auth_headers, event_id)
    await client.put(f"/api/v1/bookings/{booking['id']}/cancel", headers=auth_headers)

    response = await client.delete(f"/api/v1/events/{event_id}", headers=admin_headers)
    assert response.status_code == 409
    assert (await client.get(f"/api/v1/events/{event_id}")).status_code == 200


@pytest.mark.asyncio
async def test_list_event_bookings(client: AsyncClient, auth_headers, other_headers, admin_headers, test_event):
    event_id = str(test_event.id)
    first = await _book(client, auth_headers, event_id, seats=2)
    await _book(client, other_headers, event_id)
    await client.put(f"/api/v1/bookings/{first['id']}/cancel", headers=auth_headers)

    response = await client.get(f"/api/v1/events/{event_id}/bookings", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["pagination"]["total"] == 2
    assert data["bookings"][0]["id"] == first["id"]

    confirmed = await client.get(
        f"/api/v1/events/{event_id}/bookings", params={"status": "confirmed"}, headers=admin_headers
    )
    assert confirmed.json()["data"]["pagination"]["total"] == 1

    assert (await client.get(f"/api/v1/events/{event_id}/bookings", headers=auth_headers)).status_code == 403
    missing = await client.get(f"/api/v1/events/{uuid.uuid4()}/bookings", headers=admin_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_event_stats(client: AsyncClient, auth_headers, other_headers, admin_headers, test_event):
    event_id = str(test_event.id)
    await _book(client, auth_headers, event_id, seats=3)
    cancelled = await _book(client, other_headers, event_id, seats=2)
    await client.put(f"/api/v1/bookings/{cancelled['id']}/cancel", headers=other_headers)

    response = await client.get(f"/api/v1/events/{event_id}/stats", headers=admin_headers)
    assert response.status_code == 200
    stats = response.json()["data"]["stats"]
    assert stats["event_info"]["available_seats"] == 47
    assert stats["booking_stats"]["total_bookings"] == 2
    assert stats["booking_stats"]["confirmed_bookings"] == 1
    assert stats["booking_stats"]["cancelled_bookings"] == 1
    assert stats["booking_stats"]["total_seats_booked"] == 3
    assert Decimal(stats["booking_stats"]["occupancy_rate"]) == Decimal("6.00")
    assert Decimal(stats["financial_stats"]["total_revenue"]) == Decimal("60.00")
    assert Decimal(stats["financial_stats"]["average_booking_value"]) == Decimal("60.00")
