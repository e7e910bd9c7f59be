"""
Tests for the operational endpoints and request middleware.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"
    assert response.headers["X-Response-Time"].endswith("ms")


@pytest.mark.asyncio
async def test_metrics_exposes_booking_counters(client: AsyncClient, auth_headers, test_event):
    await client.post(
        "/api/v1/bookings",
        json={"event_id": str(test_event.id), "seat_count": 1},
        headers=auth_headers,
    )

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "booking_attempts_total" in response.text
    assert "booking_seats_total" in response.text


@pytest.mark.asyncio
async def test_unknown_route_uses_envelope(client: AsyncClient):
    response = await client.get("/api/v1/nowhere")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found"}
