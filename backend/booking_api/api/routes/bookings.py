"""
Booking endpoints with transactional seat reservation.
"""

import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.security import Principal, get_current_principal, require_admin
from booking_api.db.session import get_db
from booking_api.schemas.booking import (
    BookingCreate, BookingData, BookingListData, BookingResponse, BookingStatsData, BookingStatusUpdate,
)
from booking_api.schemas.common import ApiResponse, Pagination
from booking_api.services import booking_queries, booking_service

router = APIRouter(prefix="/bookings", tags=["Bookings"])

StatusFilter = Optional[Literal["pending", "confirmed", "cancelled", "refunded"]]


def _booking_payload(booking) -> BookingData:
    return BookingData(booking=BookingResponse.model_validate(booking))


@router.post("", response_model=ApiResponse[BookingData], status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """
    Book seats for an event.

    The event row is locked for the duration of the transaction, so concurrent
    requests for the same event are serialized and can never oversell. Lock
    contention is reported as a retryable 409.
    """
    booking = await booking_service.create_booking(
        db,
        principal.user_id,
        booking_data.event_id,
        booking_data.seat_count,
        booking_data.special_requests,
    )
    return ApiResponse(message="Booking confirmed", data=_booking_payload(booking))


@router.get("", response_model=ApiResponse[BookingListData])
async def list_user_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    status_filter: StatusFilter = Query(None, alias="status"),
    upcoming: bool = Query(False),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated user's bookings, newest first."""
    bookings, total = await booking_queries.list_user_bookings(
        db, principal.user_id, page, limit, status_filter, upcoming
    )
    return ApiResponse(
        message="Bookings fetched",
        data=BookingListData(
            bookings=[BookingResponse.model_validate(b) for b in bookings],
            pagination=Pagination.build(total, page, limit),
        ),
    )


@router.get("/stats", response_model=ApiResponse[BookingStatsData])
async def booking_stats(
    event_id: Optional[uuid.UUID] = Query(None),
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Aggregate booking statistics. Served from Redis when cached."""
    stats, cached = await booking_queries.get_booking_stats(db, event_id)
    return ApiResponse(message="Stats", data=BookingStatsData(stats=stats, cached=cached))


@router.get("/reference/{reference}", response_model=ApiResponse[BookingData])
async def get_booking_by_reference(
    reference: str = Path(..., min_length=10, max_length=20, pattern=r"^BK[0-9A-Z]+$"),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_queries.get_booking_by_reference(db, reference, principal)
    return ApiResponse(message="Booking found", data=_booking_payload(booking))


@router.get("/{booking_id}", response_model=ApiResponse[BookingData])
async def get_booking(
    booking_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_queries.get_booking(db, booking_id, principal)
    return ApiResponse(message="Booking fetched", data=_booking_payload(booking))


@router.put("/{booking_id}/cancel", response_model=ApiResponse[BookingData])
async def cancel_booking(
    booking_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking and release seats back to the event."""
    booking = await booking_service.cancel_booking(db, booking_id, principal)
    return ApiResponse(message="Booking cancelled", data=_booking_payload(booking))


@router.put("/{booking_id}/status", response_model=ApiResponse[BookingData])
async def update_booking_status(
    booking_id: uuid.UUID,
    update: BookingStatusUpdate,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Administrative status / payment / notes override with seat reconciliation."""
    booking = await booking_service.update_booking_status(
        db,
        booking_id,
        status=update.status,
        payment_status=update.payment_status,
        admin_notes=update.admin_notes,
    )
    return ApiResponse(message="Booking updated", data=_booking_payload(booking))
