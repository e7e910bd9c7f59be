"""
Event endpoints: administrative management plus public detail view.
"""

import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.security import Principal, require_admin
from booking_api.db.session import get_db
from booking_api.schemas.booking import BookingListData, BookingResponse
from booking_api.schemas.common import ApiResponse, Pagination
from booking_api.schemas.event import (
    EventCancelData, EventCreate, EventData, EventDetailResponse, EventStatsData, EventUpdate,
)
from booking_api.services import event_service
from booking_api.services.booking_queries import list_event_bookings

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("", response_model=ApiResponse[EventData], status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a new event. Administrators only."""
    event = await event_service.create_event(db, event_data, admin.user_id)
    return ApiResponse(message="Event created", data=EventData(event=EventDetailResponse.from_event(event)))


@router.get("/{event_id}", response_model=ApiResponse[EventData])
async def get_event_endpoint(
    event_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event with live seat figures. Not cached."""
    event = await event_service.get_event(db, event_id)
    return ApiResponse(message="Event fetched", data=EventData(event=EventDetailResponse.from_event(event)))


@router.put("/{event_id}", response_model=ApiResponse[EventData])
async def update_event_endpoint(
    event_id: uuid.UUID,
    updates: EventUpdate,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    event = await event_service.update_event(db, event_id, updates)
    return ApiResponse(message="Event updated", data=EventData(event=EventDetailResponse.from_event(event)))


@router.put("/{event_id}/cancel", response_model=ApiResponse[EventCancelData])
async def cancel_event_endpoint(
    event_id: uuid.UUID,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Cancel the event and refund all of its confirmed bookings."""
    event, cancelled = await event_service.cancel_event(db, event_id)
    return ApiResponse(
        message="Event cancelled and bookings updated",
        data=EventCancelData(event=EventDetailResponse.from_event(event), bookings_cancelled=cancelled),
    )


@router.delete("/{event_id}", response_model=ApiResponse)
async def delete_event_endpoint(
    event_id: uuid.UUID,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await event_service.delete_event(db, event_id)
    return ApiResponse(message="Event deleted")


@router.get("/{event_id}/bookings", response_model=ApiResponse[BookingListData])
async def list_event_bookings_endpoint(
    event_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[Literal["pending", "confirmed", "cancelled", "refunded"]] = Query(None, alias="status"),
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    bookings, total = await list_event_bookings(db, event_id, page, limit, status_filter)
    return ApiResponse(
        message="Event bookings fetched",
        data=BookingListData(
            bookings=[BookingResponse.model_validate(b) for b in bookings],
            pagination=Pagination.build(total, page, limit),
        ),
    )


@router.get("/{event_id}/stats", response_model=ApiResponse[EventStatsData])
async def event_stats_endpoint(
    event_id: uuid.UUID,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    stats = await event_service.get_event_stats(db, event_id)
    return ApiResponse(message="Stats fetched", data=EventStatsData(stats=stats))
