"""
Pydantic schemas for booking-related request/response validation.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from booking_api.schemas.common import Pagination
from booking_api.schemas.event import EventSummary
from booking_api.schemas.user import UserSummary

MAX_SEATS_PER_BOOKING = 10

BookingStatus = Literal["pending", "confirmed", "cancelled", "refunded"]
PaymentStatus = Literal["pending", "completed", "failed", "refunded"]


class BookingCreate(BaseModel):
    event_id: uuid.UUID
    seat_count: int = Field(default=1, ge=1, le=MAX_SEATS_PER_BOOKING)
    special_requests: Optional[str] = Field(None, max_length=500)


class BookingStatusUpdate(BaseModel):
    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    admin_notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_not_empty(self) -> "BookingStatusUpdate":
        if self.status is None and self.payment_status is None and self.admin_notes is None:
            raise ValueError("Provide at least one of status, payment_status or admin_notes")
        return self


class BookingResponse(BaseModel):
    id: uuid.UUID
    booking_reference: str
    user_id: uuid.UUID
    event_id: uuid.UUID
    seat_count: int
    total_amount: Decimal
    status: str
    payment_status: str
    special_requests: Optional[str]
    admin_notes: Optional[str] = None
    booked_at: datetime
    cancelled_at: Optional[datetime]
    event: Optional[EventSummary] = None
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class BookingData(BaseModel):
    booking: BookingResponse


class BookingListData(BaseModel):
    bookings: list[BookingResponse]
    pagination: Pagination


class BookingStats(BaseModel):
    event_id: Optional[uuid.UUID] = None
    total_bookings: int
    pending_bookings: int
    confirmed_bookings: int
    cancelled_bookings: int
    refunded_bookings: int
    total_revenue: Decimal
    recent_bookings: int
    cancellation_rate: Decimal


class BookingStatsData(BaseModel):
    stats: BookingStats
    cached: bool = False
