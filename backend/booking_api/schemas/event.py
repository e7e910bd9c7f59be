"""
Pydantic schemas for event-related request/response validation.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from booking_api.models.event import Event
from booking_api.services import inventory

EventCategory = Literal["conference", "workshop", "seminar", "concert", "sports", "other"]
EventStatus = Literal["active", "cancelled", "completed"]


class EventCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    venue: str = Field(..., min_length=3, max_length=200)
    date: datetime
    total_seats: int = Field(..., gt=0, le=50000)
    ticket_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    category: EventCategory = "other"
    image_url: Optional[str] = Field(None, max_length=500)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    venue: Optional[str] = Field(None, min_length=3, max_length=200)
    date: Optional[datetime] = None
    total_seats: Optional[int] = Field(None, gt=0, le=50000)
    ticket_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    category: Optional[EventCategory] = None
    # Cancellation goes through PUT /events/{id}/cancel so bookings are refunded
    status: Optional[Literal["active", "completed"]] = None
    image_url: Optional[str] = Field(None, max_length=500)


class EventSummary(BaseModel):
    id: uuid.UUID
    title: str
    venue: str
    date: datetime
    ticket_price: Decimal
    status: str

    model_config = {"from_attributes": True}


class EventResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str]
    venue: str
    date: datetime
    category: str
    total_seats: int
    available_seats: int
    ticket_price: Decimal
    status: str
    image_url: Optional[str]
    organizer_id: uuid.UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class EventDetailResponse(EventResponse):
    booked_seats: int
    occupancy_rate: Decimal
    is_bookable: bool

    @classmethod
    def from_event(cls, event: Event) -> "EventDetailResponse":
        base = EventResponse.model_validate(event).model_dump()
        return cls(
            **base,
            booked_seats=inventory.booked_seats(event),
            occupancy_rate=inventory.occupancy_rate(event),
            is_bookable=inventory.is_bookable(event),
        )


class EventData(BaseModel):
    event: EventDetailResponse


class EventSeatInfo(BaseModel):
    id: uuid.UUID
    title: str
    total_seats: int
    available_seats: int


class EventBookingFigures(BaseModel):
    total_bookings: int
    confirmed_bookings: int
    cancelled_bookings: int
    total_seats_booked: int
    occupancy_rate: Decimal


class EventFinancials(BaseModel):
    total_revenue: Decimal
    average_booking_value: Decimal


class EventStats(BaseModel):
    event_info: EventSeatInfo
    booking_stats: EventBookingFigures
    financial_stats: EventFinancials


class EventStatsData(BaseModel):
    stats: EventStats


class EventCancelData(BaseModel):
    event: EventDetailResponse
    bookings_cancelled: int
