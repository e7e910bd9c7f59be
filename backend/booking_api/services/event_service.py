"""
Event service handling administrative event operations.

Seat totals are only ever changed under the event row lock, and event
cancellation refunds every confirmed booking in the same transaction so the
seat inventory stays reconciled.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.exceptions import ConflictError, InputValidationError, NotFoundError
from booking_api.core.logging import get_logger
from booking_api.core.metrics import record_seats
from booking_api.db.base import utcnow
from booking_api.db.locking import lock_event
from booking_api.db.session import transaction
from booking_api.models.booking import Booking
from booking_api.models.event import Event
from booking_api.schemas.event import (
    EventBookingFigures, EventCreate, EventFinancials, EventSeatInfo, EventStats, EventUpdate,
)
from booking_api.services import inventory
from booking_api.services.cache_service import invalidate_stats_cache

logger = get_logger(__name__)

_CENTS = Decimal("0.01")


def _require_future(date: datetime) -> None:
    if inventory.as_utc(date) <= datetime.now(timezone.utc):
        raise InputValidationError("Event date must be in the future")


async def create_event(db: AsyncSession, event_data: EventCreate, organizer_id: uuid.UUID) -> Event:
    """Create a new event with full seat availability."""
    _require_future(event_data.date)

    async with transaction(db):
        event = Event(
            title=event_data.title,
            description=event_data.description,
            venue=event_data.venue,
            date=event_data.date,
            category=event_data.category,
            total_seats=event_data.total_seats,
            available_seats=event_data.total_seats,  # All seats available initially
            ticket_price=event_data.ticket_price,
            image_url=event_data.image_url,
            status="active",
            organizer_id=organizer_id,
        )
        db.add(event)
        await db.flush()

    logger.info("event_created", event_id=str(event.id), title=event.title, seats=event.total_seats)
    return event


async def get_event(db: AsyncSession, event_id: uuid.UUID) -> Event:
    """Get a single event by ID."""
    result = await db.execute(select(Event).where(Event.id == event_id))
    event = result.scalar_one_or_none()

    if not event:
        raise NotFoundError(f"Event {event_id} not found")
    return event


async def update_event(db: AsyncSession, event_id: uuid.UUID, updates: EventUpdate) -> Event:
    """
    Apply an administrative edit.

    Changing total_seats keeps the number of booked seats fixed:
    available = new_total - booked. Shrinking below booked seats is rejected.
    """
    changes = updates.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise InputValidationError("Nothing to update")
    if "date" in changes:
        _require_future(changes["date"])

    async with transaction(db):
        event = await lock_event(db, event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")

        if "total_seats" in changes:
            booked = inventory.booked_seats(event)
            new_total = changes.pop("total_seats")
            if new_total < booked:
                raise InputValidationError(
                    f"Cannot reduce seats below booked seats ({booked})"
                )
            event.total_seats = new_total
            event.available_seats = new_total - booked

        for field, value in changes.items():
            setattr(event, field, value)
        await db.flush()

    logger.info("event_updated", event_id=str(event_id), fields=sorted(updates.model_fields_set))
    return event


async def cancel_event(db: AsyncSession, event_id: uuid.UUID) -> tuple[Event, int]:
    """
    Cancel an event and refund every confirmed booking.
    Returns the event and the number of bookings cancelled.
    """
    async with transaction(db):
        event = await lock_event(db, event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")
        if event.status == "cancelled":
            raise InputValidationError("Event is already cancelled")

        result = await db.execute(
            select(Booking)
            .where(Booking.event_id == event_id, Booking.status == "confirmed")
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        bookings = list(result.scalars().all())

        now = utcnow()
        released = 0
        for booking in bookings:
            booking.status = "cancelled"
            booking.payment_status = "refunded"
            booking.cancelled_at = now
            inventory.release_seats(event, booking.seat_count)
            released += booking.seat_count

        event.status = "cancelled"
        await db.flush()

    if released:
        record_seats("released", released)
    await invalidate_stats_cache()

    logger.info(
        "event_cancelled",
        event_id=str(event_id),
        bookings_cancelled=len(bookings),
        seats_released=released,
    )
    return event, len(bookings)


async def delete_event(db: AsyncSession, event_id: uuid.UUID) -> None:
    """Delete an event that no booking references."""
    async with transaction(db):
        event = await lock_event(db, event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")

        booking_count = (
            await db.execute(select(func.count(Booking.id)).where(Booking.event_id == event_id))
        ).scalar() or 0
        if booking_count:
            raise ConflictError("Event has bookings and cannot be deleted")

        await db.delete(event)

    logger.info("event_deleted", event_id=str(event_id))


async def get_event_stats(db: AsyncSession, event_id: uuid.UUID) -> EventStats:
    event = await get_event(db, event_id)

    confirmed = Booking.status == "confirmed"
    row = (
        await db.execute(
            select(
                func.count(Booking.id),
                func.coalesce(func.sum(case((confirmed, 1), else_=0)), 0),
                func.coalesce(func.sum(case((Booking.status == "cancelled", 1), else_=0)), 0),
                func.coalesce(func.sum(case((confirmed, Booking.seat_count), else_=0)), 0),
                func.coalesce(func.sum(case((confirmed, Booking.total_amount), else_=0)), 0),
            ).where(Booking.event_id == event_id)
        )
    ).one()
    total, confirmed_count, cancelled_count, seats_booked, revenue = row

    confirmed_count = int(confirmed_count or 0)
    seats_booked = int(seats_booked or 0)
    revenue = Decimal(str(revenue or 0)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    average = (revenue / confirmed_count).quantize(_CENTS, rounding=ROUND_HALF_UP) if confirmed_count else Decimal("0.00")
    occupancy = (Decimal(seats_booked) * 100 / Decimal(event.total_seats)).quantize(_CENTS, rounding=ROUND_HALF_UP)

    return EventStats(
        event_info=EventSeatInfo(
            id=event.id,
            title=event.title,
            total_seats=event.total_seats,
            available_seats=event.available_seats,
        ),
        booking_stats=EventBookingFigures(
            total_bookings=int(total or 0),
            confirmed_bookings=confirmed_count,
            cancelled_bookings=int(cancelled_count or 0),
            total_seats_booked=seats_booked,
            occupancy_rate=occupancy,
        ),
        financial_stats=EventFinancials(
            total_revenue=revenue,
            average_booking_value=average,
        ),
    )
