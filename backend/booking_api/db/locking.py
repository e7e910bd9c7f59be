"""
Row-lock acquisition for the booking workflow.

Both helpers issue SELECT ... FOR UPDATE and refresh any instance already in
the session's identity map, so the caller always validates against the row
as it is while the lock is held. Locks are released when the surrounding
transaction commits or rolls back.

Lock order is always event first, then booking, so a cancellation and an
administrative status change on bookings of the same event cannot deadlock.
"""

import uuid
from typing import Optional

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.config import get_settings
from booking_api.core.metrics import record_db_operation
from booking_api.models.booking import Booking
from booking_api.models.event import Event


async def _apply_lock_timeout(db: AsyncSession) -> None:
    timeout_ms = get_settings().DB_LOCK_TIMEOUT_MS
    if timeout_ms > 0 and db.get_bind().dialect.name == "postgresql":
        await db.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'"))


async def lock_event(db: AsyncSession, event_id: uuid.UUID) -> Optional[Event]:
    """Acquire the exclusive hold on an event row for the rest of the transaction."""
    await _apply_lock_timeout(db)
    record_db_operation("lock")
    result = await db.execute(
        select(Event)
        .where(Event.id == event_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def lock_booking(db: AsyncSession, booking_id: uuid.UUID) -> Optional[Booking]:
    record_db_operation("lock")
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def lock_booking_with_event(
    db: AsyncSession, booking_id: uuid.UUID
) -> tuple[Optional[Booking], Optional[Event]]:
    """Lock a booking's event row, then the booking row itself."""
    record_db_operation("read")
    event_id = (
        await db.execute(select(Booking.event_id).where(Booking.id == booking_id))
    ).scalar_one_or_none()
    if event_id is None:
        return None, None

    event = await lock_event(db, event_id)
    booking = await lock_booking(db, booking_id)
    return booking, event
