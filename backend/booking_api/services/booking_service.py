"""
Booking service: transactional create / cancel / status-change with seat-inventory consistency.

CONCURRENCY STRATEGY: Pessimistic Row Locking
=============================================

Problem:
  Two users try to book the last seat simultaneously.
  Both read available_seats=1, both decrement to 0, both succeed.
  Result: Overbooking.

Solution:
  Every operation that moves seats runs as one transaction that first takes an
  exclusive lock on the event row (SELECT ... FOR UPDATE):

  1. Lock the event row (concurrent bookings for the same event queue here)
  2. Validate admission rules against the locked snapshot
  3. Write the booking row and adjust available_seats
  4. Commit (or roll back everything on any failure)

  This approach:
  - Serializes only requests for the same event; other events proceed in parallel
  - Never retries internally: lock contention surfaces as a retryable
    LockTimeoutError / ConflictError and the caller decides whether to resubmit
  - DB CHECK constraints stay as the final safety net (0 <= available <= total)

  Cancellation and administrative changes lock the event first, then the
  booking, always in that order.

Duplicate policy:
  A user may hold at most one confirmed booking per event. A second request
  fails with DuplicateBookingError; a partial unique index backs this up.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.config import get_settings
from booking_api.core.exceptions import (
    BookingAPIError,
    DuplicateBookingError,
    ForbiddenError,
    InputValidationError,
    InsufficientSeatsError,
    NotBookableError,
    NotCancellableError,
    NotFoundError,
    TooLateToCancelError,
)
from booking_api.core.logging import get_logger
from booking_api.core.metrics import booking_latency, record_booking_attempt, record_seats
from booking_api.core.security import Principal
from booking_api.db.base import utcnow
from booking_api.db.locking import lock_booking_with_event, lock_event
from booking_api.db.session import transaction
from booking_api.models.booking import Booking
from booking_api.models.user import User
from booking_api.schemas.booking import MAX_SEATS_PER_BOOKING
from booking_api.services import inventory
from booking_api.services.cache_service import invalidate_stats_cache

logger = get_logger(__name__)


@asynccontextmanager
async def _instrumented(operation: str, **log_context):
    started = time.perf_counter()
    try:
        yield
    except BookingAPIError as exc:
        record_booking_attempt(operation, exc.code)
        logger.warning(
            "booking_rejected",
            operation=operation,
            code=exc.code,
            reason=exc.message,
            **log_context,
        )
        raise
    else:
        record_booking_attempt(operation, "success")
    finally:
        booking_latency.labels(operation=operation).observe(time.perf_counter() - started)


async def _has_confirmed_booking(
    db: AsyncSession,
    user_id: uuid.UUID,
    event_id: uuid.UUID,
    exclude_id: Optional[uuid.UUID] = None,
) -> bool:
    query = select(Booking.id).where(
        Booking.user_id == user_id,
        Booking.event_id == event_id,
        Booking.status == "confirmed",
    )
    if exclude_id is not None:
        query = query.where(Booking.id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none() is not None


async def create_booking(
    db: AsyncSession,
    user_id: uuid.UUID,
    event_id: uuid.UUID,
    seat_count: int = 1,
    special_requests: Optional[str] = None,
) -> Booking:
    """
    Book seats for an event.

    Runs as a single transaction holding the event row lock. Returns the
    committed booking with its event and user loaded for the response.
    """
    async with _instrumented("create", user_id=str(user_id), event_id=str(event_id), seats=seat_count):
        if not 1 <= seat_count <= MAX_SEATS_PER_BOOKING:
            raise InputValidationError(
                f"Seat count must be between 1 and {MAX_SEATS_PER_BOOKING}"
            )

        async with transaction(db):
            event = await lock_event(db, event_id)
            if event is None:
                raise NotFoundError(f"Event {event_id} not found")

            if not inventory.is_bookable(event):
                # A sold-out but otherwise open event is a capacity failure
                if not inventory.is_open(event):
                    raise NotBookableError("Event is not open for booking")
                raise InsufficientSeatsError("Event is sold out")

            if not inventory.has_capacity(event, seat_count):
                raise InsufficientSeatsError(
                    f"Not enough seats. Requested: {seat_count}, Available: {event.available_seats}"
                )

            if await _has_confirmed_booking(db, user_id, event_id):
                raise DuplicateBookingError("You already have a booking for this event")

            user = await db.get(User, user_id)
            if user is None:
                raise NotFoundError(f"User {user_id} not found")

            booking = Booking(
                booking_reference=inventory.generate_booking_reference(),
                user_id=user_id,
                event_id=event_id,
                seat_count=seat_count,
                total_amount=inventory.calculate_amount(event.ticket_price, seat_count),
                status="confirmed",
                payment_status="completed",  # payment is simulated and synchronous
                special_requests=special_requests,
                booked_at=utcnow(),
            )
            booking.event = event
            booking.user = user
            db.add(booking)
            inventory.reserve_seats(event, seat_count)
            await db.flush()

    record_seats("reserved", seat_count)
    await invalidate_stats_cache()

    logger.info(
        "booking_created",
        booking_id=str(booking.id),
        reference=booking.booking_reference,
        user_id=str(user_id),
        event_id=str(event_id),
        seats=seat_count,
        available_seats=event.available_seats,
    )
    return booking


async def cancel_booking(
    db: AsyncSession,
    booking_id: uuid.UUID,
    principal: Principal,
) -> Booking:
    """
    Cancel a booking and return its seats to the event.

    Only the owner or an administrator may cancel, only confirmed and paid
    bookings qualify, and not once the event is inside the cancellation window.
    """
    settings = get_settings()

    async with _instrumented("cancel", booking_id=str(booking_id), user_id=str(principal.user_id)):
        async with transaction(db):
            booking, event = await lock_booking_with_event(db, booking_id)
            if booking is None or event is None:
                raise NotFoundError("Booking not found")

            if not (principal.owns(booking.user_id) or principal.is_admin):
                raise ForbiddenError("You can only cancel your own bookings")

            if not inventory.can_cancel(booking):
                raise NotCancellableError(
                    f"Booking cannot be cancelled (status={booking.status}, payment={booking.payment_status})"
                )

            if not inventory.within_cancellation_window(event, settings.CANCELLATION_WINDOW_HOURS):
                raise TooLateToCancelError(
                    f"Bookings cannot be cancelled less than {settings.CANCELLATION_WINDOW_HOURS} hours before the event"
                )

            booking.status = "cancelled"
            booking.payment_status = "refunded"
            booking.cancelled_at = utcnow()
            inventory.release_seats(event, booking.seat_count)
            await db.flush()

    record_seats("released", booking.seat_count)
    await invalidate_stats_cache()

    logger.info(
        "booking_cancelled",
        booking_id=str(booking.id),
        user_id=str(principal.user_id),
        event_id=str(booking.event_id),
        seats_restored=booking.seat_count,
        available_seats=event.available_seats,
    )
    return booking


async def update_booking_status(
    db: AsyncSession,
    booking_id: uuid.UUID,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    admin_notes: Optional[str] = None,
) -> Booking:
    """
    Administrative override of status / payment status / notes.

    Moving a booking out of 'confirmed' returns its seats; moving it into
    'confirmed' re-checks the event and capacity and deducts them again.
    Any other change is a plain field update.
    """
    async with _instrumented("status", booking_id=str(booking_id), status=status, payment_status=payment_status):
        if status is None and payment_status is None and admin_notes is None:
            raise InputValidationError("Nothing to update")

        async with transaction(db):
            booking, event = await lock_booking_with_event(db, booking_id)
            if booking is None or event is None:
                raise NotFoundError("Booking not found")

            previous = booking.status
            target = status or previous
            seats_delta = 0

            if inventory.holds_seats(previous) and not inventory.holds_seats(target):
                inventory.release_seats(event, booking.seat_count)
                seats_delta = booking.seat_count
                if target in ("cancelled", "refunded"):
                    booking.cancelled_at = utcnow()

            elif inventory.holds_seats(target) and not inventory.holds_seats(previous):
                if event.status != "active":
                    raise NotBookableError("Event is not active")
                if await _has_confirmed_booking(db, booking.user_id, booking.event_id, exclude_id=booking.id):
                    raise DuplicateBookingError("User already has a confirmed booking for this event")
                if not inventory.has_capacity(event, booking.seat_count):
                    raise InsufficientSeatsError(
                        f"Not enough seats to reconfirm. Requested: {booking.seat_count}, "
                        f"Available: {event.available_seats}"
                    )
                inventory.reserve_seats(event, booking.seat_count)
                seats_delta = -booking.seat_count
                booking.cancelled_at = None

            booking.status = target
            if payment_status is not None:
                booking.payment_status = payment_status
            if admin_notes is not None:
                booking.admin_notes = admin_notes
            await db.flush()

    if seats_delta > 0:
        record_seats("released", seats_delta)
    elif seats_delta < 0:
        record_seats("reserved", -seats_delta)
    await invalidate_stats_cache()

    logger.info(
        "booking_status_updated",
        booking_id=str(booking.id),
        previous_status=previous,
        status=booking.status,
        payment_status=booking.payment_status,
        seats_delta=seats_delta,
        available_seats=event.available_seats,
    )
    return booking
