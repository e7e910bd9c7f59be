"""
Read-only booking projections: lookups, paginated lists and aggregate stats.

No locks are taken here; plain snapshot reads are enough for views that do
not feed back into the seat inventory.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.config import get_settings
from booking_api.core.exceptions import ForbiddenError, NotFoundError
from booking_api.core.logging import get_logger
from booking_api.core.metrics import record_db_operation
from booking_api.core.security import Principal
from booking_api.models.booking import Booking
from booking_api.models.event import Event
from booking_api.schemas.booking import BookingStats
from booking_api.services.cache_service import get_cached_stats, set_cached_stats

logger = get_logger(__name__)

_CENTS = Decimal("0.01")


def _ensure_visible(booking: Booking, principal: Principal) -> None:
    if not (principal.owns(booking.user_id) or principal.is_admin):
        raise ForbiddenError("You can only view your own bookings")


async def _paginate(db: AsyncSession, query, page: int, limit: int) -> tuple[list[Booking], int]:
    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    result = await db.execute(query.offset((page - 1) * limit).limit(limit))
    record_db_operation("read")
    return list(result.scalars().all()), total


async def get_booking(db: AsyncSession, booking_id: uuid.UUID, principal: Principal) -> Booking:
    record_db_operation("read")
    booking = (
        await db.execute(select(Booking).where(Booking.id == booking_id))
    ).scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking not found")
    _ensure_visible(booking, principal)
    return booking


async def get_booking_by_reference(db: AsyncSession, reference: str, principal: Principal) -> Booking:
    record_db_operation("read")
    booking = (
        await db.execute(select(Booking).where(Booking.booking_reference == reference))
    ).scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking not found with this reference")
    _ensure_visible(booking, principal)
    return booking


async def list_user_bookings(
    db: AsyncSession,
    user_id: uuid.UUID,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    upcoming: bool = False,
) -> tuple[list[Booking], int]:
    """A user's bookings, newest first. `upcoming` keeps only events still in the future."""
    query = select(Booking).where(Booking.user_id == user_id)
    if status:
        query = query.where(Booking.status == status)
    if upcoming:
        query = query.join(Event, Booking.event_id == Event.id).where(
            Event.date > datetime.now(timezone.utc)
        )
    query = query.order_by(Booking.booked_at.desc(), Booking.id)
    return await _paginate(db, query, page, limit)


async def list_event_bookings(
    db: AsyncSession,
    event_id: uuid.UUID,
    page: int = 1,
    limit: int = 20,
    status: Optional[str] = None,
) -> tuple[list[Booking], int]:
    """All bookings of one event in booking order. Admin view."""
    if await db.get(Event, event_id) is None:
        raise NotFoundError(f"Event {event_id} not found")

    query = select(Booking).where(Booking.event_id == event_id)
    if status:
        query = query.where(Booking.status == status)
    query = query.order_by(Booking.booked_at.asc(), Booking.id)
    return await _paginate(db, query, page, limit)


async def _compute_booking_stats(db: AsyncSession, event_id: Optional[uuid.UUID]) -> BookingStats:
    settings = get_settings()
    since = datetime.now(timezone.utc) - timedelta(days=settings.STATS_RECENT_DAYS)

    def count_where(condition):
        return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

    query = select(
        func.count(Booking.id),
        count_where(Booking.status == "pending"),
        count_where(Booking.status == "confirmed"),
        count_where(Booking.status == "cancelled"),
        count_where(Booking.status == "refunded"),
        func.coalesce(
            func.sum(
                case(
                    (
                        and_(Booking.status == "confirmed", Booking.payment_status == "completed"),
                        Booking.total_amount,
                    ),
                    else_=0,
                )
            ),
            0,
        ),
        count_where(Booking.booked_at >= since),
    )
    if event_id is not None:
        query = query.where(Booking.event_id == event_id)

    record_db_operation("read")
    total, pending, confirmed, cancelled, refunded, revenue, recent = (await db.execute(query)).one()

    total = int(total or 0)
    cancelled = int(cancelled or 0)
    rate = Decimal(cancelled) * 100 / Decimal(total) if total else Decimal(0)

    return BookingStats(
        event_id=event_id,
        total_bookings=total,
        pending_bookings=int(pending or 0),
        confirmed_bookings=int(confirmed or 0),
        cancelled_bookings=cancelled,
        refunded_bookings=int(refunded or 0),
        total_revenue=Decimal(str(revenue or 0)).quantize(_CENTS, rounding=ROUND_HALF_UP),
        recent_bookings=int(recent or 0),
        cancellation_rate=rate.quantize(_CENTS, rounding=ROUND_HALF_UP),
    )


async def get_booking_stats(
    db: AsyncSession, event_id: Optional[uuid.UUID] = None
) -> tuple[BookingStats, bool]:
    """Aggregate booking figures, overall or for one event. Returns (stats, served_from_cache)."""
    cache_key = str(event_id) if event_id else None

    cached = await get_cached_stats(cache_key)
    if cached:
        return BookingStats.model_validate(cached), True

    stats = await _compute_booking_stats(db, event_id)
    await set_cached_stats(cache_key, stats.model_dump(mode="json"))
    logger.debug("booking_stats_computed", event_id=cache_key, total=stats.total_bookings)
    return stats, False
