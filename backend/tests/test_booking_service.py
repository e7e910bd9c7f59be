"""
Workflow tests that call the booking service directly.

The concurrency tests give every request its own session, so requests really
race for the event lock instead of sharing one connection.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from booking_api.core.exceptions import (
    ConflictError,
    DuplicateBookingError,
    InputValidationError,
    InsufficientSeatsError,
    InternalError,
    LockTimeoutError,
    NotCancellableError,
)
from booking_api.core.security import Principal
from booking_api.db.locking import lock_event
from booking_api.db.session import transaction, translate_db_error
from booking_api.models.booking import Booking
from booking_api.models.event import Event
from booking_api.models.user import User
from booking_api.services import booking_service, inventory

from conftest import make_event


async def _make_users(db_session, count: int) -> list[User]:
    users = [User(email=f"user{i}@example.com", username=f"user{i}") for i in range(count)]
    db_session.add_all(users)
    await db_session.commit()
    return users


async def _seat_totals(session_factory, event_id):
    """(available_seats, total_seats, confirmed seats) read in a fresh session."""
    async with session_factory() as session:
        event = await session.get(Event, event_id)
        confirmed = (
            await session.execute(
                select(func.coalesce(func.sum(Booking.seat_count), 0)).where(
                    Booking.event_id == event_id, Booking.status == "confirmed"
                )
            )
        ).scalar()
        return event.available_seats, event.total_seats, int(confirmed)


async def _book_in_own_session(session_factory, user_id, event_id, seats):
    async with session_factory() as session:
        return await booking_service.create_booking(session, user_id, event_id, seats)


@pytest.mark.asyncio
async def test_concurrent_bookings_never_oversell(db_session, session_factory, admin_user):
    """Ten users race for five seats: exactly five win."""
    event = make_event(admin_user, total_seats=5, available_seats=5)
    db_session.add(event)
    await db_session.commit()
    users = await _make_users(db_session, 10)
    event_id = event.id

    results = await asyncio.gather(
        *(_book_in_own_session(session_factory, user.id, event_id, 1) for user in users),
        return_exceptions=True,
    )

    succeeded = [r for r in results if isinstance(r, Booking)]
    failed = [r for r in results if not isinstance(r, Booking)]
    assert len(succeeded) == 5
    assert all(isinstance(error, InsufficientSeatsError) for error in failed)

    available, total, confirmed = await _seat_totals(session_factory, event_id)
    assert available == 0
    assert confirmed + available == total


@pytest.mark.asyncio
async def test_concurrent_mixed_sizes_conserve_seats(db_session, session_factory, admin_user):
    event = make_event(admin_user, total_seats=20, available_seats=20)
    db_session.add(event)
    await db_session.commit()
    users = await _make_users(db_session, 8)
    event_id = event.id

    results = await asyncio.gather(
        *(_book_in_own_session(session_factory, user.id, event_id, 3) for user in users),
        return_exceptions=True,
    )

    succeeded = [r for r in results if isinstance(r, Booking)]
    assert len(succeeded) == 6

    available, total, confirmed = await _seat_totals(session_factory, event_id)
    assert available == 2
    assert confirmed == 18
    assert confirmed + available == total


@pytest.mark.asyncio
async def test_concurrent_cancels_release_once(db_session, session_factory, test_user, test_event):
    """Two simultaneous cancellations of one booking: one wins, one is rejected."""
    booking = await booking_service.create_booking(db_session, test_user.id, test_event.id, 4)
    principal = Principal(user_id=test_user.id)
    booking_id, event_id = booking.id, test_event.id

    async def cancel():
        async with session_factory() as session:
            return await booking_service.cancel_booking(session, booking_id, principal)

    results = await asyncio.gather(cancel(), cancel(), return_exceptions=True)

    assert sum(isinstance(r, Booking) for r in results) == 1
    assert sum(isinstance(r, NotCancellableError) for r in results) == 1

    available, total, _ = await _seat_totals(session_factory, event_id)
    assert available == total == 50


@pytest.mark.asyncio
async def test_failed_transaction_leaves_no_trace(db_session, session_factory, test_event):
    """Any error inside the transaction rolls back the seat deduction."""
    event_id = test_event.id

    with pytest.raises(RuntimeError):
        async with transaction(db_session):
            event = await lock_event(db_session, event_id)
            inventory.reserve_seats(event, 5)
            await db_session.flush()
            raise RuntimeError("boom")

    available, _, _ = await _seat_totals(session_factory, event_id)
    assert available == 50


@pytest.mark.asyncio
async def test_check_constraint_is_translated(db_session, session_factory, test_event):
    """The database bound on available seats surfaces as a retryable conflict."""
    event_id = test_event.id

    with pytest.raises(ConflictError) as excinfo:
        async with transaction(db_session):
            event = await lock_event(db_session, event_id)
            event.available_seats = -1
            await db_session.flush()

    assert excinfo.value.retryable
    available, _, _ = await _seat_totals(session_factory, event_id)
    assert available == 50


@pytest.mark.asyncio
async def test_create_booking_amount_and_reference(db_session, test_user, test_event):
    booking = await booking_service.create_booking(db_session, test_user.id, test_event.id, 3, "Aisle seat")

    assert booking.total_amount == Decimal("60.00")
    assert booking.special_requests == "Aisle seat"
    assert booking.booking_reference.startswith("BK")
    assert test_event.available_seats == 47


@pytest.mark.asyncio
async def test_create_booking_rejects_bad_seat_count(db_session, test_user, test_event):
    with pytest.raises(InputValidationError):
        await booking_service.create_booking(db_session, test_user.id, test_event.id, 11)


@pytest.mark.asyncio
async def test_reconfirm_without_capacity(db_session, session_factory, admin_user, test_user, other_user):
    """Moving a cancelled booking back to confirmed re-checks capacity."""
    event = make_event(admin_user, total_seats=4, available_seats=4)
    db_session.add(event)
    await db_session.commit()
    event_id = event.id

    first = await booking_service.create_booking(db_session, test_user.id, event_id, 3)
    await booking_service.update_booking_status(db_session, first.id, status="cancelled")
    await booking_service.create_booking(db_session, other_user.id, event_id, 2)

    with pytest.raises(InsufficientSeatsError):
        await booking_service.update_booking_status(db_session, first.id, status="confirmed")

    available, total, confirmed = await _seat_totals(session_factory, event_id)
    assert (available, confirmed) == (2, 2)
    assert confirmed + available == total


@pytest.mark.asyncio
async def test_reconfirm_duplicate_is_rejected(db_session, test_user, test_event):
    event_id = test_event.id
    first = await booking_service.create_booking(db_session, test_user.id, event_id, 1)
    await booking_service.update_booking_status(db_session, first.id, status="cancelled")
    await booking_service.create_booking(db_session, test_user.id, event_id, 1)

    with pytest.raises(DuplicateBookingError):
        await booking_service.update_booking_status(db_session, first.id, status="confirmed")


class _DriverError(Exception):
    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


@pytest.mark.parametrize(
    "error, expected",
    [
        (DBAPIError("SELECT 1", {}, _DriverError("lock timeout", "55P03")), LockTimeoutError),
        (OperationalError("BEGIN IMMEDIATE", {}, _DriverError("database is locked")), LockTimeoutError),
        (DBAPIError("UPDATE events", {}, _DriverError("deadlock detected", "40P01")), ConflictError),
        (IntegrityError("INSERT INTO bookings", {}, _DriverError("UNIQUE constraint failed")), ConflictError),
        (DBAPIError("SELECT 1", {}, _DriverError("syntax error", "42601")), InternalError),
    ],
)
def test_translate_db_error(error, expected):
    translated = translate_db_error(error)
    assert type(translated) is expected
    if expected is InternalError:
        assert not translated.retryable
        assert "syntax" not in translated.message
    else:
        assert translated.retryable
