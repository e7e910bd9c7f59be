"""
Inventory ledger: admission rules and seat arithmetic.

Everything here is a pure function over the event/booking snapshot the caller
already holds (normally read under the event row lock). Nothing touches the
database, so the rules can be tested without one.

Seat arithmetic (`reserve_seats` / `release_seats`) is only ever applied by the
booking workflow together with a booking status transition into or out of
'confirmed'; that pairing keeps

    sum(confirmed seat_count) + available_seats == total_seats

for every event.
"""

import secrets
import string
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from booking_api.models.booking import Booking
from booking_api.models.event import Event

SEAT_HOLDING_STATUS = "confirmed"
_REFERENCE_ALPHABET = string.digits + string.ascii_uppercase
_CENTS = Decimal("0.01")


class LedgerError(ValueError):
    """Seat arithmetic would break the 0 <= available <= total bound."""


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now is not None else datetime.now(timezone.utc)


def is_open(event: Event, now: Optional[datetime] = None) -> bool:
    """Active and still in the future, regardless of remaining seats."""
    return event.status == "active" and as_utc(event.date) > _now(now)


def is_bookable(event: Event, now: Optional[datetime] = None) -> bool:
    return is_open(event, now) and event.available_seats > 0


def has_capacity(event: Event, seats: int) -> bool:
    return event.available_seats >= seats and event.status == "active"


def holds_seats(status: str) -> bool:
    return status == SEAT_HOLDING_STATUS


def can_cancel(booking: Booking) -> bool:
    return booking.status == "confirmed" and booking.payment_status == "completed"


def within_cancellation_window(event: Event, hours: int, now: Optional[datetime] = None) -> bool:
    """True while the event starts at least `hours` from now."""
    return as_utc(event.date) - _now(now) >= timedelta(hours=hours)


def reserve_seats(event: Event, seats: int) -> int:
    if seats <= 0:
        raise LedgerError(f"Seat count must be positive, got {seats}")
    if event.available_seats - seats < 0:
        raise LedgerError(
            f"Cannot reserve {seats} seats, only {event.available_seats} available"
        )
    event.available_seats = event.available_seats - seats
    return event.available_seats


def release_seats(event: Event, seats: int) -> int:
    if seats <= 0:
        raise LedgerError(f"Seat count must be positive, got {seats}")
    if event.available_seats + seats > event.total_seats:
        raise LedgerError(
            f"Cannot release {seats} seats, event capacity is {event.total_seats}"
        )
    event.available_seats = event.available_seats + seats
    return event.available_seats


def booked_seats(event: Event) -> int:
    return event.total_seats - event.available_seats


def occupancy_rate(event: Event) -> Decimal:
    if not event.total_seats:
        return Decimal("0.00")
    rate = Decimal(booked_seats(event)) * 100 / Decimal(event.total_seats)
    return rate.quantize(_CENTS, rounding=ROUND_HALF_UP)


def calculate_amount(ticket_price, seats: int) -> Decimal:
    return (Decimal(str(ticket_price)) * seats).quantize(_CENTS, rounding=ROUND_HALF_UP)


def generate_booking_reference() -> str:
    """BK + last 8 digits of the millisecond clock + 4 random base36 characters."""
    millis = str(int(time.time() * 1000))[-8:]
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(4))
    return f"BK{millis}{suffix}"
