"""
Booking model representing a user's claim on seats of an event.

Key design decisions:
- Status field allows cancellation without deleting records
- A booking holds seats only while its status is 'confirmed'; every move in or
  out of that status is paired with an event seat adjustment in the same transaction
- Partial unique index allows one confirmed booking per user per event while
  keeping the history of cancelled ones
- total_amount is fixed at booking time; later price edits do not touch it
"""

import uuid

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Numeric, ForeignKey, Index, CheckConstraint, Uuid, text,
)
from sqlalchemy.orm import relationship

from booking_api.db.base import Base, TimestampMixin, utcnow

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "refunded")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_reference = Column(String(20), nullable=False, unique=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="RESTRICT"), nullable=False)
    seat_count = Column(Integer, nullable=False, default=1)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default="confirmed")
    payment_status = Column(String(20), nullable=False, default="completed")
    special_requests = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)
    booked_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship("User", lazy="selectin")
    event = relationship("Event", lazy="selectin")

    __table_args__ = (
        CheckConstraint("seat_count BETWEEN 1 AND 10", name="check_booking_seat_count_range"),
        CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'refunded')", name="check_booking_status"
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded')", name="check_payment_status"
        ),
        Index("ix_bookings_user_id", "user_id"),
        Index("ix_bookings_event_id", "event_id"),
        Index("ix_bookings_status", "status"),
        Index("ix_bookings_payment_status", "payment_status"),
        Index("ix_bookings_booked_at", "booked_at"),
        Index(
            "uq_bookings_user_event_confirmed",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=text("status = 'confirmed'"),
            sqlite_where=text("status = 'confirmed'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, ref={self.booking_reference}, event={self.event_id}, status={self.status})>"
