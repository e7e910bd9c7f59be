"""
Event model with seat inventory tracking.

Key design decisions:
- `available_seats` is denormalized (avoids COUNT/SUM over bookings on every read)
  and is only changed inside a transaction that holds this row's FOR UPDATE lock
- CHECK constraints keep 0 <= available_seats <= total_seats even if a bug
  slips past the inventory ledger
- Index on `date` for upcoming-event filters, on `available_seats` for
  availability filters
"""

import uuid

from sqlalchemy import Column, String, Text, DateTime, Numeric, Integer, ForeignKey, Index, CheckConstraint, Uuid

from booking_api.db.base import Base, TimestampMixin

EVENT_STATUSES = ("active", "cancelled", "completed")
EVENT_CATEGORIES = ("conference", "workshop", "seminar", "concert", "sports", "other")


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    venue = Column(String(200), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    category = Column(String(20), nullable=False, default="other")
    total_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    ticket_price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default="active")
    image_url = Column(String(500), nullable=True)
    organizer_id = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="check_available_seats_non_negative"),
        CheckConstraint("total_seats > 0", name="check_total_seats_positive"),
        CheckConstraint("available_seats <= total_seats", name="check_available_lte_total"),
        CheckConstraint("ticket_price >= 0", name="check_ticket_price_non_negative"),
        CheckConstraint("status IN ('active', 'cancelled', 'completed')", name="check_event_status"),
        Index("ix_events_date", "date"),
        Index("ix_events_status", "status"),
        Index("ix_events_category", "category"),
        Index("ix_events_available_seats", "available_seats"),
        Index("ix_events_organizer_id", "organizer_id"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, available={self.available_seats}/{self.total_seats})>"
