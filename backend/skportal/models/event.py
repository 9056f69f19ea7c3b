"""
Event model with participant bookkeeping.

Key design decisions:
- `current_participants` is denormalized (avoids COUNT over registrations on
  every capacity read). It counts pending/confirmed/attended registrations and
  is only ever changed through a version-guarded UPDATE.
- `version` column enables compare-and-swap on the participant count.
- `max_participants` is a soft limit: registrations past it are accepted as
  waitlist, so there is deliberately no `current <= max` check constraint.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from skportal.db.base import Base, TimestampMixin


class EventStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"


# Events in these states no longer take part in registration
INACTIVE_EVENT_STATUSES = frozenset({EventStatus.COMPLETED.value, EventStatus.CANCELLED.value})


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=True)
    location = Column(String(255), nullable=True)

    # Locality constraint for eligibility
    barangay = Column(String(100), nullable=True)
    municipality = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)

    max_participants = Column(Integer, nullable=True)  # None = unlimited
    current_participants = Column(Integer, nullable=False, default=0)
    registration_deadline = Column(DateTime(timezone=True), nullable=True)
    is_registration_open = Column(Boolean, nullable=False, default=True)
    status = Column(String(20), nullable=False, default=EventStatus.UPCOMING.value)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Compare-and-swap counter for current_participants
    version = Column(Integer, nullable=False, default=1)

    registrations = relationship("Registration", back_populates="event", lazy="raise")

    __table_args__ = (
        CheckConstraint("current_participants >= 0", name="check_current_participants_non_negative"),
        CheckConstraint(
            "max_participants IS NULL OR max_participants > 0",
            name="check_max_participants_positive",
        ),
        CheckConstraint(
            "status IN ('upcoming', 'ongoing', 'completed', 'cancelled', 'postponed')",
            name="check_event_status",
        ),
        Index("ix_events_barangay", "barangay"),
        Index("ix_events_event_date", "event_date"),
    )

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_EVENT_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, title={self.title}, "
            f"participants={self.current_participants}/{self.max_participants or 'unlimited'})>"
        )
