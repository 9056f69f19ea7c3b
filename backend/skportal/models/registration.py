"""
Registration model: one user's registration for one event.

Key design decisions:
- Partial unique index on (user_id, event_id) over non-cancelled rows: at most
  one active registration per pair, while cancelled rows stay as history and
  re-registration creates a fresh row.
- Registrations are never deleted by the core; cancellation is a status.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, CheckConstraint, text
from sqlalchemy.orm import relationship

from skportal.core.timeutils import utcnow
from skportal.db.base import Base, TimestampMixin


class RegistrationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    ATTENDED = "attended"
    NO_SHOW = "no_show"


ACTIVE_REGISTRATION_CLAUSE = text("status <> 'cancelled'")


class Registration(Base, TimestampMixin):
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=RegistrationStatus.PENDING.value)
    registration_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    emergency_contact_name = Column(String(100), nullable=False)
    emergency_contact_phone = Column(String(20), nullable=False)
    emergency_contact_relationship = Column(String(50), nullable=False)
    special_requirements = Column(String(1000), nullable=True)
    notes = Column(String(1000), nullable=True)

    attendance_marked = Column(Boolean, nullable=False, default=False)
    attendance_time = Column(DateTime(timezone=True), nullable=True)
    status_updated_at = Column(DateTime(timezone=True), nullable=True)

    # Not persisted: set by register() when the event was already at capacity
    waitlisted = False

    user = relationship("User", back_populates="registrations", lazy="raise")
    event = relationship("Event", back_populates="registrations", lazy="raise")

    __table_args__ = (
        Index(
            "uq_active_registration_user_event",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=ACTIVE_REGISTRATION_CLAUSE,
            sqlite_where=ACTIVE_REGISTRATION_CLAUSE,
        ),
        Index("ix_registrations_event_status", "event_id", "status"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'attended', 'no_show')",
            name="check_registration_status",
        ),
    )

    @property
    def emergency_contact(self) -> dict:
        return {
            "name": self.emergency_contact_name,
            "phone": self.emergency_contact_phone,
            "relationship": self.emergency_contact_relationship,
        }

    def __repr__(self) -> str:
        return f"<Registration(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
