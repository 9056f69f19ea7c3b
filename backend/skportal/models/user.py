"""
User model (subset of the identity profile the registration core reads).

Owned by the identity subsystem; the registration core never writes it.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint
from sqlalchemy.orm import relationship

from skportal.db.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    YOUTH = "youth"
    SK_OFFICIAL = "sk_official"
    ADMIN = "admin"


# Roles that administer events and registrations
PRIVILEGED_ROLES = frozenset({UserRole.ADMIN.value, UserRole.SK_OFFICIAL.value})


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(50), nullable=False, default="")
    last_name = Column(String(50), nullable=False, default="")
    role = Column(String(20), nullable=False, default=UserRole.YOUTH.value)
    barangay = Column(String(100), nullable=True)
    municipality = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    registrations = relationship("Registration", back_populates="user", lazy="raise")

    __table_args__ = (
        CheckConstraint("role IN ('youth', 'sk_official', 'admin')", name="check_user_role"),
    )

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
