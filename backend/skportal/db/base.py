"""
Declarative base and shared column mixins for all ORM models.
"""

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import DeclarativeBase

from skportal.core.timeutils import utcnow


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
