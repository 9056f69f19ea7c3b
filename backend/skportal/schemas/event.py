"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator

from skportal.core.timeutils import ensure_utc


EventStatusLiteral = Literal["upcoming", "ongoing", "completed", "cancelled", "postponed"]


class EventResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    event_date: Optional[datetime]
    location: Optional[str]
    barangay: Optional[str]
    municipality: Optional[str]
    province: Optional[str]
    max_participants: Optional[int]
    current_participants: int
    registration_deadline: Optional[datetime]
    is_registration_open: bool
    status: str
    organizer_id: Optional[int]

    model_config = {"from_attributes": True}


class EventUpdate(BaseModel):
    """
    Allow-listed partial update for event administration.

    Only fields explicitly sent are applied; current_participants and version
    are not editable. Unknown fields are rejected.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    event_date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=255)
    barangay: Optional[str] = Field(None, max_length=100)
    municipality: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    max_participants: Optional[int] = Field(None, gt=0, le=100000)
    registration_deadline: Optional[datetime] = None
    is_registration_open: Optional[bool] = None
    status: Optional[EventStatusLiteral] = None

    model_config = {"extra": "forbid"}


class CapacityResponse(BaseModel):
    event_id: int
    max_participants: Optional[int]
    current_participants: int
    available_slots: Optional[int]
    can_accept_registration: bool
    is_full: bool
    cached: bool = False


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    event_date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=255)
    barangay: Optional[str] = Field(None, max_length=100)
    municipality: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    max_participants: Optional[int] = Field(None, gt=0, le=100000)
    registration_deadline: Optional[datetime] = None
    is_registration_open: bool = True
    status: EventStatusLiteral = "upcoming"

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def deadline_before_event(self) -> "EventCreate":
        if self.event_date and self.registration_deadline and (
            ensure_utc(self.registration_deadline) > ensure_utc(self.event_date)
        ):
            raise ValueError("registration_deadline must not be after event_date")
        return self


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
