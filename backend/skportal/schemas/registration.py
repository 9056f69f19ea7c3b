"""
Pydantic schemas for registration request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field


RegistrationStatusLiteral = Literal["pending", "confirmed", "cancelled", "attended", "no_show"]


class EmergencyContact(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=1, max_length=20)
    relationship: str = Field(..., min_length=1, max_length=50)


class RegistrationDetails(BaseModel):
    """Free-form details a registrant supplies; validated, never merged blindly."""

    emergency_contact: EmergencyContact
    special_requirements: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=1000)


class RegistrationCreate(RegistrationDetails):
    event_id: int


class StatusUpdate(BaseModel):
    status: RegistrationStatusLiteral


class EmergencyContactResponse(BaseModel):
    name: str
    phone: str
    relationship: str


class RegistrationResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    status: str
    registration_date: datetime
    emergency_contact: EmergencyContactResponse
    special_requirements: Optional[str]
    notes: Optional[str]
    attendance_marked: bool
    attendance_time: Optional[datetime]
    status_updated_at: Optional[datetime]

    model_config = {"from_attributes": True}


class RegistrationCreatedResponse(RegistrationResponse):
    # True when the event was at or over capacity: kept as waitlist
    waitlisted: bool = False


class RegistrantSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str

    model_config = {"from_attributes": True}


class EventRegistrationResponse(RegistrationResponse):
    """Participant list row: the registration plus who registered."""

    user: RegistrantSummary


class EventRegistrationsResponse(BaseModel):
    event_id: int
    registrations: list[EventRegistrationResponse]
    total: int
    status_counts: dict[str, int]


class ReconcileResponse(BaseModel):
    event_id: int
    previous_count: int
    current_participants: int
    drift: int
