from skportal.schemas.user import EligibilityResponse
from skportal.schemas.event import EventCreate, EventListResponse, EventResponse, EventUpdate, CapacityResponse
from skportal.schemas.registration import (
    EmergencyContact,
    RegistrationDetails,
    RegistrationCreate,
    StatusUpdate,
    RegistrationResponse,
    RegistrationCreatedResponse,
    RegistrantSummary,
    EventRegistrationResponse,
    EventRegistrationsResponse,
    ReconcileResponse,
)

__all__ = [
    "EligibilityResponse",
    "EventCreate", "EventListResponse", "EventResponse", "EventUpdate", "CapacityResponse",
    "EmergencyContact", "RegistrationDetails", "RegistrationCreate", "StatusUpdate",
    "RegistrationResponse", "RegistrationCreatedResponse",
    "RegistrantSummary", "EventRegistrationResponse", "EventRegistrationsResponse", "ReconcileResponse",
]
