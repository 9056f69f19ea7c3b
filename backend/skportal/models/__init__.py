from skportal.models.user import User, UserRole
from skportal.models.event import Event, EventStatus
from skportal.models.registration import Registration, RegistrationStatus

__all__ = [
    "User", "UserRole",
    "Event", "EventStatus",
    "Registration", "RegistrationStatus",
]
