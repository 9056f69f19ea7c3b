"""
Typed errors raised by the registration core.

Each error carries a stable ``code`` that callers can branch on and the HTTP
status the API layer maps it to. Business rejections are expected outcomes:
they are raised to the caller, never retried and never swallowed.
"""

from fastapi import status


class RegistrationError(Exception):
    """Base class for all registration-core errors."""

    code: str = "RegistrationError"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class NotFoundError(RegistrationError):
    code = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class AlreadyRegisteredError(RegistrationError):
    code = "AlreadyRegistered"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "You are already registered for this event"):
        super().__init__(message)


class IneligibleError(RegistrationError):
    """The eligibility evaluator rejected the user; ``reason`` is its verdict."""

    code = "Ineligible"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message, "reason": self.reason}


class RegistrationClosedError(RegistrationError):
    code = "RegistrationClosed"
    status_code = status.HTTP_409_CONFLICT


class UnauthorizedError(RegistrationError):
    code = "Unauthorized"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransitionError(RegistrationError):
    code = "InvalidTransition"
    status_code = status.HTTP_409_CONFLICT


class TransientFailureError(RegistrationError):
    """The atomic step kept conflicting (or the store kept failing) past the retry budget."""

    code = "TransientFailure"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Registration failed due to high demand. Please try again."):
        super().__init__(message)
