"""
Registration status state machine and transition authority.

    pending ──► confirmed ──► attended
       │            │    └──► no_show
       └────────────┴───────► cancelled

cancelled, attended and no_show are terminal for a registration row. Renewed
intent after cancellation is a new registration, never a resurrection.

Authority is checked before the state machine: a principal without authority
gets Unauthorized even when the requested change would also be invalid.
"""

from datetime import datetime

from skportal.core.exceptions import InvalidTransitionError, UnauthorizedError
from skportal.models.registration import Registration, RegistrationStatus

PENDING = RegistrationStatus.PENDING.value
CONFIRMED = RegistrationStatus.CONFIRMED.value
CANCELLED = RegistrationStatus.CANCELLED.value
ATTENDED = RegistrationStatus.ATTENDED.value
NO_SHOW = RegistrationStatus.NO_SHOW.value

TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({CONFIRMED, CANCELLED}),
    CONFIRMED: frozenset({ATTENDED, NO_SHOW, CANCELLED}),
    CANCELLED: frozenset(),
    ATTENDED: frozenset(),
    NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Targets an admin/official may drive on anyone's registration
STAFF_TARGETS = frozenset({CONFIRMED, ATTENDED, NO_SHOW, CANCELLED})
# Targets a registrant may drive on their own registration
SELF_SERVICE_TARGETS = frozenset({CANCELLED})


def is_valid_transition(from_status: str, to_status: str) -> bool:
    return to_status in TRANSITIONS.get(from_status, frozenset())


def can_transition(acting_user, registration: Registration, to_status: str) -> bool:
    """Capability check: may ``acting_user`` move ``registration`` to ``to_status``?"""
    if acting_user is None or not acting_user.is_active:
        return False
    if acting_user.is_privileged:
        return to_status in STAFF_TARGETS
    return acting_user.id == registration.user_id and to_status in SELF_SERVICE_TARGETS


def ensure_transition(acting_user, registration: Registration, to_status: str) -> None:
    """Raise UnauthorizedError or InvalidTransitionError, in that order of precedence."""
    if not can_transition(acting_user, registration, to_status):
        if acting_user is not None and acting_user.is_active and acting_user.is_privileged:
            # Authority exists for staff, the target is simply not a driveable state
            raise InvalidTransitionError(
                f"Registration cannot be moved from '{registration.status}' to '{to_status}'"
            )
        raise UnauthorizedError(
            f"You are not allowed to change this registration to '{to_status}'"
        )

    if not is_valid_transition(registration.status, to_status):
        raise InvalidTransitionError(
            f"Registration cannot be moved from '{registration.status}' to '{to_status}'"
        )


def transition_values(to_status: str, at: datetime) -> dict:
    """Column values written when a registration enters ``to_status`` at ``at``.

    Entering attended marks attendance at the transition instant; every other
    target clears it.
    """
    attended = to_status == ATTENDED
    return {
        "status": to_status,
        "status_updated_at": at,
        "attendance_marked": attended,
        "attendance_time": at if attended else None,
    }


def ensure_staff(acting_user) -> None:
    """Administrative operations (participant lists, reconciliation, event edits)."""
    if acting_user is None or not acting_user.is_active or not acting_user.is_privileged:
        raise UnauthorizedError("Only administrators and SK officials may do this")
