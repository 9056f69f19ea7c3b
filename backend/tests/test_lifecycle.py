"""
Tests for the registration state machine and transition authority.
"""

from datetime import datetime, timezone

import pytest

from skportal.core.exceptions import InvalidTransitionError, UnauthorizedError
from skportal.models import User, Registration
from skportal.services.lifecycle import (
    TERMINAL_STATUSES,
    can_transition,
    ensure_staff,
    ensure_transition,
    is_valid_transition,
    transition_values,
)


def make_user(user_id=1, role="youth", is_active=True):
    return User(id=user_id, role=role, is_active=is_active)


def make_registration(status="pending", user_id=1):
    return Registration(id=10, event_id=5, user_id=user_id, status=status)


@pytest.mark.parametrize("from_status,to_status", [
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "attended"),
    ("confirmed", "no_show"),
    ("confirmed", "cancelled"),
])
def test_allowed_transitions(from_status, to_status):
    assert is_valid_transition(from_status, to_status)


@pytest.mark.parametrize("from_status,to_status", [
    ("pending", "attended"),
    ("pending", "no_show"),
    ("pending", "pending"),
    ("confirmed", "pending"),
    ("cancelled", "pending"),
    ("cancelled", "confirmed"),
    ("attended", "confirmed"),
    ("attended", "cancelled"),
    ("no_show", "attended"),
])
def test_disallowed_transitions(from_status, to_status):
    assert not is_valid_transition(from_status, to_status)


def test_terminal_statuses():
    assert TERMINAL_STATUSES == {"cancelled", "attended", "no_show"}


@pytest.mark.parametrize("role", ["admin", "sk_official"])
def test_staff_may_drive_any_registration(role):
    staff = make_user(user_id=99, role=role)
    registration = make_registration(status="confirmed", user_id=1)
    for target in ("confirmed", "attended", "no_show", "cancelled"):
        assert can_transition(staff, registration, target)


def test_owner_may_only_cancel():
    owner = make_user(user_id=1)
    registration = make_registration(user_id=1)
    assert can_transition(owner, registration, "cancelled")
    assert not can_transition(owner, registration, "confirmed")
    assert not can_transition(owner, registration, "attended")


def test_youth_cannot_cancel_someone_elses_registration():
    stranger = make_user(user_id=2)
    registration = make_registration(user_id=1)
    assert not can_transition(stranger, registration, "cancelled")


def test_inactive_staff_has_no_authority():
    staff = make_user(user_id=99, role="admin", is_active=False)
    assert not can_transition(staff, make_registration(), "confirmed")


def test_unauthorized_takes_precedence_over_invalid_state():
    owner = make_user(user_id=1)
    cancelled = make_registration(status="cancelled", user_id=1)
    # Confirming is outside the owner's authority, even though it is also invalid
    with pytest.raises(UnauthorizedError):
        ensure_transition(owner, cancelled, "confirmed")


def test_self_cancel_of_cancelled_registration_is_invalid_transition():
    owner = make_user(user_id=1)
    with pytest.raises(InvalidTransitionError):
        ensure_transition(owner, make_registration(status="cancelled", user_id=1), "cancelled")


def test_staff_confirming_cancelled_registration_is_invalid_transition():
    admin = make_user(user_id=99, role="admin")
    with pytest.raises(InvalidTransitionError):
        ensure_transition(admin, make_registration(status="cancelled"), "confirmed")


def test_staff_cannot_move_back_to_pending():
    admin = make_user(user_id=99, role="admin")
    with pytest.raises(InvalidTransitionError):
        ensure_transition(admin, make_registration(status="confirmed"), "pending")


def test_missing_actor_is_unauthorized():
    with pytest.raises(UnauthorizedError):
        ensure_transition(None, make_registration(), "cancelled")


def test_attended_marks_attendance_at_transition_instant():
    at = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
    values = transition_values("attended", at)
    assert values == {
        "status": "attended",
        "status_updated_at": at,
        "attendance_marked": True,
        "attendance_time": at,
    }


@pytest.mark.parametrize("target", ["confirmed", "no_show", "cancelled"])
def test_other_targets_clear_attendance(target):
    at = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
    values = transition_values(target, at)
    assert values["attendance_marked"] is False
    assert values["attendance_time"] is None


def test_ensure_staff():
    ensure_staff(make_user(role="sk_official"))
    with pytest.raises(UnauthorizedError):
        ensure_staff(make_user(role="youth"))
    with pytest.raises(UnauthorizedError):
        ensure_staff(None)
