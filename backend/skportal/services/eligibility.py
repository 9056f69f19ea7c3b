"""
Locality eligibility for event registration.

Rules, in order:
  1. Admins and SK officials are always eligible (monitoring/testing registrations).
  2. The user's barangay must be present.
  3. Barangays must match after trimming and case-folding.
  4. Municipalities must match, but only when both sides have one.

Province is never compared. Barangay is the authoritative unit and
municipality is a secondary check; keep this asymmetry unless product
decides otherwise.
"""

from dataclasses import dataclass
from typing import Optional

from skportal.models.user import PRIVILEGED_ROLES


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reason: str = ""


ELIGIBLE = EligibilityResult(eligible=True)

MISSING_BARANGAY_REASON = (
    "Your profile is missing barangay information (missing barangay — profile incomplete). "
    "Please update your profile first."
)


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().casefold()


def evaluate(user, event) -> EligibilityResult:
    """Decide whether ``user`` may register for ``event``. Pure; reads attributes only."""
    if user.role in PRIVILEGED_ROLES:
        return ELIGIBLE

    user_barangay = _normalize(user.barangay)
    if not user_barangay:
        return EligibilityResult(False, MISSING_BARANGAY_REASON)

    if user_barangay != _normalize(event.barangay):
        return EligibilityResult(
            False,
            f"This event is only for residents of {event.barangay}. "
            f"Your registered barangay is {user.barangay}.",
        )

    user_municipality = _normalize(user.municipality)
    event_municipality = _normalize(event.municipality)
    if user_municipality and event_municipality and user_municipality != event_municipality:
        return EligibilityResult(
            False,
            f"This event is only for residents of {event.municipality}. "
            f"Your registered municipality is {user.municipality}.",
        )

    return ELIGIBLE
