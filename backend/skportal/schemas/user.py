"""
Pydantic schemas for user-facing eligibility responses.
"""

from pydantic import BaseModel


class EligibilityResponse(BaseModel):
    event_id: int
    user_id: int
    eligible: bool
    reason: str
