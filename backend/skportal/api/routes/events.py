"""
Event endpoints: creation, listing, detail, administrative updates,
capacity and eligibility.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from skportal.db.session import get_db
from skportal.models.user import User
from skportal.schemas.event import (
    CapacityResponse,
    EventCreate,
    EventListResponse,
    EventResponse,
    EventStatusLiteral,
    EventUpdate,
)
from skportal.schemas.user import EligibilityResponse
from skportal.services import event_service
from skportal.services.registration_service import check_eligibility
from skportal.core.security import get_current_user

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create an event. Staff only."""
    return await event_service.create_event(db, event_data, current_user)


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    upcoming_only: bool = Query(True),
    barangay: Optional[str] = Query(None, max_length=100),
    status_filter: Optional[EventStatusLiteral] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    """List events soonest first, optionally for one barangay or status."""
    events, total = await event_service.list_events(db, upcoming_only, barangay, status_filter)
    return EventListResponse(
        events=[EventResponse.model_validate(e) for e in events],
        total=total,
    )


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single event by ID. Not cached (needs real-time participant counts)."""
    return await event_service.get_event(db, event_id)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: int,
    changes: EventUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update registration settings and details of an event. Staff only."""
    return await event_service.update_event(db, event_id, changes, current_user)


@router.get("/{event_id}/capacity", response_model=CapacityResponse)
async def get_capacity_endpoint(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Participant count and open slots.
    A full event still accepts registrations; they are framed as waitlist.
    """
    summary, cached = await event_service.get_capacity(db, event_id)
    return CapacityResponse(**summary, cached=cached)


@router.get("/{event_id}/eligibility", response_model=EligibilityResponse)
async def check_eligibility_endpoint(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Pre-flight check whether the current user may register for this event."""
    event = await event_service.get_event(db, event_id)
    verdict = check_eligibility(current_user, event)
    return EligibilityResponse(
        event_id=event.id,
        user_id=current_user.id,
        eligible=verdict.eligible,
        reason=verdict.reason,
    )
