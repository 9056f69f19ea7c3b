"""
Registration endpoints with concurrency-safe participant bookkeeping.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from skportal.db.session import get_db
from skportal.models.user import User
from skportal.schemas.registration import (
    EventRegistrationResponse,
    EventRegistrationsResponse,
    ReconcileResponse,
    RegistrationCreate,
    RegistrationCreatedResponse,
    RegistrationDetails,
    RegistrationResponse,
    RegistrationStatusLiteral,
    StatusUpdate,
)
from skportal.services import registration_service
from skportal.core.security import get_current_user, get_current_user_id

router = APIRouter(prefix="/registrations", tags=["Registrations"])


@router.post("/", response_model=RegistrationCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_registration(
    registration_data: RegistrationCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Register the current user for an event.

    409 AlreadyRegistered / RegistrationClosed, 403 Ineligible (with reason),
    404 NotFound. A full event still registers, with `waitlisted: true`.
    """
    details = registration_data.model_dump(exclude={"event_id"})
    return await registration_service.register(
        db,
        user_id,
        registration_data.event_id,
        RegistrationDetails(**details),
    )


@router.get("/", response_model=list[RegistrationResponse])
async def list_my_registrations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get all registrations of the authenticated user."""
    return await registration_service.list_user_registrations(db, current_user.id)


@router.get("/event/{event_id}", response_model=EventRegistrationsResponse)
async def list_event_registrations(
    event_id: int,
    status_filter: Optional[RegistrationStatusLiteral] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Participant list with registrant names and per-status counts. Staff only."""
    registrations, status_counts = await registration_service.list_event_registrations(
        db, event_id, current_user, status_filter, search
    )
    return EventRegistrationsResponse(
        event_id=event_id,
        registrations=[EventRegistrationResponse.model_validate(r) for r in registrations],
        total=len(registrations),
        status_counts=status_counts,
    )


@router.post("/event/{event_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_event_participants(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Recount the event's participants from its registrations. Staff only."""
    previous, current = await registration_service.reconcile_participants(db, event_id, current_user)
    return ReconcileResponse(
        event_id=event_id,
        previous_count=previous,
        current_participants=current,
        drift=current - previous,
    )


@router.get("/{registration_id}", response_model=RegistrationResponse)
async def get_registration(
    registration_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await registration_service.get_registration(db, registration_id, current_user)


@router.put("/{registration_id}/status", response_model=RegistrationResponse)
async def update_registration_status(
    registration_id: int,
    status_update: StatusUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Move a registration to a new status.

    Staff may confirm, mark attended/no-show or cancel; a registrant may only
    cancel their own registration. 403 Unauthorized, 409 InvalidTransition.
    """
    return await registration_service.update_status(
        db, registration_id, status_update.status, current_user
    )
