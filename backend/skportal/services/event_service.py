"""
Event creation, listing, reads and administrative updates.
"""

from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from skportal.core.exceptions import NotFoundError
from skportal.core.logging import get_logger
from skportal.core.timeutils import utcnow
from skportal.models.event import Event
from skportal.schemas.event import EventCreate, EventUpdate
from skportal.services import capacity
from skportal.services.cache_service import get_cached_capacity, set_cached_capacity, invalidate_event_capacity
from skportal.services.lifecycle import ensure_staff

logger = get_logger(__name__)

# Columns that may not be cleared through a partial update
NON_NULLABLE_FIELDS = frozenset({"title", "is_registration_open", "status"})


async def create_event(db: AsyncSession, event_data: EventCreate, acting_user) -> Event:
    """Create an event with an empty participant count. Staff only."""
    ensure_staff(acting_user)

    event = Event(
        **event_data.model_dump(),
        current_participants=0,
        version=1,
        organizer_id=acting_user.id,
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)

    logger.info(
        "event_created",
        event_id=event.id,
        title=event.title,
        barangay=event.barangay,
        max_participants=event.max_participants,
        created_by=acting_user.id,
    )
    return event


async def list_events(
    db: AsyncSession,
    upcoming_only: bool = True,
    barangay: Optional[str] = None,
    status: Optional[str] = None,
) -> tuple[list[Event], int]:
    """
    List events, soonest first.
    Uses the ix_events_event_date index for date filtering and ix_events_barangay
    for the locality filter.
    """
    query = select(Event)

    if upcoming_only:
        query = query.where(Event.event_date >= utcnow())
    if barangay:
        query = query.where(func.lower(Event.barangay) == barangay.strip().lower())
    if status:
        query = query.where(Event.status == status)

    result = await db.execute(
        query.order_by(Event.event_date.asc(), Event.id.asc())
        .execution_options(populate_existing=True)
    )
    events = list(result.scalars().all())
    return events, len(events)


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """
    Get a single event by ID.
    Always re-reads the row: participant counts change under other sessions.
    """
    result = await db.execute(
        select(Event)
        .where(Event.id == event_id)
        .execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()

    if not event:
        raise NotFoundError(f"Event {event_id} not found")
    return event


async def get_active_event(db: AsyncSession, event_id: int) -> Event:
    """Event that still takes part in registration (not completed/cancelled)."""
    event = await get_event(db, event_id)
    if not event.is_active:
        raise NotFoundError(f"Event {event_id} not found or no longer active")
    return event


async def update_event(db: AsyncSession, event_id: int, changes: EventUpdate, acting_user) -> Event:
    """Apply an allow-listed partial update. Staff only."""
    ensure_staff(acting_user)
    event = await get_event(db, event_id)

    applied = {}
    for field, value in changes.model_dump(exclude_unset=True).items():
        if value is None and field in NON_NULLABLE_FIELDS:
            continue
        setattr(event, field, value)
        applied[field] = value

    await db.commit()
    await invalidate_event_capacity(event_id)

    logger.info("event_updated", event_id=event_id, fields=sorted(applied), updated_by=acting_user.id)
    return event


async def get_capacity(db: AsyncSession, event_id: int) -> tuple[dict, bool]:
    """Capacity summary for an event; second element tells whether it came from cache."""
    cached = await get_cached_capacity(event_id)
    if cached:
        return cached, True

    event = await get_event(db, event_id)
    summary = capacity.capacity_summary(event)
    await set_cached_capacity(event_id, summary)
    return summary, False
