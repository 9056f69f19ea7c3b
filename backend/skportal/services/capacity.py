"""
Participant bookkeeping for events.

CAPACITY MODEL
==============

`events.current_participants` caches the number of registrations whose status
is pending, confirmed or attended. It exists so capacity reads never scan the
registrations table.

`max_participants` is a soft gate. When it is reached, registration still
succeeds and the client frames the new registration as waitlist (unless
CAPACITY_HARD_LIMIT is set). The one hard rule is that the cached count never drifts from the real count, so it is only
changed by `adjust_participants`:

  UPDATE events
     SET current_participants = current_participants + :delta,
         version = version + 1
   WHERE id = :event_id AND version = :expected_version

Zero affected rows means another writer got there first (Conflict). The caller
rolls back its whole transaction and retries with fresh reads; there is no
fallback to a read-modify-write in Python.
"""

from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from skportal.core.config import get_settings
from skportal.core.logging import get_logger
from skportal.core.metrics import participant_count_conflicts
from skportal.models.event import Event
from skportal.models.registration import Registration, RegistrationStatus

logger = get_logger(__name__)

COUNTED_STATUSES = frozenset({
    RegistrationStatus.PENDING.value,
    RegistrationStatus.CONFIRMED.value,
    RegistrationStatus.ATTENDED.value,
})


def available_slots(event: Event) -> Optional[int]:
    """Open slots, or None when the event has no participant limit."""
    if event.max_participants is None:
        return None
    return max(0, event.max_participants - event.current_participants)


def has_open_slots(event: Event) -> bool:
    slots = available_slots(event)
    return slots is None or slots > 0


def can_accept_registration(event: Event) -> bool:
    """
    Whether capacity lets a new registration through.

    Under soft overflow (the default) this is always true: past the limit the
    registration is kept as waitlist. CAPACITY_HARD_LIMIT turns the limit into
    a hard stop.
    """
    return has_open_slots(event) or not get_settings().CAPACITY_HARD_LIMIT


def is_waitlisted(event: Event) -> bool:
    """True when a registration made now lands past the participant limit."""
    return not has_open_slots(event)


def capacity_summary(event: Event) -> dict:
    slots = available_slots(event)
    return {
        "event_id": event.id,
        "max_participants": event.max_participants,
        "current_participants": event.current_participants,
        "available_slots": slots,
        "can_accept_registration": can_accept_registration(event),
        "is_full": slots == 0,
    }


def is_counted(status: Optional[str]) -> bool:
    return status in COUNTED_STATUSES


def participant_delta(from_status: Optional[str], to_status: str) -> int:
    """Change in the counted set when a registration moves between statuses.

    ``from_status`` is None for a brand-new registration.
    """
    return int(is_counted(to_status)) - int(is_counted(from_status))


async def adjust_participants(db: AsyncSession, event: Event, delta: int) -> bool:
    """
    Compare-and-swap ``delta`` onto the event's participant count.

    ``event`` must have been read in the current transaction attempt. On
    success the in-memory instance is updated to the new count/version.
    Returns False on a version conflict.
    """
    if delta == 0:
        return True

    expected_version = event.version
    result = await db.execute(
        update(Event)
        .where(Event.id == event.id, Event.version == expected_version)
        .values(
            current_participants=Event.current_participants + delta,
            version=Event.version + 1,
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        participant_count_conflicts.inc()
        logger.info(
            "participant_count_conflict",
            event_id=event.id,
            expected_version=expected_version,
            delta=delta,
        )
        return False

    # Mirror the row without marking the instance dirty (no second UPDATE on flush)
    set_committed_value(event, "current_participants", event.current_participants + delta)
    set_committed_value(event, "version", expected_version + 1)
    return True


async def count_participants(db: AsyncSession, event_id: int) -> int:
    """Real size of the counted set, straight from the registrations table."""
    result = await db.execute(
        select(func.count())
        .select_from(Registration)
        .where(
            Registration.event_id == event_id,
            Registration.status.in_(sorted(COUNTED_STATUSES)),
        )
    )
    return result.scalar_one()


async def store_participant_count(db: AsyncSession, event: Event, count: int) -> bool:
    """CAS the participant count to an absolute value (reconciliation)."""
    return await adjust_participants(db, event, count - event.current_participants)
