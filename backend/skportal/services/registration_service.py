"""
Registration service: eligibility, capacity and lifecycle against the database.

CONCURRENCY STRATEGY: per-event lock + database guards + bounded retry
=======================================================================

Problem:
  The same user double-submits (network retry), or many users register for
  one event at once. Naively both requests pass "no active registration yet",
  both insert, and current_participants is read-modify-written twice from the
  same starting value.

Solution, for register():
  1. Load user and event (NotFound) outside any lock.
  2. Take the per-event lock (Redis when available, else in-process).
  3. In one transaction: re-read the event, reject duplicates, evaluate
     eligibility, check the registration window, insert the pending row and
     compare-and-swap current_participants + 1 on the event's version.
  4. Commit, release the lock.

  The lock keeps concurrent attempts for one event from interleaving. The
  database still has the final word:
  - a partial unique index allows one non-cancelled row per (user, event);
    a violation is reported as AlreadyRegistered,
  - the version guard turns a lost update into a Conflict; we roll back the
    whole attempt and retry with fresh reads, at most
    REGISTRATION_MAX_RETRIES times, then raise TransientFailure.

update_status() does not take the lock: transitions on different
registrations of the same event may run side by side. Each one writes the
status guarded by the status it read and applies its counted-set delta through
the same CAS in the same transaction, so a concurrent writer shows up as a
Conflict and a retry, never as a double count.

Capacity does not reject a registration: past max_participants the
registration is kept as waitlist (see services.capacity), unless the
deployment sets CAPACITY_HARD_LIMIT.
"""

import time
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager
from sqlalchemy.orm.attributes import set_committed_value

from skportal.core.config import get_settings
from skportal.core.exceptions import (
    AlreadyRegisteredError,
    IneligibleError,
    NotFoundError,
    RegistrationClosedError,
    RegistrationError,
    TransientFailureError,
    UnauthorizedError,
)
from skportal.core.logging import get_logger
from skportal.core.metrics import (
    participant_count_drift,
    record_registration_attempt,
    record_status_transition,
    registration_latency,
)
from skportal.core.timeutils import ensure_utc, utcnow
from skportal.infrastructure.event_lock import event_lock
from skportal.models.event import Event
from skportal.models.registration import Registration, RegistrationStatus
from skportal.models.user import User
from skportal.schemas.registration import RegistrationDetails
from skportal.services import capacity, event_service, user_service
from skportal.services.cache_service import invalidate_event_capacity
from skportal.services.eligibility import EligibilityResult, evaluate
from skportal.services.lifecycle import ensure_staff, ensure_transition, transition_values

logger = get_logger(__name__)

ALL_STATUSES = tuple(status.value for status in RegistrationStatus)


def check_eligibility(user: User, event: Event) -> EligibilityResult:
    """Pre-flight eligibility check; same verdict register() would reach."""
    return evaluate(user, event)


def ensure_registration_open(event: Event, now: datetime) -> None:
    if not event.is_registration_open:
        raise RegistrationClosedError("Registration for this event is closed")

    deadline = ensure_utc(event.registration_deadline)
    if deadline is not None and now >= deadline:
        raise RegistrationClosedError("The registration deadline for this event has passed")


async def find_active_registration(
    db: AsyncSession,
    user_id: int,
    event_id: int,
) -> Optional[Registration]:
    """The user's non-cancelled registration for the event, if any."""
    result = await db.execute(
        select(Registration)
        .where(
            Registration.user_id == user_id,
            Registration.event_id == event_id,
            Registration.status != RegistrationStatus.CANCELLED.value,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def _load_registration(db: AsyncSession, registration_id: int) -> Registration:
    result = await db.execute(
        select(Registration)
        .where(Registration.id == registration_id)
        .execution_options(populate_existing=True)
    )
    registration = result.scalar_one_or_none()
    if not registration:
        raise NotFoundError(f"Registration {registration_id} not found")
    return registration


async def register(
    db: AsyncSession,
    user_id: int,
    event_id: int,
    details: RegistrationDetails,
) -> Registration:
    """
    Register a user for an event.

    Raises NotFoundError, AlreadyRegisteredError, IneligibleError,
    RegistrationClosedError or TransientFailureError. Either the pending
    registration and its participant increment are both committed, or neither.
    """
    start = time.perf_counter()
    try:
        registration = await _register(db, user_id, event_id, details)
    except RegistrationError as e:
        record_registration_attempt(e.code)
        logger.info(
            "registration_rejected",
            user_id=user_id,
            event_id=event_id,
            error=e.code,
            detail=e.message,
        )
        raise
    finally:
        registration_latency.observe(time.perf_counter() - start)

    record_registration_attempt("created")
    return registration


async def _register(
    db: AsyncSession,
    user_id: int,
    event_id: int,
    details: RegistrationDetails,
) -> Registration:
    settings = get_settings()
    max_attempts = settings.REGISTRATION_MAX_RETRIES

    # Step 1: both must exist before we queue on the event lock
    await user_service.get_active_user(db, user_id)
    await event_service.get_active_event(db, event_id)
    # Don't sit on an open transaction while waiting for the lock
    await db.commit()

    contact = details.emergency_contact

    async with event_lock(event_id):
        for attempt in range(1, max_attempts + 1):
            try:
                # Fresh reads every attempt: a rollback expires what we held
                user = await user_service.get_active_user(db, user_id)
                event = await event_service.get_active_event(db, event_id)

                # Step 2: one active registration per (user, event)
                if await find_active_registration(db, user_id, event_id):
                    raise AlreadyRegisteredError()

                # Step 3: locality eligibility
                verdict = evaluate(user, event)
                if not verdict.eligible:
                    raise IneligibleError(verdict.reason)

                # Step 4: registration window; capacity only gates under a hard limit
                now = utcnow()
                ensure_registration_open(event, now)
                if not capacity.can_accept_registration(event):
                    raise RegistrationClosedError("This event is full")
                waitlisted = capacity.is_waitlisted(event)

                # Step 5: insert + increment in one transaction
                registration = Registration(
                    user_id=user_id,
                    event_id=event_id,
                    status=RegistrationStatus.PENDING.value,
                    registration_date=now,
                    emergency_contact_name=contact.name,
                    emergency_contact_phone=contact.phone,
                    emergency_contact_relationship=contact.relationship,
                    special_requirements=details.special_requirements,
                    notes=details.notes,
                    attendance_marked=False,
                )
                db.add(registration)
                await db.flush()

                delta = capacity.participant_delta(None, registration.status)
                if not await capacity.adjust_participants(db, event, delta):
                    await db.rollback()
                    logger.info("registration_retry", event_id=event_id, user_id=user_id,
                                attempt=attempt, reason="version_conflict")
                    continue

                await db.commit()

            except IntegrityError:
                # Partial unique index: another active registration got in first
                await db.rollback()
                raise AlreadyRegisteredError()
            except OperationalError as e:
                await db.rollback()
                logger.warning("registration_retry", event_id=event_id, user_id=user_id,
                               attempt=attempt, reason="store_unavailable", error=str(e))
                if attempt == max_attempts:
                    raise TransientFailureError() from e
                continue
            except RegistrationError:
                await db.rollback()
                raise

            registration.waitlisted = waitlisted
            logger.info(
                "registration_created",
                registration_id=registration.id,
                user_id=user_id,
                event_id=event_id,
                current_participants=event.current_participants,
                max_participants=event.max_participants,
                waitlisted=waitlisted,
                attempt=attempt,
            )
            break
        else:
            logger.warning("registration_conflict_exhausted", event_id=event_id, user_id=user_id,
                           attempts=max_attempts)
            raise TransientFailureError()

    await invalidate_event_capacity(event_id)
    return registration


async def update_status(
    db: AsyncSession,
    registration_id: int,
    new_status: str,
    acting_user: User,
) -> Registration:
    """
    Drive a registration through its lifecycle on behalf of ``acting_user``.

    Raises NotFoundError, UnauthorizedError, InvalidTransitionError or
    TransientFailureError. The status write and the participant-count delta
    commit together.
    """
    settings = get_settings()
    max_attempts = settings.REGISTRATION_MAX_RETRIES
    # Captured up front: the instance may belong to a session we roll back
    actor_id = acting_user.id

    for attempt in range(1, max_attempts + 1):
        try:
            registration = await _load_registration(db, registration_id)
            actor = await user_service.find_user(db, actor_id)
            ensure_transition(actor, registration, new_status)

            event = await event_service.get_event(db, registration.event_id)
            previous = registration.status
            values = transition_values(new_status, utcnow())

            result = await db.execute(
                update(Registration)
                .where(Registration.id == registration_id, Registration.status == previous)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await db.rollback()
                logger.info("status_update_retry", registration_id=registration_id,
                            attempt=attempt, reason="status_changed")
                continue

            delta = capacity.participant_delta(previous, new_status)
            if not await capacity.adjust_participants(db, event, delta):
                await db.rollback()
                logger.info("status_update_retry", registration_id=registration_id,
                            attempt=attempt, reason="version_conflict")
                continue

            await db.commit()

        except OperationalError as e:
            await db.rollback()
            logger.warning("status_update_retry", registration_id=registration_id,
                           attempt=attempt, reason="store_unavailable", error=str(e))
            if attempt == max_attempts:
                raise TransientFailureError() from e
            continue
        except RegistrationError as e:
            await db.rollback()
            logger.info("status_update_rejected", registration_id=registration_id,
                        to_status=new_status, acting_user_id=actor_id, error=e.code)
            raise

        for key, value in values.items():
            set_committed_value(registration, key, value)

        record_status_transition(previous, new_status)
        logger.info(
            "registration_status_changed",
            registration_id=registration_id,
            event_id=registration.event_id,
            from_status=previous,
            to_status=new_status,
            participant_delta=delta,
            current_participants=event.current_participants,
            acting_user_id=actor_id,
        )
        await invalidate_event_capacity(registration.event_id)
        return registration

    logger.warning("status_update_conflict_exhausted", registration_id=registration_id,
                   attempts=max_attempts)
    raise TransientFailureError("Status update failed due to concurrent changes. Please try again.")


async def get_registration(db: AsyncSession, registration_id: int, acting_user: User) -> Registration:
    """A registration, visible to its owner and to staff."""
    registration = await _load_registration(db, registration_id)
    if registration.user_id != acting_user.id and not acting_user.is_privileged:
        raise UnauthorizedError("You are not allowed to view this registration")
    return registration


async def list_user_registrations(db: AsyncSession, user_id: int) -> list[Registration]:
    """All registrations of a user, newest first (cancelled history included)."""
    result = await db.execute(
        select(Registration)
        .where(Registration.user_id == user_id)
        .order_by(Registration.registration_date.desc(), Registration.id.desc())
    )
    return list(result.scalars().all())


async def list_event_registrations(
    db: AsyncSession,
    event_id: int,
    acting_user: User,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> tuple[list[Registration], dict[str, int]]:
    """
    Participant list for an event with each registrant's name and email,
    optionally filtered by status and by a name/email search, plus the
    per-status counts over all of the event's registrations. Staff only.
    """
    ensure_staff(acting_user)
    await event_service.get_event(db, event_id)

    query = (
        select(Registration)
        .join(Registration.user)
        .options(contains_eager(Registration.user))
        .where(Registration.event_id == event_id)
    )
    if status:
        query = query.where(Registration.status == status)
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        query = query.where(or_(
            func.lower(User.first_name).like(pattern),
            func.lower(User.last_name).like(pattern),
            func.lower(User.email).like(pattern),
        ))
    result = await db.execute(
        query.order_by(Registration.registration_date.asc(), Registration.id.asc())
        .execution_options(populate_existing=True)
    )
    registrations = list(result.scalars().all())

    counts_result = await db.execute(
        select(Registration.status, func.count())
        .where(Registration.event_id == event_id)
        .group_by(Registration.status)
    )
    status_counts = dict.fromkeys(ALL_STATUSES, 0)
    status_counts.update({row_status: count for row_status, count in counts_result.all()})

    return registrations, status_counts


async def reconcile_participants(db: AsyncSession, event_id: int, acting_user: User) -> tuple[int, int]:
    """
    Recompute current_participants from the registrations table. Staff only.

    Runs under the event lock so no registration is mid-flight, and stores the
    count through the same CAS as every other change. Returns
    (previous_count, current_count).
    """
    ensure_staff(acting_user)
    max_attempts = get_settings().REGISTRATION_MAX_RETRIES

    async with event_lock(event_id):
        for attempt in range(1, max_attempts + 1):
            event = await event_service.get_event(db, event_id)
            previous = event.current_participants
            actual = await capacity.count_participants(db, event_id)

            if not await capacity.store_participant_count(db, event, actual):
                await db.rollback()
                continue

            await db.commit()
            break
        else:
            raise TransientFailureError()

    if actual != previous:
        participant_count_drift.inc()
        logger.warning("participant_count_reconciled", event_id=event_id,
                       previous_count=previous, current_participants=actual)
    else:
        logger.info("participant_count_verified", event_id=event_id, current_participants=actual)

    await invalidate_event_capacity(event_id)
    return previous, actual
