"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own file-backed SQLite database (or TEST_DATABASE_URL) and
every HTTP request gets its own session, so requests fired together with
asyncio.gather really run concurrently against the database.
"""

import os

# Must be set before skportal reads its settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./sk_portal_test.db")

import itertools
from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from skportal.main import app
from skportal.db.base import Base
from skportal.db.session import build_engine, get_db
from skportal.core.security import create_access_token
from skportal.models import User, Event, Registration
from skportal.schemas.registration import EmergencyContact, RegistrationDetails

_user_seq = itertools.count(1)


def _test_database_url(tmp_path) -> str:
    return os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'sk_portal_test.db'}"


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables, yield a session factory, then drop tables for isolation."""
    url = _test_database_url(tmp_path)
    if url.startswith("sqlite"):
        engine = build_engine(url, poolclass=NullPool, connect_args={"timeout": 30})
    else:
        engine = build_engine(url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get a fresh session from the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_user(session: AsyncSession, **overrides) -> User:
    fields = {
        "email": f"user{next(_user_seq)}@example.com",
        "first_name": "Juan",
        "last_name": "Dela Cruz",
        "role": "youth",
        "barangay": "Poblacion",
        "municipality": "Bacolor",
        "province": "Pampanga",
        "is_active": True,
    }
    fields.update(overrides)
    user = User(**fields)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def create_event(session: AsyncSession, **overrides) -> Event:
    fields = {
        "title": "Barangay Clean-up Drive",
        "description": "Community clean-up for the youth",
        "event_date": datetime.now(timezone.utc) + timedelta(days=14),
        "location": "Poblacion Covered Court",
        "barangay": "Poblacion",
        "municipality": "Bacolor",
        "province": "Pampanga",
        "max_participants": 50,
        "current_participants": 0,
        "registration_deadline": datetime.now(timezone.utc) + timedelta(days=7),
        "is_registration_open": True,
        "status": "upcoming",
        "version": 1,
    }
    fields.update(overrides)
    event = Event(**fields)
    session.add(event)
    await session.commit()
    await session.refresh(event)
    return event


EMERGENCY_CONTACT = {"name": "Rosa Dela Cruz", "phone": "09171234567", "relationship": "Mother"}


def registration_payload(event_id: int, **overrides) -> dict:
    """Body for POST /registrations with the required emergency contact."""
    payload = {"event_id": event_id, "emergency_contact": dict(EMERGENCY_CONTACT)}
    payload.update(overrides)
    return payload


def registration_details(**overrides) -> RegistrationDetails:
    fields = {"emergency_contact": EmergencyContact(**EMERGENCY_CONTACT)}
    fields.update(overrides)
    return RegistrationDetails(**fields)


def auth_headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def youth(db_session: AsyncSession) -> User:
    """A youth resident of Poblacion, Bacolor."""
    return await create_user(db_session, email="youth@example.com")


@pytest_asyncio.fixture
async def other_youth(db_session: AsyncSession) -> User:
    return await create_user(db_session, email="maria@example.com", first_name="Maria")


@pytest_asyncio.fixture
async def official(db_session: AsyncSession) -> User:
    """SK official registered in a different barangay."""
    return await create_user(
        db_session, email="official@example.com", role="sk_official", barangay="San Jose"
    )


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await create_user(db_session, email="admin@example.com", role="admin", barangay=None)


@pytest_asyncio.fixture
async def event(db_session: AsyncSession, official: User) -> Event:
    """Poblacion event with 50 slots."""
    return await create_event(db_session, organizer_id=official.id)


@pytest_asyncio.fixture
async def youth_headers(youth: User) -> dict:
    return auth_headers_for(youth)


@pytest_asyncio.fixture
async def official_headers(official: User) -> dict:
    return auth_headers_for(official)


async def reload_event(session_factory, event_id: int) -> Event:
    async with session_factory() as session:
        return await session.get(Event, event_id)


async def registrations_for(session_factory, event_id: int) -> list[Registration]:
    async with session_factory() as session:
        result = await session.execute(select(Registration).where(Registration.event_id == event_id))
        return list(result.scalars().all())
