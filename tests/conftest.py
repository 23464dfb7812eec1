import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

# Settings are read at import time, so the environment must be set first
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-payment-webhook-secret")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from mediconnect.core.redis_client import get_redis_client
from mediconnect.core.security import get_password_hash
from mediconnect.core.tasks import get_email_dispatcher
from mediconnect.core.video import PlaceholderMeetingProvider, get_video_provider
from mediconnect.database import engine as app_engine
from mediconnect.database import get_db, to_async_url
from mediconnect.main import app
from mediconnect.models import metadata
from mediconnect.models.doctors import availabilities, doctors
from mediconnect.models.users import users
from mediconnect.services.session_service import SessionService

TEST_DATABASE_URL = to_async_url(os.environ.get("TEST_DATABASE_URL", "sqlite:///./test.db"))

# NullPool keeps connections from leaking across per-test event loops
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

TEST_PASSWORD = "secret123"


class RecordingEmailDispatcher:
    """Stands in for the arq-backed dispatcher and records what would be queued."""

    def __init__(self):
        self.sent: list[dict] = []

    async def send(self, to: str, subject: str, text: str, html: str | None = None) -> bool:
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})
        return True

    def to(self, address: str) -> list[dict]:
        return [mail for mail in self.sent if mail["to"] == address]


def next_weekday(day_of_week: int) -> date:
    """Next date (after today) falling on ``day_of_week``, 0 = Sunday."""
    day = date.today() + timedelta(days=1)
    while day.isoweekday() % 7 != day_of_week:
        day += timedelta(days=1)
    return day


MONDAY = 1


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a fresh schema."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def email_outbox() -> RecordingEmailDispatcher:
    return RecordingEmailDispatcher()


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis stand-in that always misses."""
    redis_client = MagicMock()
    redis_client.get.return_value = None
    return redis_client


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    email_outbox: RecordingEmailDispatcher,
    mock_redis: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        try:
            yield db_session
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: mock_redis
    app.dependency_overrides[get_email_dispatcher] = lambda: email_outbox
    app.dependency_overrides[get_video_provider] = lambda: PlaceholderMeetingProvider("zoom")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    await app_engine.dispose()


UserFactory = Callable[..., Awaitable[dict]]


@pytest.fixture
def make_user(db_session: AsyncSession) -> UserFactory:
    """Insert a user, start a session for them and return the row plus auth headers."""

    async def _make_user(
        role: str = "patient",
        email: str | None = None,
        full_name: str | None = None,
        password: str = TEST_PASSWORD,
    ) -> dict:
        user_id = uuid4()
        values = {
            "id": user_id,
            "email": email or f"{role}-{user_id.hex[:8]}@example.com",
            "password_hash": get_password_hash(password),
            "full_name": full_name or f"Test {role.capitalize()}",
            "role": role,
        }
        await db_session.execute(insert(users).values(**values))
        token = await SessionService.issue_session(db_session, user_id)
        await db_session.commit()

        return {
            **values,
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _make_user


@pytest_asyncio.fixture
async def patient(make_user: UserFactory) -> dict:
    return await make_user("patient", email="alice@example.com", full_name="Alice Patient")


@pytest_asyncio.fixture
async def other_patient(make_user: UserFactory) -> dict:
    return await make_user("patient", email="bob@example.com", full_name="Bob Patient")


@pytest_asyncio.fixture
async def admin(make_user: UserFactory) -> dict:
    return await make_user("admin", email="admin@example.com", full_name="Site Admin")


DoctorFactory = Callable[..., Awaitable[dict]]


@pytest.fixture
def make_doctor(db_session: AsyncSession, make_user: UserFactory) -> DoctorFactory:
    """Create a doctor account with a profile; ``doctor_id`` is the profile id."""

    async def _make_doctor(
        full_name: str = "Gregory House",
        verification_status: str = "verified",
        consultation_fee: str = "500.00",
        emergency_fee: str = "1000.00",
    ) -> dict:
        user = await make_user("doctor", full_name=full_name)
        doctor_id = uuid4()
        await db_session.execute(
            insert(doctors).values(
                id=doctor_id,
                user_id=user["id"],
                specialization="Cardiology",
                experience_years=12,
                consultation_fee=Decimal(consultation_fee),
                emergency_fee=Decimal(emergency_fee),
                is_verified=verification_status == "verified",
                verification_status=verification_status,
                rejection_history=[],
            )
        )
        await db_session.commit()
        return {**user, "doctor_id": doctor_id}

    return _make_doctor


@pytest_asyncio.fixture
async def doctor(make_doctor: DoctorFactory) -> dict:
    return await make_doctor()


@pytest_asyncio.fixture
async def monday_window(db_session: AsyncSession, doctor: dict) -> dict:
    """Doctor is open Monday 09:00-17:00."""
    await db_session.execute(
        insert(availabilities).values(
            doctor_id=doctor["doctor_id"],
            day_of_week=MONDAY,
            start_time="09:00",
            end_time="17:00",
            is_available=True,
        )
    )
    await db_session.commit()
    return {"day_of_week": MONDAY, "start_time": "09:00", "end_time": "17:00"}


@pytest.fixture
def monday() -> date:
    return next_weekday(MONDAY)


BookFn = Callable[..., Awaitable]


@pytest.fixture
def book(client: AsyncClient, doctor: dict, monday: date) -> BookFn:
    """POST a booking for ``user`` with the default doctor on the coming Monday."""

    async def _book(user: dict, appointment_time: str, **extra):
        payload = {
            "doctor_id": str(doctor["doctor_id"]),
            "appointment_date": monday.isoformat(),
            "appointment_time": appointment_time,
            **extra,
        }
        return await client.post("/api/v1/appointments/", json=payload, headers=user["headers"])

    return _book
