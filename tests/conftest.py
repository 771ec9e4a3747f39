import json
import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from uuid import uuid4

# Settings are read at import time, so the test environment goes first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_webhook_secret")
os.environ.setdefault("SUPABASE_URL", "https://storage.test")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("REMINDER_JOB_SECRET", "reminder-secret")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("EMAIL_RETRY_WAIT_SECONDS", "0")

import aiosmtplib
import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.core.clock import utcnow
from app.core.policy import Principal
from app.core.redis_client import TokenBlacklist
from app.core.security import create_access_token, get_password_hash
from app.database import get_db
from app.dependencies import (
    get_notification_dispatcher,
    get_payment_gateway,
    get_storage_service,
    get_token_blacklist,
)
from app.main import app
from app.models import admins, appointments, doctors, metadata, patients, users
from app.schemas.users import UserRole
from app.services.email_service import EmailService
from app.services.notification_service import NotificationDispatcher
from app.services.payment_gateway import PaystackClient
from app.services.storage_service import StorageService

test_engine = create_async_engine(
    "sqlite+aiosqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class RecordingEmailService(EmailService):
    """Renders real templates but keeps messages instead of using SMTP."""

    def __init__(self):
        super().__init__(settings)
        self.outbox: list = []
        self.failing = False

    async def _smtp_send(self, msg) -> None:
        if self.failing:
            raise aiosmtplib.SMTPException("SMTP unavailable")
        self.outbox.append(msg)

    @property
    def recipients(self) -> list[str]:
        return [m["To"] for m in self.outbox]


class FakeRedis:
    """The two Redis commands the token blacklist uses."""

    def __init__(self):
        self.store: dict[str, str] = {}

    def setex(self, key: str, ttl: int, value: str) -> None:
        self.store[key] = value

    def exists(self, key: str) -> int:
        return int(key in self.store)


class FakePaystack:
    """Request handler standing in for the Paystack REST API."""

    def __init__(self):
        self.verify_status = "success"
        self.fail_initialize = False
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/transaction/initialize":
            if self.fail_initialize:
                return httpx.Response(400, json={"status": False, "message": "Invalid key"})
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "data": {
                        "authorization_url": f"https://checkout.test/{body['reference']}",
                        "access_code": "access-123",
                        "reference": body["reference"],
                    },
                },
            )

        if path.startswith("/transaction/verify/"):
            reference = path.rsplit("/", 1)[1]
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "data": {"status": self.verify_status, "reference": reference},
                },
            )

        return httpx.Response(404, json={"status": False, "message": "Not found"})

    def count(self, fragment: str) -> int:
        return sum(1 for r in self.requests if fragment in r.url.path)


class FakeStorage:
    """Request handler standing in for the Supabase Storage REST API."""

    def __init__(self):
        self.fail = False
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(500, json={"error": "boom"})
        key = request.url.path.split("/object/sign/", 1)[1]
        return httpx.Response(200, json={"signedURL": f"/object/sign/{key}?token=signed"})


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory schema per test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def email_service() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture
def dispatcher(email_service) -> NotificationDispatcher:
    return NotificationDispatcher(email_service)


@pytest.fixture
def paystack() -> FakePaystack:
    return FakePaystack()


@pytest.fixture
def gateway(paystack) -> PaystackClient:
    return PaystackClient(settings, transport=httpx.MockTransport(paystack))


@pytest.fixture
def storage_api() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def storage(storage_api) -> StorageService:
    return StorageService(settings, transport=httpx.MockTransport(storage_api))


@pytest.fixture
def blacklist() -> TokenBlacklist:
    return TokenBlacklist(FakeRedis())


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    dispatcher: NotificationDispatcher,
    gateway: PaystackClient,
    storage: StorageService,
    blacklist: TokenBlacklist,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the database and every outbound client replaced."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_token_blacklist] = lambda: blacklist

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def create_account(
    db: AsyncSession,
    role: UserRole,
    email: str,
    full_name: str,
    password: str = "password123",
    **profile,
) -> dict:
    """Insert a verified user with its role profile and mint a session token."""
    result = await db.execute(
        insert(users)
        .values(
            email=email,
            password_hash=get_password_hash(password),
            full_name=full_name,
            role=role.value,
            email_verified=True,
        )
        .returning(users.c.id)
    )
    user_id = result.scalar_one()

    table = {UserRole.PATIENT: patients, UserRole.DOCTOR: doctors, UserRole.ADMIN: admins}[role]
    result = await db.execute(
        insert(table).values(user_id=user_id, **profile).returning(table.c.id)
    )
    profile_id = result.scalar_one()
    await db.commit()

    token = create_access_token({"sub": str(user_id), "role": role.value})
    return {
        "user_id": user_id,
        "profile_id": profile_id,
        "email": email,
        "full_name": full_name,
        "token": token,
        "headers": {"Authorization": f"Bearer {token}"},
        "principal": Principal(
            user_id=user_id,
            role=role,
            email=email,
            full_name=full_name,
            profile_id=profile_id,
        ),
    }


@pytest_asyncio.fixture
async def patient(db_session) -> dict:
    return await create_account(db_session, UserRole.PATIENT, "ama@example.com", "Ama Mensah")


@pytest_asyncio.fixture
async def other_patient(db_session) -> dict:
    return await create_account(db_session, UserRole.PATIENT, "kofi@example.com", "Kofi Boateng")


@pytest_asyncio.fixture
async def doctor(db_session) -> dict:
    return await create_account(
        db_session,
        UserRole.DOCTOR,
        "dr.owusu@example.com",
        "Yaw Owusu",
        specialization="Cardiology",
        status="APPROVED",
    )


@pytest_asyncio.fixture
async def other_doctor(db_session) -> dict:
    return await create_account(
        db_session,
        UserRole.DOCTOR,
        "dr.asante@example.com",
        "Efua Asante",
        specialization="Dermatology",
    )


@pytest_asyncio.fixture
async def admin(db_session) -> dict:
    return await create_account(db_session, UserRole.ADMIN, "admin@example.com", "Site Admin")


@pytest.fixture
def make_appointment(db_session):
    """Insert an appointment directly in any status."""

    async def _make(
        patient: dict,
        doctor: dict,
        status: str = "PENDING",
        date: datetime | None = None,
        type: str = "IN_PERSON",
        end_time: datetime | None = None,
    ):
        result = await db_session.execute(
            insert(appointments)
            .values(
                id=uuid4(),
                patient_id=patient["profile_id"],
                doctor_id=doctor["profile_id"],
                date=date or utcnow() + timedelta(days=3),
                type=type,
                status=status,
                end_time=end_time,
            )
            .returning(appointments.c.id)
        )
        appointment_id = result.scalar_one()
        await db_session.commit()
        return appointment_id

    return _make
