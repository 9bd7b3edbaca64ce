import os
from collections.abc import AsyncGenerator, Callable
from datetime import date, datetime, timedelta
from uuid import UUID, uuid4

# Select the in-memory backend before the settings object is created
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("REPORT_CACHE_ENABLED", "false")
os.environ.setdefault("STATUS_SWEEP_ENABLED", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.container import ServiceContainer
from app.core.security import issue_actor_token
from app.dependencies import get_container
from app.main import app
from app.repositories.memory import InMemoryAppointmentStore, InMemoryUserDirectory
from app.schemas.appointments import (
    ActorRole,
    Appointment,
    AppointmentStatus,
    Payment,
    PaymentStatus,
)
from app.schemas.doctors import AvailabilityWindow
from app.schemas.users import Actor, UserProfile

# Monday 2 March 2026, 10:00 clinic time
FIXED_NOW = datetime(2026, 3, 2, 10, 0)
NEXT_MONDAY = date(2026, 3, 9)

DOCTOR_ID = UUID("00000000-0000-0000-0000-0000000000d1")
OTHER_DOCTOR_ID = UUID("00000000-0000-0000-0000-0000000000d2")
INACTIVE_DOCTOR_ID = UUID("00000000-0000-0000-0000-0000000000d3")
PATIENT_ID = UUID("00000000-0000-0000-0000-0000000000a1")
OTHER_PATIENT_ID = UUID("00000000-0000-0000-0000-0000000000a2")
ADMIN_ID = UUID("00000000-0000-0000-0000-0000000000ff")


class FakeClock:
    """Settable clock returning naive clinic-local time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


def _windows(*pairs: tuple[str, str]) -> list[AvailabilityWindow]:
    return [AvailabilityWindow(start=start, end=end) for start, end in pairs]


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at FIXED_NOW until a test advances it."""
    return FakeClock(FIXED_NOW)


@pytest.fixture
def users() -> InMemoryUserDirectory:
    """Directory with two doctors, an inactive doctor, two patients and an admin."""
    return InMemoryUserDirectory(
        [
            UserProfile(
                id=DOCTOR_ID,
                email="richard.james@medbook.com",
                full_name="Dr. Richard James",
                role=ActorRole.DOCTOR,
                specialization="General physician",
                consultation_fee=50,
                availability={
                    "monday": _windows(("09:00", "10:00")),
                    "tuesday": _windows(("09:00", "12:00"), ("14:00", "16:00")),
                    "wednesday": _windows(("09:00", "17:00")),
                    "thursday": _windows(("09:00", "17:00")),
                    "friday": _windows(("09:00", "12:00")),
                },
            ),
            UserProfile(
                id=OTHER_DOCTOR_ID,
                email="emily.larson@medbook.com",
                full_name="Dr. Emily Larson",
                role=ActorRole.DOCTOR,
                specialization="Gynecologist",
                consultation_fee=60,
                availability={"monday": _windows(("13:00", "15:00"))},
            ),
            UserProfile(
                id=INACTIVE_DOCTOR_ID,
                email="retired@medbook.com",
                full_name="Dr. Retired",
                role=ActorRole.DOCTOR,
                is_active=False,
                consultation_fee=40,
            ),
            UserProfile(
                id=PATIENT_ID,
                email="alice@example.com",
                full_name="Alice Patient",
                role=ActorRole.PATIENT,
            ),
            UserProfile(
                id=OTHER_PATIENT_ID,
                email="bob@example.com",
                full_name="Bob Patient",
                role=ActorRole.PATIENT,
            ),
            UserProfile(
                id=ADMIN_ID,
                email="admin@medbook.com",
                full_name="Clinic Admin",
                role=ActorRole.ADMIN,
            ),
        ]
    )


@pytest.fixture
def store() -> InMemoryAppointmentStore:
    """Empty in-memory appointment store."""
    return InMemoryAppointmentStore()


@pytest.fixture
def container(
    store: InMemoryAppointmentStore,
    users: InMemoryUserDirectory,
    clock: FakeClock,
) -> ServiceContainer:
    """Service container over in-memory stores and the fake clock."""
    return ServiceContainer(store=store, users=users, clock=clock)


@pytest.fixture
def patient() -> Actor:
    return Actor(id=PATIENT_ID, role=ActorRole.PATIENT)


@pytest.fixture
def other_patient() -> Actor:
    return Actor(id=OTHER_PATIENT_ID, role=ActorRole.PATIENT)


@pytest.fixture
def doctor() -> Actor:
    return Actor(id=DOCTOR_ID, role=ActorRole.DOCTOR)


@pytest.fixture
def admin() -> Actor:
    return Actor(id=ADMIN_ID, role=ActorRole.ADMIN)


@pytest.fixture
def make_appointment() -> Callable[..., Appointment]:
    """Factory for appointment records inserted directly into a store."""

    def factory(
        *,
        day: date = NEXT_MONDAY,
        time: str = "09:00",
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        doctor_id: UUID = DOCTOR_ID,
        patient_id: UUID = PATIENT_ID,
        amount: float = 50,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        rating: int | None = None,
        **extra,
    ) -> Appointment:
        return Appointment(
            id=uuid4(),
            patient_id=patient_id,
            doctor_id=doctor_id,
            date=day,
            time=time,
            status=status,
            reason="Regular checkup",
            payment=Payment(amount=amount, status=payment_status),
            rating=rating,
            created_at=FIXED_NOW - timedelta(days=30),
            updated_at=FIXED_NOW - timedelta(days=30),
            **extra,
        )

    return factory


def auth_headers_for(user_id: UUID, role: ActorRole) -> dict[str, str]:
    """Bearer header for a user with the given role."""
    token = issue_actor_token(user_id, role, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def patient_headers() -> dict[str, str]:
    return auth_headers_for(PATIENT_ID, ActorRole.PATIENT)


@pytest.fixture
def other_patient_headers() -> dict[str, str]:
    return auth_headers_for(OTHER_PATIENT_ID, ActorRole.PATIENT)


@pytest.fixture
def doctor_headers() -> dict[str, str]:
    return auth_headers_for(DOCTOR_ID, ActorRole.DOCTOR)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_headers_for(ADMIN_ID, ActorRole.ADMIN)


@pytest_asyncio.fixture
async def client(container: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client wired to the in-memory container."""
    app.dependency_overrides[get_container] = lambda: container

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def booking_data() -> dict:
    """Booking request for next Monday 09:00 with Dr. James."""
    return {
        "doctorId": str(DOCTOR_ID),
        "date": NEXT_MONDAY.isoformat(),
        "time": "09:00",
        "reason": "Regular checkup",
        "notes": "First visit",
    }
