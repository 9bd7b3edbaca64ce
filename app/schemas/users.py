"""User views consumed by the scheduling core."""

from uuid import UUID

from pydantic import ConfigDict, Field

from app.schemas.appointments import ActorRole, CamelModel
from app.schemas.doctors import WeeklyAvailability


class Actor(CamelModel):
    """Authenticated caller, as supplied by the identity service."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        """Whether the caller is an administrator."""
        return self.role == ActorRole.ADMIN


class UserProfile(CamelModel):
    """Read-only view of a user owned by the identity service."""

    id: UUID
    email: str | None = None
    full_name: str | None = None
    role: ActorRole = ActorRole.PATIENT
    is_active: bool = True
    specialization: str | None = None
    consultation_fee: float = 0
    availability: WeeklyAvailability = Field(default_factory=dict)

    @property
    def is_bookable_doctor(self) -> bool:
        """Whether patients may book this user."""
        return self.role == ActorRole.DOCTOR and self.is_active
