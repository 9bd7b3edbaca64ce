"""In-memory stores, used by tests and local runs without PostgreSQL."""

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from app.core.exceptions import ConflictException
from app.repositories.appointment_store import (
    AppointmentFilter,
    AppointmentQuery,
    AppointmentStore,
)
from app.repositories.user_directory import UserDirectory
from app.schemas.appointments import Appointment, AppointmentStatus
from app.schemas.users import UserProfile


class InMemoryAppointmentStore(AppointmentStore):
    """
    Dict-backed appointment store.

    Methods never await between reading and writing, so each call is atomic
    with respect to other coroutines on the same event loop.
    """

    def __init__(self, appointments: Iterable[Appointment] = ()):
        """Initialize the store, optionally seeded with records."""
        self._records: dict[UUID, Appointment] = {}
        for appointment in appointments:
            self._records[appointment.id] = appointment.model_copy(deep=True)

    def _slot_taken(self, candidate: Appointment) -> bool:
        if not candidate.is_active or candidate.deleted_at is not None:
            return False
        return any(
            other.id != candidate.id
            and other.deleted_at is None
            and other.is_active
            and other.slot_key == candidate.slot_key
            for other in self._records.values()
        )

    async def get(self, appointment_id: UUID) -> Appointment | None:
        record = self._records.get(appointment_id)
        if record is None or record.deleted_at is not None:
            return None
        return record.model_copy(deep=True)

    async def find(self, query: AppointmentQuery) -> list[Appointment]:
        matched = [r for r in self._records.values() if query.filter.matches(r)]

        # Stable sorts applied from the least significant key
        for field, descending in reversed(query.sort_keys()):
            matched.sort(key=lambda r, f=field: getattr(r, f), reverse=descending)

        end = query.skip + query.limit if query.limit is not None else None
        return [r.model_copy(deep=True) for r in matched[query.skip : end]]

    async def count(self, filter: AppointmentFilter) -> int:
        return sum(1 for r in self._records.values() if filter.matches(r))

    async def insert(self, appointment: Appointment) -> Appointment:
        if appointment.id in self._records:
            raise ValueError(f"Appointment {appointment.id} already exists")
        if self._slot_taken(appointment):
            raise ConflictException()
        self._records[appointment.id] = appointment.model_copy(deep=True)
        return appointment.model_copy(deep=True)

    async def update(
        self,
        appointment_id: UUID,
        values: Mapping[str, Any],
        expected_statuses: Iterable[AppointmentStatus] | None = None,
    ) -> Appointment | None:
        current = self._records.get(appointment_id)
        if current is None or current.deleted_at is not None:
            return None
        if expected_statuses is not None and current.status not in set(expected_statuses):
            return None

        merged = Appointment.model_validate({**current.model_dump(), **values})
        if self._slot_taken(merged):
            raise ConflictException()

        self._records[appointment_id] = merged
        return merged.model_copy(deep=True)


class InMemoryUserDirectory(UserDirectory):
    """User directory over a fixed set of profiles."""

    def __init__(self, users: Iterable[UserProfile] = ()):
        """Initialize the directory with known users."""
        self._users = {user.id: user for user in users}

    def add(self, user: UserProfile) -> None:
        """Register or replace a user profile."""
        self._users[user.id] = user

    async def get_user(self, user_id: UUID) -> UserProfile | None:
        return self._users.get(user_id)

    async def get_users(self, user_ids: Iterable[UUID]) -> dict[UUID, UserProfile]:
        return {uid: self._users[uid] for uid in set(user_ids) if uid in self._users}
