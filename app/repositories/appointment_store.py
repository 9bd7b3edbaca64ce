"""Appointment persistence interface."""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.appointments import Appointment, AppointmentStatus

SORTABLE_FIELDS = ("date", "time", "created_at", "updated_at")


class AppointmentFilter(BaseModel):
    """Field constraints; every set attribute must match. Date bounds are inclusive."""

    appointment_ids: frozenset[UUID] | None = None
    patient_id: UUID | None = None
    doctor_id: UUID | None = None
    statuses: frozenset[AppointmentStatus] | None = None
    on_date: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    time: str | None = None

    def matches(self, appointment: Appointment) -> bool:
        """Evaluate the filter against one record."""
        if appointment.deleted_at is not None:
            return False
        if self.appointment_ids is not None and appointment.id not in self.appointment_ids:
            return False
        if self.patient_id is not None and appointment.patient_id != self.patient_id:
            return False
        if self.doctor_id is not None and appointment.doctor_id != self.doctor_id:
            return False
        if self.statuses is not None and appointment.status not in self.statuses:
            return False
        if self.on_date is not None and appointment.date != self.on_date:
            return False
        if self.start_date is not None and appointment.date < self.start_date:
            return False
        if self.end_date is not None and appointment.date > self.end_date:
            return False
        if self.time is not None and appointment.time != self.time:
            return False
        return True


class AppointmentQuery(BaseModel):
    """
    Single query description consumed by ``AppointmentStore.find``.

    ``sort`` lists field names, a leading ``-`` meaning descending.
    """

    filter: AppointmentFilter = Field(default_factory=AppointmentFilter)
    sort: tuple[str, ...] = ("-date", "-time")
    limit: int | None = Field(default=None, ge=1)
    skip: int = Field(default=0, ge=0)

    def sort_keys(self) -> list[tuple[str, bool]]:
        """Return ``(field, descending)`` pairs, validating field names."""
        keys = []
        for entry in self.sort:
            descending = entry.startswith("-")
            field = entry.lstrip("-")
            if field not in SORTABLE_FIELDS:
                raise ValueError(f"Cannot sort appointments by '{field}'")
            keys.append((field, descending))
        return keys


class AppointmentStore(ABC):
    """
    Persistence for appointment records.

    Implementations must reject a write that would leave two active
    (scheduled/confirmed) appointments on the same doctor, date and time by
    raising ``ConflictException``. Soft-deleted records are invisible to every
    read.
    """

    @abstractmethod
    async def get(self, appointment_id: UUID) -> Appointment | None:
        """Fetch one appointment by ID."""

    @abstractmethod
    async def find(self, query: AppointmentQuery) -> list[Appointment]:
        """Return the records matching ``query`` in its sort order."""

    @abstractmethod
    async def count(self, filter: AppointmentFilter) -> int:
        """Count the records matching ``filter``."""

    @abstractmethod
    async def insert(self, appointment: Appointment) -> Appointment:
        """Persist a new appointment."""

    @abstractmethod
    async def update(
        self,
        appointment_id: UUID,
        values: Mapping[str, Any],
        expected_statuses: Iterable[AppointmentStatus] | None = None,
    ) -> Appointment | None:
        """
        Apply field values to one appointment.

        Args:
            appointment_id: Appointment ID
            values: Field name to new value
            expected_statuses: When given, only update if the current status
                is one of these

        Returns:
            The updated record, or None if it does not exist or the status
            guard did not hold
        """

    async def ping(self) -> bool:
        """Report whether the backing storage is reachable."""
        return True

    async def close(self) -> None:
        """Release resources held by the store."""
