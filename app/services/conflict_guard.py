"""Serialized slot reservation."""

import asyncio
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from datetime import date
from typing import Any
from uuid import UUID

import structlog

from app.core.exceptions import ConflictException
from app.repositories.appointment_store import (
    AppointmentFilter,
    AppointmentQuery,
    AppointmentStore,
)
from app.schemas.appointments import ACTIVE_STATUSES, Appointment, AppointmentStatus

logger = structlog.get_logger()

SlotKey = tuple[UUID, date, str]


class ConflictGuard:
    """
    Guarantees at most one active appointment per doctor, date and time.

    Reservations for the same slot run one at a time under a per-slot
    ``asyncio.Lock``, so the occupancy check and the write cannot interleave
    within a process. The store's own uniqueness rule covers writers in other
    processes; its ``ConflictException`` propagates unchanged.
    """

    def __init__(self, store: AppointmentStore):
        """Initialize the guard over an appointment store."""
        self.store = store
        self._locks: dict[SlotKey, asyncio.Lock] = {}
        self._waiters: dict[SlotKey, int] = {}

    @asynccontextmanager
    async def hold(self, doctor_id: UUID, day: date, slot: str) -> AsyncIterator[None]:
        """Hold the critical section for one slot."""
        key = (doctor_id, day, slot)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    async def is_occupied(
        self,
        doctor_id: UUID,
        day: date,
        slot: str,
        exclude_id: UUID | None = None,
    ) -> bool:
        """Whether an active appointment other than ``exclude_id`` holds the slot."""
        holders = await self.store.find(
            AppointmentQuery(
                filter=AppointmentFilter(
                    doctor_id=doctor_id,
                    on_date=day,
                    time=slot,
                    statuses=ACTIVE_STATUSES,
                )
            )
        )
        return any(holder.id != exclude_id for holder in holders)

    async def occupied_times(self, doctor_id: UUID, day: date) -> set[str]:
        """Times held by active appointments of a doctor on one day."""
        holders = await self.store.find(
            AppointmentQuery(
                filter=AppointmentFilter(
                    doctor_id=doctor_id,
                    on_date=day,
                    statuses=ACTIVE_STATUSES,
                )
            )
        )
        return {holder.time for holder in holders}

    async def reserve(self, appointment: Appointment) -> Appointment:
        """
        Check the slot is free and insert the appointment atomically.

        Raises:
            ConflictException: If an active appointment already holds the slot
        """
        doctor_id, day, slot = appointment.slot_key
        async with self.hold(doctor_id, day, slot):
            if await self.is_occupied(doctor_id, day, slot):
                logger.info(
                    "appointment_booking_conflict",
                    doctor_id=str(doctor_id),
                    date=day.isoformat(),
                    time=slot,
                )
                raise ConflictException()
            return await self.store.insert(appointment)

    async def move(
        self,
        appointment: Appointment,
        values: Mapping[str, Any],
        expected_statuses: Iterable[AppointmentStatus] | None = None,
    ) -> Appointment | None:
        """
        Apply an update that may change the slot an active appointment holds.

        Args:
            appointment: Record as read before the update was decided
            values: Fields to write
            expected_statuses: Statuses the stored record must still have

        Returns:
            The updated record, or None if it vanished or left
            ``expected_statuses`` meanwhile

        Raises:
            ConflictException: If the target slot is held by another appointment
        """
        doctor_id = values.get("doctor_id", appointment.doctor_id)
        day = values.get("date", appointment.date)
        slot = values.get("time", appointment.time)

        async with self.hold(doctor_id, day, slot):
            if await self.is_occupied(doctor_id, day, slot, exclude_id=appointment.id):
                logger.info(
                    "appointment_booking_conflict",
                    doctor_id=str(doctor_id),
                    date=day.isoformat(),
                    time=slot,
                    appointment_id=str(appointment.id),
                )
                raise ConflictException()
            return await self.store.update(
                appointment.id, values, expected_statuses=expected_statuses
            )
