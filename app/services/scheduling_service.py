"""Appointment booking and lifecycle orchestration."""

import math
from datetime import date, datetime
from typing import Any
from uuid import UUID, uuid4

import structlog

from app.core.clock import Clock, clinic_now
from app.core.exceptions import (
    ForbiddenException,
    NotFoundException,
    StateException,
    ValidationException,
)
from app.core.redis_client import CacheManager
from app.repositories.appointment_store import (
    AppointmentFilter,
    AppointmentQuery,
    AppointmentStore,
)
from app.repositories.user_directory import UserDirectory
from app.schemas.appointments import (
    ACTIVE_STATUSES,
    ActorRole,
    Appointment,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentStatus,
    AppointmentUpdate,
    Payment,
    PaymentStatus,
    RescheduleResponse,
    compose_datetime,
)
from app.schemas.doctors import DoctorAvailabilityResponse, DoctorSummary
from app.schemas.users import Actor, UserProfile
from app.services.availability import AvailabilityResolver
from app.services.conflict_guard import ConflictGuard
from app.services.lifecycle import LifecycleEngine

logger = structlog.get_logger()

# Fields each role may send in an update; admins may send any field.
ROLE_EDITABLE_FIELDS: dict[ActorRole, frozenset[str]] = {
    ActorRole.PATIENT: frozenset({"status", "notes", "cancellation_reason"}),
    ActorRole.DOCTOR: frozenset(
        {"status", "notes", "doctor_notes", "prescription", "cancellation_reason"}
    ),
}

SLOT_FIELDS = frozenset({"doctor_id", "date", "time"})

REQUIRED_FIELDS = frozenset(
    {"patient_id", "doctor_id", "date", "time", "duration_minutes", "reason", "payment", "reminders"}
)


class SchedulingService:
    """
    Books, edits, cancels and reschedules appointments.

    Every status change is decided by the ``LifecycleEngine`` and every slot
    acquisition goes through the ``ConflictGuard``; this service is the only
    writer of appointment records besides the status sweep it also hosts.
    """

    def __init__(
        self,
        store: AppointmentStore,
        users: UserDirectory,
        *,
        lifecycle: LifecycleEngine,
        guard: ConflictGuard,
        resolver: AvailabilityResolver,
        clock: Clock = clinic_now,
        cache: CacheManager | None = None,
    ):
        """Initialize the service with its collaborators."""
        self.store = store
        self.users = users
        self.lifecycle = lifecycle
        self.guard = guard
        self.resolver = resolver
        self.clock = clock
        self.cache = cache

    def _invalidate_reports(self) -> None:
        if self.cache is not None:
            self.cache.invalidate_reports()

    async def _get_existing(self, appointment_id: UUID) -> Appointment:
        appointment = await self.store.get(appointment_id)
        if appointment is None:
            raise NotFoundException("Appointment not found")
        return appointment

    @staticmethod
    def _check_access(appointment: Appointment, actor: Actor) -> None:
        if actor.role == ActorRole.PATIENT and appointment.patient_id != actor.id:
            raise ForbiddenException("Access denied to this appointment")
        if actor.role == ActorRole.DOCTOR and appointment.doctor_id != actor.id:
            raise ForbiddenException("Access denied to this appointment")

    async def _get_bookable_doctor(self, doctor_id: UUID) -> UserProfile:
        doctor = await self.users.get_user(doctor_id)
        if doctor is None or not doctor.is_bookable_doctor:
            raise NotFoundException("Doctor not found or inactive")
        return doctor

    async def book_appointment(self, actor: Actor, data: AppointmentCreate) -> Appointment:
        """
        Book a new appointment for the calling patient.

        Args:
            actor: Calling patient
            data: Booking request

        Returns:
            Created appointment

        Raises:
            ForbiddenException: If the caller is not a patient
            NotFoundException: If the doctor is unknown or inactive
            ValidationException: If the slot is not in the future
            ConflictException: If the slot is already booked
        """
        if actor.role != ActorRole.PATIENT:
            raise ForbiddenException("Only patients can book appointments")

        doctor = await self._get_bookable_doctor(data.doctor_id)

        now = self.clock()
        if compose_datetime(data.date, data.time) <= now:
            raise ValidationException("Appointment must be scheduled for a future date and time")

        appointment = Appointment(
            id=uuid4(),
            patient_id=actor.id,
            doctor_id=doctor.id,
            date=data.date,
            time=data.time,
            reason=data.reason,
            notes=data.notes,
            status=AppointmentStatus.SCHEDULED,
            payment=Payment(amount=doctor.consultation_fee, status=PaymentStatus.PENDING),
            created_at=now,
            updated_at=now,
        )

        created = await self.guard.reserve(appointment)
        self._invalidate_reports()

        logger.info(
            "appointment_booked",
            appointment_id=str(created.id),
            patient_id=str(created.patient_id),
            doctor_id=str(created.doctor_id),
            date=created.date.isoformat(),
            time=created.time,
        )
        return created

    async def cancel_appointment(
        self,
        appointment_id: UUID,
        actor: Actor,
        reason: str | None = None,
    ) -> Appointment:
        """
        Cancel an appointment.

        Raises:
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the caller is not a party to it
            StateException: If it is no longer active or inside the
                cancellation window
        """
        appointment = await self._get_existing(appointment_id)
        self._check_access(appointment, actor)

        now = self.clock()
        if not self.lifecycle.can_cancel(appointment, now):
            raise StateException("Appointment cannot be cancelled at this time")

        values = self.lifecycle.transition(
            appointment, AppointmentStatus.CANCELLED, actor, now, cancellation_reason=reason
        )
        cancelled = await self.store.update(appointment.id, values, expected_statuses=ACTIVE_STATUSES)
        if cancelled is None:
            raise StateException("Appointment cannot be cancelled at this time")

        self._invalidate_reports()
        logger.info(
            "appointment_cancelled",
            appointment_id=str(cancelled.id),
            cancelled_by=str(actor.id),
            reason=reason,
        )
        return cancelled

    async def update_appointment(
        self,
        appointment_id: UUID,
        actor: Actor,
        data: AppointmentUpdate,
    ) -> Appointment:
        """
        Apply the role-permitted subset of field edits.

        Patients may cancel and edit their notes; doctors may additionally
        change status and record doctor notes and prescriptions; admins may
        edit any field. Any status change runs through the lifecycle
        transition table.

        Raises:
            NotFoundException: If the appointment does not exist
            ForbiddenException: If a field or status change is not allowed for
                the caller
            StateException: If the status change is not a valid transition
            ValidationException: If the edit is inconsistent
            ConflictException: If an admin moves it onto an occupied slot
        """
        appointment = await self._get_existing(appointment_id)
        self._check_access(appointment, actor)

        requested = data.model_dump(exclude_unset=True)
        if not requested:
            return appointment

        allowed = ROLE_EDITABLE_FIELDS.get(actor.role)
        if allowed is not None:
            rejected = sorted(set(requested) - allowed)
            if rejected:
                raise ForbiddenException(
                    f"A {actor.role.value} cannot edit: {', '.join(rejected)}"
                )

        if actor.role == ActorRole.PATIENT and requested.get("status") not in (
            None,
            AppointmentStatus.CANCELLED,
        ):
            raise ForbiddenException("Patients may only cancel appointments")

        now = self.clock()
        target = requested.pop("status", None)
        reason = requested.pop("cancellation_reason", None)

        cleared = sorted(f for f in REQUIRED_FIELDS if f in requested and requested[f] is None)
        if cleared:
            raise ValidationException(f"Required fields cannot be cleared: {', '.join(cleared)}")

        values: dict[str, Any] = {}
        for field in requested:
            # Keep the validated sub-models rather than their dumped dicts
            values[field] = getattr(data, field)

        if target is not None:
            # Self-edges are not in the table, so repeating the current status raises
            values.update(
                self.lifecycle.transition(
                    appointment, target, actor, now, cancellation_reason=reason
                )
            )
        elif reason is not None:
            raise ValidationException(
                "cancellationReason can only be given when cancelling an appointment"
            )

        if not values:
            return appointment

        if "date" in values or "time" in values:
            scheduled = compose_datetime(
                values.get("date", appointment.date), values.get("time", appointment.time)
            )
            if scheduled <= now:
                raise ValidationException(
                    "Appointment must be scheduled for a future date and time"
                )

        if "doctor_id" in values and values["doctor_id"] != appointment.doctor_id:
            await self._get_bookable_doctor(values["doctor_id"])

        values["updated_at"] = now
        status_after = values.get("status", appointment.status)
        moves_slot = any(
            field in values and values[field] != getattr(appointment, field)
            for field in SLOT_FIELDS
        )

        # Decided against the status read above; a concurrent cancel or sweep wins
        expected = [appointment.status]
        if moves_slot and status_after in ACTIVE_STATUSES:
            updated = await self.guard.move(appointment, values, expected_statuses=expected)
        else:
            updated = await self.store.update(appointment.id, values, expected_statuses=expected)

        if updated is None:
            raise StateException("Appointment changed while it was being updated")

        self._invalidate_reports()
        logger.info(
            "appointment_updated",
            appointment_id=str(updated.id),
            actor_id=str(actor.id),
            actor_role=actor.role.value,
            fields=sorted(set(values) - {"updated_at"}),
        )
        return updated

    async def reschedule_appointment(
        self,
        appointment_id: UUID,
        actor: Actor,
        new_date: date,
        new_time: str,
    ) -> RescheduleResponse:
        """
        Move an appointment to another slot.

        The new slot is booked first; only then is the original cancelled, so
        a conflict leaves the original untouched.

        Returns:
            The cancelled original and the newly booked appointment

        Raises:
            StateException: If the appointment is inside the reschedule window
            ValidationException: If the new slot is not in the future
            ConflictException: If the new slot is already booked
        """
        original = await self._get_existing(appointment_id)
        self._check_access(original, actor)

        now = self.clock()
        if not self.lifecycle.can_reschedule(original, now):
            raise StateException("Appointment cannot be rescheduled at this time")

        if compose_datetime(new_date, new_time) <= now:
            raise ValidationException("Appointment must be scheduled for a future date and time")

        replacement = original.model_copy(
            update={
                "id": uuid4(),
                "date": new_date,
                "time": new_time,
                "status": AppointmentStatus.SCHEDULED,
                "payment": Payment(
                    amount=original.payment.amount, status=PaymentStatus.PENDING
                ),
                "doctor_notes": None,
                "prescription": None,
                "cancelled_by": None,
                "cancelled_at": None,
                "cancellation_reason": None,
                "completed_at": None,
                "rating": None,
                "review": None,
                "created_at": now,
                "updated_at": now,
            },
            deep=True,
        )
        booked = await self.guard.reserve(replacement)

        values = self.lifecycle.transition(
            original,
            AppointmentStatus.CANCELLED,
            actor,
            now,
            cancellation_reason=f"Rescheduled to {new_date.isoformat()} {new_time}",
        )
        previous = await self.store.update(original.id, values, expected_statuses=ACTIVE_STATUSES)
        if previous is None:
            # Original left the active set meanwhile; release the new slot.
            await self.store.update(
                booked.id,
                {
                    "status": AppointmentStatus.CANCELLED,
                    "cancelled_by": actor.id,
                    "cancelled_at": now,
                    "cancellation_reason": "Reschedule aborted",
                    "updated_at": now,
                },
            )
            raise StateException("Appointment cannot be rescheduled at this time")

        self._invalidate_reports()
        logger.info(
            "appointment_rescheduled",
            appointment_id=str(previous.id),
            new_appointment_id=str(booked.id),
            date=new_date.isoformat(),
            time=new_time,
        )
        return RescheduleResponse(previous=previous, appointment=booked)

    async def get_appointment(self, appointment_id: UUID, actor: Actor) -> Appointment:
        """
        Get one appointment after refreshing stale statuses.

        Raises:
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the caller is not a party to it
        """
        await self.refresh_statuses()
        appointment = await self._get_existing(appointment_id)
        self._check_access(appointment, actor)
        return appointment

    async def list_appointments(
        self,
        actor: Actor,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List appointments visible to the caller, newest first.

        Patients and doctors only see their own appointments; admins may
        narrow by patient or doctor.
        """
        await self.refresh_statuses()

        patient_id = filters.patient_id
        doctor_id = filters.doctor_id
        if actor.role == ActorRole.PATIENT:
            patient_id = actor.id
        elif actor.role == ActorRole.DOCTOR:
            doctor_id = actor.id

        query_filter = AppointmentFilter(
            patient_id=patient_id,
            doctor_id=doctor_id,
            statuses=frozenset({filters.status}) if filters.status else None,
            start_date=filters.start_date,
            end_date=filters.end_date,
        )

        total = await self.store.count(query_filter)
        items = await self.store.find(
            AppointmentQuery(
                filter=query_filter,
                sort=("-date", "-time"),
                limit=filters.page_size,
                skip=(filters.page - 1) * filters.page_size,
            )
        )

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            pages=math.ceil(total / filters.page_size) if total > 0 else 0,
            items=items,
        )

    async def delete_appointment(self, appointment_id: UUID, actor: Actor) -> None:
        """
        Soft delete an appointment. Admin only.

        Raises:
            ForbiddenException: If the caller is not an admin
            NotFoundException: If the appointment does not exist
        """
        if not actor.is_admin:
            raise ForbiddenException("Only administrators can delete appointments")

        now = self.clock()
        deleted = await self.store.update(appointment_id, {"deleted_at": now, "updated_at": now})
        if deleted is None:
            raise NotFoundException("Appointment not found")

        self._invalidate_reports()
        logger.info("appointment_deleted", appointment_id=str(appointment_id), actor_id=str(actor.id))

    async def refresh_statuses(self, now: datetime | None = None) -> int:
        """
        Complete every active appointment whose time has passed.

        Idempotent: each record is updated only while it is still active, so
        repeated or concurrent runs never count the same appointment twice. A
        failure on one record is logged and the sweep continues.

        Args:
            now: Reference time; defaults to the service clock

        Returns:
            Number of appointments transitioned to completed
        """
        now = now or self.clock()

        candidates = await self.store.find(
            AppointmentQuery(
                filter=AppointmentFilter(statuses=ACTIVE_STATUSES, end_date=now.date()),
                sort=("date", "time"),
            )
        )

        mutated = 0
        for appointment in candidates:
            if not self.lifecycle.due_for_auto_completion(appointment, now):
                continue
            try:
                updated = await self.store.update(
                    appointment.id,
                    self.lifecycle.auto_completion_values(now),
                    expected_statuses=ACTIVE_STATUSES,
                )
            except Exception as e:
                logger.warning(
                    "status_refresh_item_failed",
                    appointment_id=str(appointment.id),
                    error=str(e),
                )
                continue
            if updated is not None:
                mutated += 1

        if mutated:
            self._invalidate_reports()
            logger.info("status_refresh_completed", completed=mutated, now=now.isoformat())
        return mutated

    async def get_availability(self, doctor_id: UUID, day: date) -> DoctorAvailabilityResponse:
        """
        Free slots for a doctor on one day.

        Raises:
            NotFoundException: If the doctor is unknown or inactive
        """
        doctor = await self._get_bookable_doctor(doctor_id)
        occupied = await self.guard.occupied_times(doctor_id, day)
        slots = self.resolver.resolve(doctor.availability, day, occupied, now=self.clock())

        return DoctorAvailabilityResponse(
            doctor=DoctorSummary(
                id=doctor.id,
                name=doctor.full_name,
                specialization=doctor.specialization,
                consultation_fee=doctor.consultation_fee,
            ),
            date=day,
            available_slots=slots,
        )
