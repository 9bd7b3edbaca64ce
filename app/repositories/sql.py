"""PostgreSQL appointment store using SQLAlchemy Core."""

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, insert, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import ConflictException
from app.models.appointments import appointments
from app.repositories.appointment_store import (
    AppointmentFilter,
    AppointmentQuery,
    AppointmentStore,
)
from app.schemas.appointments import (
    Appointment,
    AppointmentStatus,
    Payment,
    Prescription,
    Reminders,
)

ACTIVE_SLOT_INDEX = "uq_appointments_active_slot"


def _to_columns(values: Mapping[str, Any]) -> dict[str, Any]:
    """Map model field values onto table columns."""
    columns: dict[str, Any] = {}
    for field, value in values.items():
        if field == "payment":
            payment = Payment.model_validate(value)
            columns.update(
                {
                    "payment_amount": payment.amount,
                    "payment_status": payment.status.value,
                    "payment_method": payment.method.value if payment.method else None,
                    "payment_transaction_id": payment.transaction_id,
                    "paid_at": payment.paid_at,
                }
            )
        elif field == "prescription":
            columns[field] = (
                Prescription.model_validate(value).model_dump(mode="json") if value else None
            )
        elif field == "reminders":
            columns[field] = Reminders.model_validate(value).model_dump(mode="json")
        elif isinstance(value, AppointmentStatus):
            columns[field] = value.value
        else:
            columns[field] = value
    return columns


def _to_appointment(row) -> Appointment:
    """Rebuild an appointment from a table row."""
    mapping = dict(row._mapping)
    mapping["payment"] = {
        "amount": float(mapping.pop("payment_amount")),
        "status": mapping.pop("payment_status"),
        "method": mapping.pop("payment_method"),
        "transaction_id": mapping.pop("payment_transaction_id"),
        "paid_at": mapping.pop("paid_at"),
    }
    if mapping.get("reminders") is None:
        mapping.pop("reminders", None)
    return Appointment.model_validate(mapping)


def _is_active_slot_violation(exc: IntegrityError) -> bool:
    return ACTIVE_SLOT_INDEX in str(exc.orig)


class SqlAppointmentStore(AppointmentStore):
    """
    Appointment store over the ``appointments`` table.

    Double-booking is prevented by the partial unique index on
    ``(doctor_id, date, time)`` for active statuses.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    @staticmethod
    def _conditions(filter: AppointmentFilter) -> list:
        conditions = [appointments.c.deleted_at.is_(None)]

        if filter.appointment_ids is not None:
            conditions.append(appointments.c.id.in_(list(filter.appointment_ids)))

        if filter.patient_id:
            conditions.append(appointments.c.patient_id == filter.patient_id)

        if filter.doctor_id:
            conditions.append(appointments.c.doctor_id == filter.doctor_id)

        if filter.statuses is not None:
            conditions.append(appointments.c.status.in_([s.value for s in filter.statuses]))

        if filter.on_date:
            conditions.append(appointments.c.date == filter.on_date)

        if filter.start_date:
            conditions.append(appointments.c.date >= filter.start_date)

        if filter.end_date:
            conditions.append(appointments.c.date <= filter.end_date)

        if filter.time:
            conditions.append(appointments.c.time == filter.time)

        return conditions

    async def get(self, appointment_id: UUID) -> Appointment | None:
        stmt = select(appointments).where(
            and_(
                appointments.c.id == appointment_id,
                appointments.c.deleted_at.is_(None),
            )
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            row = result.fetchone()
        return _to_appointment(row) if row else None

    async def find(self, query: AppointmentQuery) -> list[Appointment]:
        order_by = []
        for field, descending in query.sort_keys():
            column = appointments.c[field]
            order_by.append(column.desc() if descending else column.asc())

        stmt = (
            select(appointments)
            .where(and_(*self._conditions(query.filter)))
            .order_by(*order_by)
            .offset(query.skip)
        )
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.fetchall()
        return [_to_appointment(row) for row in rows]

    async def count(self, filter: AppointmentFilter) -> int:
        stmt = select(func.count()).select_from(appointments).where(and_(*self._conditions(filter)))
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar() or 0

    async def insert(self, appointment: Appointment) -> Appointment:
        values = _to_columns(appointment.model_dump())
        stmt = insert(appointments).values(**values).returning(appointments)

        async with self.session_factory() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if _is_active_slot_violation(e):
                    raise ConflictException() from e
                raise
            row = result.fetchone()
        return _to_appointment(row)

    async def update(
        self,
        appointment_id: UUID,
        values: Mapping[str, Any],
        expected_statuses: Iterable[AppointmentStatus] | None = None,
    ) -> Appointment | None:
        conditions = [
            appointments.c.id == appointment_id,
            appointments.c.deleted_at.is_(None),
        ]
        if expected_statuses is not None:
            conditions.append(appointments.c.status.in_([s.value for s in expected_statuses]))

        stmt = (
            update(appointments)
            .where(and_(*conditions))
            .values(**_to_columns(values))
            .returning(appointments)
        )

        async with self.session_factory() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                if _is_active_slot_violation(e):
                    raise ConflictException() from e
                raise
            row = result.fetchone()
        return _to_appointment(row) if row else None

    async def ping(self) -> bool:
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception:
            return False
