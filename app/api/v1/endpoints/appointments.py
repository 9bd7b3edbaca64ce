"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Body, Query, Response, status

from app.dependencies import Container, CurrentActor
from app.schemas.appointments import (
    Appointment,
    AppointmentCancel,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentStatus,
    AppointmentUpdate,
    RescheduleResponse,
)
from app.services.notification_service import notify_safely

router = APIRouter()


@router.post(
    "/",
    response_model=Appointment,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book an appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    actor: CurrentActor,
    container: Container,
) -> Appointment:
    """
    Book an appointment for the authenticated patient.

    Args:
        data: Doctor, date, time and reason
        actor: Authenticated patient
        container: Service container

    Returns:
        Created appointment

    Raises:
        ConflictException: If the slot is already booked
    """
    async with container.audit.track(actor, "appointment.create") as entry:
        appointment = await container.scheduling.book_appointment(actor, data)
        entry.resource_id = appointment.id

    await notify_safely(container.notifier.appointment_booked, appointment)
    return appointment


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    actor: CurrentActor,
    container: Container,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: UUID | None = Query(None, alias="doctorId"),
    patient_id: UUID | None = Query(None, alias="patientId"),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
) -> AppointmentListResponse:
    """
    List appointments visible to the caller, newest first.

    Patients and doctors only see their own; admins may filter by
    ``patientId`` and ``doctorId``.
    """
    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        patient_id=patient_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        page_size=page_size,
    )
    return await container.scheduling.list_appointments(actor, filters)


@router.get(
    "/{appointment_id}",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    container: Container,
) -> Appointment:
    """
    Get a specific appointment by ID.

    Raises:
        NotFoundException: If the appointment does not exist
        ForbiddenException: If the caller is not a party to it
    """
    return await container.scheduling.get_appointment(appointment_id, actor)


@router.put(
    "/{appointment_id}",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    actor: CurrentActor,
    container: Container,
) -> Appointment:
    """
    Edit an appointment within the caller's role permissions.

    Raises:
        ForbiddenException: If a field is not editable by the caller
        StateException: If the status change is not allowed
    """
    requested = data.status
    async with container.audit.track(actor, "appointment.update", appointment_id):
        appointment = await container.scheduling.update_appointment(appointment_id, actor, data)

    if requested == AppointmentStatus.CONFIRMED and appointment.status == AppointmentStatus.CONFIRMED:
        await notify_safely(container.notifier.appointment_confirmed, appointment)
    elif requested == AppointmentStatus.CANCELLED and appointment.status == AppointmentStatus.CANCELLED:
        await notify_safely(container.notifier.appointment_cancelled, appointment)

    return appointment


@router.put(
    "/{appointment_id}/cancel",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    container: Container,
    data: AppointmentCancel | None = Body(None),
) -> Appointment:
    """
    Cancel an appointment more than two hours before it starts.

    Raises:
        StateException: If the appointment can no longer be cancelled
    """
    reason = data.cancellation_reason if data else None
    async with container.audit.track(actor, "appointment.cancel", appointment_id):
        appointment = await container.scheduling.cancel_appointment(appointment_id, actor, reason)

    await notify_safely(container.notifier.appointment_cancelled, appointment)
    return appointment


@router.post(
    "/{appointment_id}/reschedule",
    response_model=RescheduleResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    actor: CurrentActor,
    container: Container,
) -> RescheduleResponse:
    """
    Move an appointment to a new slot more than 24 hours ahead of the original.

    The original is cancelled and a new appointment is booked.

    Raises:
        StateException: If the appointment can no longer be rescheduled
        ConflictException: If the new slot is already booked
    """
    async with container.audit.track(actor, "appointment.reschedule", appointment_id):
        result = await container.scheduling.reschedule_appointment(
            appointment_id, actor, data.date, data.time
        )

    await notify_safely(
        container.notifier.appointment_rescheduled, result.previous, result.appointment
    )
    return result


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Appointments"],
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: UUID,
    actor: CurrentActor,
    container: Container,
) -> Response:
    """
    Remove an appointment from all views. Admin only.

    Raises:
        ForbiddenException: If the caller is not an admin
    """
    async with container.audit.track(actor, "appointment.delete", appointment_id):
        await container.scheduling.delete_appointment(appointment_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
