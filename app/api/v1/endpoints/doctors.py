"""Doctor availability endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import Container, CurrentActor
from app.schemas.doctors import DoctorAvailabilityResponse

router = APIRouter()


@router.get(
    "/{doctor_id}/availability",
    response_model=DoctorAvailabilityResponse,
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="Get free slots for a doctor",
)
async def get_doctor_availability(
    doctor_id: UUID,
    actor: CurrentActor,
    container: Container,
    day: date = Query(..., alias="date", description="Day to check (YYYY-MM-DD)"),
) -> DoctorAvailabilityResponse:
    """
    List the doctor's bookable slots on one day.

    - **date**: Calendar day in the clinic's time zone

    Slots already booked, and for today slots that have already started, are
    left out.
    """
    return await container.scheduling.get_availability(doctor_id, day)
