"""User statistics endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import Container, CurrentActor
from app.schemas.reports import UserStats

router = APIRouter()


@router.get(
    "/stats",
    response_model=UserStats,
    status_code=status.HTTP_200_OK,
    tags=["Users"],
    summary="Get my appointment statistics",
)
async def get_my_stats(actor: CurrentActor, container: Container) -> UserStats:
    """Appointment totals, upcoming count and status breakdown for the caller."""
    return await container.reports.user_stats(actor)


@router.get(
    "/stats/{user_id}",
    response_model=UserStats,
    status_code=status.HTTP_200_OK,
    tags=["Users"],
    summary="Get a user's appointment statistics",
)
async def get_user_stats(
    user_id: UUID,
    actor: CurrentActor,
    container: Container,
) -> UserStats:
    """
    Appointment statistics for any patient or doctor.

    Raises:
        ForbiddenException: If a non-admin asks about someone else
        NotFoundException: If the user is unknown
    """
    return await container.reports.user_stats(actor, user_id)
