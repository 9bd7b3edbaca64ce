"""Reporting endpoints. Administrators only."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.core.exceptions import ValidationException
from app.dependencies import AdminActor, Container
from app.schemas.appointments import AppointmentStatus
from app.schemas.reports import (
    DashboardSummary,
    DoctorPerformance,
    ReportEnvelope,
    ReportFilters,
    ReportRequest,
    TrendBucket,
    TrendPeriod,
)

router = APIRouter()


def report_filters(
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: UUID | None = Query(None, alias="doctorId"),
    period: TrendPeriod = Query(TrendPeriod.MONTH),
) -> ReportFilters:
    """Build report filters from query parameters."""
    try:
        return ReportFilters(
            start_date=start_date,
            end_date=end_date,
            status=status_filter,
            doctor_id=doctor_id,
            period=period,
        )
    except ValueError as e:
        raise ValidationException("endDate must not be before startDate") from e


QueryFilters = Annotated[ReportFilters, Depends(report_filters)]


@router.get(
    "/dashboard",
    response_model=DashboardSummary,
    status_code=status.HTTP_200_OK,
    tags=["Reports"],
    summary="Dashboard analytics",
)
async def get_dashboard(
    actor: AdminActor,
    container: Container,
    filters: QueryFilters,
) -> DashboardSummary:
    """
    Totals by status, busiest doctors, last 30 days and paid revenue.
    """
    return await container.reports.dashboard(filters)


@router.get(
    "/trends",
    response_model=list[TrendBucket],
    status_code=status.HTTP_200_OK,
    tags=["Reports"],
    summary="Appointment trends",
)
async def get_trends(
    actor: AdminActor,
    container: Container,
    filters: QueryFilters,
) -> list[TrendBucket]:
    """
    Status counts bucketed by ``period`` (day, week or month).
    """
    return await container.reports.trends(filters)


@router.get(
    "/doctor-performance",
    response_model=list[DoctorPerformance],
    status_code=status.HTTP_200_OK,
    tags=["Reports"],
    summary="Doctor performance",
)
async def get_doctor_performance(
    actor: AdminActor,
    container: Container,
    filters: QueryFilters,
) -> list[DoctorPerformance]:
    """Per-doctor counts, paid revenue, rating and rates."""
    return await container.reports.doctor_performance(filters)


@router.post(
    "/",
    response_model=ReportEnvelope,
    status_code=status.HTTP_200_OK,
    tags=["Reports"],
    summary="Generate a report",
)
async def generate_report(
    request: ReportRequest,
    actor: AdminActor,
    container: Container,
) -> ReportEnvelope:
    """
    Generate any catalogue report.

    - **type**: doctor_performance, appointments_per_day, patients_count,
      appointment_status_distribution, monthly_revenue or appointment_trends
    - **filters**: optional startDate, endDate, status, doctorId and period
    """
    async with container.audit.track(actor, f"report.{request.type.value}"):
        return await container.reports.generate(request.type, request.filters)


@router.post(
    "/export-csv",
    status_code=status.HTTP_200_OK,
    tags=["Reports"],
    summary="Export a report as CSV",
    response_class=Response,
)
async def export_report_csv(
    request: ReportRequest,
    actor: AdminActor,
    container: Container,
) -> Response:
    """
    Download any catalogue report as a CSV attachment.
    """
    async with container.audit.track(actor, f"report.{request.type.value}.export"):
        filename, content = await container.reports.export_csv(request.type, request.filters)

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
