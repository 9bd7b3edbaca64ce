"""Report schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import Field, model_validator

from app.schemas.appointments import AppointmentStatus, CamelModel


class ReportType(str, Enum):
    """Reports available through dynamic generation and CSV export."""

    DOCTOR_PERFORMANCE = "doctor_performance"
    APPOINTMENTS_PER_DAY = "appointments_per_day"
    PATIENTS_COUNT = "patients_count"
    STATUS_DISTRIBUTION = "appointment_status_distribution"
    MONTHLY_REVENUE = "monthly_revenue"
    APPOINTMENT_TRENDS = "appointment_trends"


REPORT_TITLES = {
    ReportType.DOCTOR_PERFORMANCE: "Doctor Performance",
    ReportType.APPOINTMENTS_PER_DAY: "Appointments per Day",
    ReportType.PATIENTS_COUNT: "Patients Count",
    ReportType.STATUS_DISTRIBUTION: "Appointment Status Distribution",
    ReportType.MONTHLY_REVENUE: "Monthly Revenue",
    ReportType.APPOINTMENT_TRENDS: "Appointment Trends",
}


class TrendPeriod(str, Enum):
    """Bucket size for trend reports."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class ReportFilters(CamelModel):
    """Filters applied before grouping. Both date bounds are inclusive."""

    start_date: date | None = None
    end_date: date | None = None
    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    period: TrendPeriod = TrendPeriod.MONTH

    @model_validator(mode="after")
    def validate_range(self) -> "ReportFilters":
        """Validate the date range is not inverted."""
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self

    def cache_token(self) -> str:
        """Stable string used to key cached results."""
        return self.model_dump_json(exclude_none=True)


class StatusCount(CamelModel):
    """Appointments sharing one status."""

    status: AppointmentStatus
    count: int
    total_revenue: float


class DoctorPerformance(CamelModel):
    """Per-doctor counts, revenue and rates."""

    doctor_id: UUID
    doctor_name: str | None = None
    specialization: str | None = None
    total_appointments: int
    confirmed_appointments: int
    cancelled_appointments: int
    completed_appointments: int
    total_revenue: float
    average_rating: float | None = None
    confirmation_rate: float
    completion_rate: float


class PatientSummary(CamelModel):
    """Per-patient activity."""

    patient_id: UUID
    patient_name: str | None = None
    patient_email: str | None = None
    appointment_count: int
    total_spent: float
    last_appointment: date


class PatientsReport(CamelModel):
    """Per-patient rows plus collection totals."""

    total_patients: int
    total_appointments: int
    total_revenue: float
    patients: list[PatientSummary]


class TrendBucket(CamelModel):
    """Status counts within one day, ISO week or month."""

    period: str
    total: int
    confirmed: int
    cancelled: int
    completed: int


class DailyCount(CamelModel):
    """Appointments and revenue on one calendar day."""

    date: date
    appointment_count: int
    total_revenue: float


class MonthlyRevenue(CamelModel):
    """Revenue within one calendar month."""

    year: int
    month: int
    month_name: str
    appointment_count: int
    total_revenue: float
    avg_revenue: float


class RevenueSummary(CamelModel):
    """Paid revenue totals."""

    total_revenue: float = 0
    average_revenue: float = 0


class DashboardSummary(CamelModel):
    """Operational overview for administrators."""

    total_appointments: int
    appointments_by_status: list[StatusCount]
    top_doctors: list[DoctorPerformance]
    appointments_per_day: list[DailyCount]
    revenue: RevenueSummary


class UserStats(CamelModel):
    """Appointment counts for one patient or doctor."""

    user_id: UUID
    total_appointments: int
    upcoming_appointments: int
    status_breakdown: list[StatusCount]


class ReportRequest(CamelModel):
    """Dynamic report generation request."""

    type: ReportType
    filters: ReportFilters = Field(default_factory=ReportFilters)


class ReportEnvelope(CamelModel):
    """Generated report with its metadata."""

    type: ReportType
    title: str
    filters: ReportFilters
    generated_at: datetime
    data: Any
