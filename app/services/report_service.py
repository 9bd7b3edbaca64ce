"""Aggregated statistics over the appointment collection."""

import calendar
from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import timedelta
from typing import Any
from uuid import UUID

import structlog
from pydantic import TypeAdapter

from app.core.clock import Clock, clinic_now
from app.core.exceptions import ForbiddenException, NotFoundException
from app.core.redis_client import REPORT_KEY_PREFIX, CacheManager
from app.repositories.appointment_store import (
    AppointmentFilter,
    AppointmentQuery,
    AppointmentStore,
)
from app.repositories.user_directory import UserDirectory
from app.schemas.appointments import ACTIVE_STATUSES, Appointment, AppointmentStatus, PaymentStatus
from app.schemas.reports import (
    REPORT_TITLES,
    DailyCount,
    DashboardSummary,
    DoctorPerformance,
    MonthlyRevenue,
    PatientsReport,
    PatientSummary,
    ReportEnvelope,
    ReportFilters,
    ReportType,
    RevenueSummary,
    StatusCount,
    TrendBucket,
    TrendPeriod,
    UserStats,
)
from app.schemas.users import Actor
from app.utils.csv_export import records_to_csv

logger = structlog.get_logger()

DASHBOARD_DAYS = 30
TOP_DOCTORS = 10

_ADAPTERS: dict[str, TypeAdapter] = {
    "status_distribution": TypeAdapter(list[StatusCount]),
    "doctor_performance": TypeAdapter(list[DoctorPerformance]),
    "appointments_per_day": TypeAdapter(list[DailyCount]),
    "patients_count": TypeAdapter(PatientsReport),
    "trends": TypeAdapter(list[TrendBucket]),
    "monthly_revenue": TypeAdapter(list[MonthlyRevenue]),
    "dashboard": TypeAdapter(DashboardSummary),
    "user_stats": TypeAdapter(UserStats),
}
_PATIENT_ROWS = TypeAdapter(list[PatientSummary])


def _money(value: float) -> float:
    return round(value, 2)


def _rate(part: int, total: int) -> float:
    """Percentage rounded to 2 decimals; 0 when there is nothing to divide."""
    if total == 0:
        return 0
    return round(part / total * 100, 2)


def _period_key(appointment: Appointment, period: TrendPeriod) -> str:
    day = appointment.date
    if period == TrendPeriod.DAY:
        return day.isoformat()
    if period == TrendPeriod.WEEK:
        iso = day.isocalendar()
        return f"{iso.year}-W{iso.week:02d}"
    return f"{day.year:04d}-{day.month:02d}"


class ReportService:
    """
    Read-only aggregation engine.

    Filters are applied before grouping; results are optionally cached in
    Redis under ``report:<name>:<filters>`` and dropped whenever an
    appointment changes.
    """

    def __init__(
        self,
        store: AppointmentStore,
        users: UserDirectory,
        *,
        clock: Clock = clinic_now,
        cache: CacheManager | None = None,
        cache_ttl: int = 300,
    ):
        """Initialize the service."""
        self.store = store
        self.users = users
        self.clock = clock
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def _load(self, filters: ReportFilters, *, use_status: bool = True) -> list[Appointment]:
        return await self.store.find(
            AppointmentQuery(
                filter=AppointmentFilter(
                    doctor_id=filters.doctor_id,
                    statuses=frozenset({filters.status}) if use_status and filters.status else None,
                    start_date=filters.start_date,
                    end_date=filters.end_date,
                ),
                sort=("date", "time"),
            )
        )

    async def _cached(self, name: str, token: str, compute: Callable[[], Any]) -> Any:
        adapter = _ADAPTERS[name]
        key = f"{REPORT_KEY_PREFIX}{name}:{token}"

        if self.cache is not None:
            hit = self.cache.get_json(key)
            if hit is not None:
                logger.info("report_cache_hit", key=key)
                return adapter.validate_python(hit)

        result = await compute()

        if self.cache is not None:
            self.cache.set_json(key, adapter.dump_python(result, mode="json"), ttl=self.cache_ttl)
        return result

    # Groupings over an already loaded collection

    @staticmethod
    def _status_distribution(appointments: Iterable[Appointment]) -> list[StatusCount]:
        counts: dict[AppointmentStatus, int] = defaultdict(int)
        revenue: dict[AppointmentStatus, float] = defaultdict(float)
        for appointment in appointments:
            counts[appointment.status] += 1
            revenue[appointment.status] += appointment.payment.amount

        rows = [
            StatusCount(status=status, count=count, total_revenue=_money(revenue[status]))
            for status, count in counts.items()
        ]
        rows.sort(key=lambda r: (-r.count, r.status.value))
        return rows

    async def _doctor_performance(self, appointments: list[Appointment]) -> list[DoctorPerformance]:
        grouped: dict[UUID, list[Appointment]] = defaultdict(list)
        for appointment in appointments:
            grouped[appointment.doctor_id].append(appointment)

        doctors = await self.users.get_users(grouped)

        rows = []
        for doctor_id, items in grouped.items():
            total = len(items)
            confirmed = sum(1 for a in items if a.status == AppointmentStatus.CONFIRMED)
            cancelled = sum(1 for a in items if a.status == AppointmentStatus.CANCELLED)
            completed = sum(1 for a in items if a.status == AppointmentStatus.COMPLETED)
            paid = sum(a.payment.amount for a in items if a.payment.status == PaymentStatus.PAID)
            ratings = [a.rating for a in items if a.rating is not None]
            profile = doctors.get(doctor_id)

            rows.append(
                DoctorPerformance(
                    doctor_id=doctor_id,
                    doctor_name=profile.full_name if profile else None,
                    specialization=profile.specialization if profile else None,
                    total_appointments=total,
                    confirmed_appointments=confirmed,
                    cancelled_appointments=cancelled,
                    completed_appointments=completed,
                    total_revenue=_money(paid),
                    average_rating=round(sum(ratings) / len(ratings), 2) if ratings else None,
                    confirmation_rate=_rate(confirmed, total),
                    completion_rate=_rate(completed, total),
                )
            )

        rows.sort(key=lambda r: (-r.total_appointments, str(r.doctor_id)))
        return rows

    @staticmethod
    def _per_day(appointments: Iterable[Appointment]) -> list[DailyCount]:
        counts: dict = defaultdict(int)
        revenue: dict = defaultdict(float)
        for appointment in appointments:
            counts[appointment.date] += 1
            revenue[appointment.date] += appointment.payment.amount

        return [
            DailyCount(date=day, appointment_count=counts[day], total_revenue=_money(revenue[day]))
            for day in sorted(counts)
        ]

    # Public reports

    async def status_distribution(self, filters: ReportFilters) -> list[StatusCount]:
        """Count and revenue per status. The status filter does not apply."""

        async def compute():
            return self._status_distribution(await self._load(filters, use_status=False))

        return await self._cached("status_distribution", filters.cache_token(), compute)

    async def doctor_performance(self, filters: ReportFilters) -> list[DoctorPerformance]:
        """
        Per-doctor counts, paid revenue, average rating and rates.

        Rates are percentages of the doctor's total, rounded to 2 decimals.
        """

        async def compute():
            return await self._doctor_performance(await self._load(filters))

        return await self._cached("doctor_performance", filters.cache_token(), compute)

    async def appointments_per_day(self, filters: ReportFilters) -> list[DailyCount]:
        """Appointment count and revenue per calendar day, oldest first."""

        async def compute():
            return self._per_day(await self._load(filters))

        return await self._cached("appointments_per_day", filters.cache_token(), compute)

    async def patients_count(self, filters: ReportFilters) -> PatientsReport:
        """Per-patient activity, busiest first, with collection totals."""

        async def compute():
            appointments = await self._load(filters)
            grouped: dict[UUID, list[Appointment]] = defaultdict(list)
            for appointment in appointments:
                grouped[appointment.patient_id].append(appointment)

            profiles = await self.users.get_users(grouped)
            patients = []
            for patient_id, items in grouped.items():
                profile = profiles.get(patient_id)
                patients.append(
                    PatientSummary(
                        patient_id=patient_id,
                        patient_name=profile.full_name if profile else None,
                        patient_email=profile.email if profile else None,
                        appointment_count=len(items),
                        total_spent=_money(sum(a.payment.amount for a in items)),
                        last_appointment=max(a.date for a in items),
                    )
                )
            patients.sort(key=lambda p: (-p.appointment_count, str(p.patient_id)))

            return PatientsReport(
                total_patients=len(patients),
                total_appointments=sum(p.appointment_count for p in patients),
                total_revenue=_money(sum(p.total_spent for p in patients)),
                patients=patients,
            )

        return await self._cached("patients_count", filters.cache_token(), compute)

    async def trends(self, filters: ReportFilters) -> list[TrendBucket]:
        """Status counts per day, ISO week or month, in ascending period order."""

        async def compute():
            buckets: dict[str, dict[str, int]] = defaultdict(
                lambda: {"total": 0, "confirmed": 0, "cancelled": 0, "completed": 0}
            )
            for appointment in await self._load(filters):
                bucket = buckets[_period_key(appointment, filters.period)]
                bucket["total"] += 1
                if appointment.status.value in bucket:
                    bucket[appointment.status.value] += 1

            return [TrendBucket(period=key, **buckets[key]) for key in sorted(buckets)]

        return await self._cached("trends", filters.cache_token(), compute)

    async def monthly_revenue(self, filters: ReportFilters) -> list[MonthlyRevenue]:
        """Appointment count, total and average amount per calendar month."""

        async def compute():
            counts: dict[tuple[int, int], int] = defaultdict(int)
            totals: dict[tuple[int, int], float] = defaultdict(float)
            for appointment in await self._load(filters):
                key = (appointment.date.year, appointment.date.month)
                counts[key] += 1
                totals[key] += appointment.payment.amount

            return [
                MonthlyRevenue(
                    year=year,
                    month=month,
                    month_name=calendar.month_name[month],
                    appointment_count=counts[(year, month)],
                    total_revenue=_money(totals[(year, month)]),
                    avg_revenue=_money(totals[(year, month)] / counts[(year, month)]),
                )
                for year, month in sorted(counts)
            ]

        return await self._cached("monthly_revenue", filters.cache_token(), compute)

    async def dashboard(self, filters: ReportFilters) -> DashboardSummary:
        """
        Operational overview.

        Includes the totals by status, the ten busiest doctors, daily counts
        for the last 30 days and the paid revenue total and average.
        """
        today = self.clock().date()

        async def compute():
            appointments = await self._load(filters)
            since = today - timedelta(days=DASHBOARD_DAYS)
            paid = [a.payment.amount for a in appointments if a.payment.status == PaymentStatus.PAID]
            doctors = await self._doctor_performance(appointments)

            return DashboardSummary(
                total_appointments=len(appointments),
                appointments_by_status=self._status_distribution(appointments),
                top_doctors=doctors[:TOP_DOCTORS],
                appointments_per_day=self._per_day(a for a in appointments if a.date >= since),
                revenue=RevenueSummary(
                    total_revenue=_money(sum(paid)),
                    average_revenue=_money(sum(paid) / len(paid)) if paid else 0,
                ),
            )

        token = f"{today.isoformat()}:{filters.cache_token()}"
        return await self._cached("dashboard", token, compute)

    async def user_stats(self, actor: Actor, user_id: UUID | None = None) -> UserStats:
        """
        Appointment totals for one user, as patient or as doctor.

        Upcoming appointments are the active ones dated today or later.

        Args:
            actor: Caller; only admins may ask about someone else
            user_id: User to summarize, defaults to the caller

        Raises:
            ForbiddenException: If a non-admin asks about another user
            NotFoundException: If the user is unknown
        """
        user_id = user_id or actor.id
        if user_id != actor.id and not actor.is_admin:
            raise ForbiddenException("Access denied to this user's statistics")
        if await self.users.get_user(user_id) is None:
            raise NotFoundException("User not found")

        today = self.clock().date()

        async def compute():
            as_patient = await self.store.find(
                AppointmentQuery(filter=AppointmentFilter(patient_id=user_id))
            )
            as_doctor = await self.store.find(
                AppointmentQuery(filter=AppointmentFilter(doctor_id=user_id))
            )
            appointments = list({a.id: a for a in [*as_patient, *as_doctor]}.values())

            return UserStats(
                user_id=user_id,
                total_appointments=len(appointments),
                upcoming_appointments=sum(
                    1 for a in appointments if a.status in ACTIVE_STATUSES and a.date >= today
                ),
                status_breakdown=self._status_distribution(appointments),
            )

        return await self._cached("user_stats", f"{user_id}:{today.isoformat()}", compute)

    # Catalogue access

    async def _build(self, report_type: ReportType, filters: ReportFilters) -> tuple[str, Any]:
        if report_type == ReportType.DOCTOR_PERFORMANCE:
            return "doctor_performance", await self.doctor_performance(filters)
        if report_type == ReportType.APPOINTMENTS_PER_DAY:
            return "appointments_per_day", await self.appointments_per_day(filters)
        if report_type == ReportType.PATIENTS_COUNT:
            return "patients_count", await self.patients_count(filters)
        if report_type == ReportType.STATUS_DISTRIBUTION:
            return "status_distribution", await self.status_distribution(filters)
        if report_type == ReportType.MONTHLY_REVENUE:
            return "monthly_revenue", await self.monthly_revenue(filters)
        return "trends", await self.trends(filters)

    async def generate(self, report_type: ReportType, filters: ReportFilters) -> ReportEnvelope:
        """
        Generate any catalogue report wrapped with its metadata.

        Args:
            report_type: Report to build
            filters: Date range, status, doctor and trend period

        Returns:
            Envelope with camelCase JSON data
        """
        name, result = await self._build(report_type, filters)
        data = _ADAPTERS[name].dump_python(result, mode="json", by_alias=True)

        logger.info("report_generated", report_type=report_type.value)
        return ReportEnvelope(
            type=report_type,
            title=REPORT_TITLES[report_type],
            filters=filters,
            generated_at=self.clock(),
            data=data,
        )

    async def export_csv(self, report_type: ReportType, filters: ReportFilters) -> tuple[str, str]:
        """
        Render a catalogue report as CSV.

        For ``patients_count`` the rows are the per-patient summaries.

        Returns:
            ``(filename, content)`` where filename is ``<type>_<YYYY-MM-DD>.csv``
        """
        name, result = await self._build(report_type, filters)
        if isinstance(result, PatientsReport):
            rows = _PATIENT_ROWS.dump_python(result.patients, mode="json", by_alias=True)
        else:
            rows = _ADAPTERS[name].dump_python(result, mode="json", by_alias=True)

        filename = f"{report_type.value}_{self.clock().date().isoformat()}.csv"
        logger.info("report_exported", report_type=report_type.value, rows=len(rows))
        return filename, records_to_csv(rows)
