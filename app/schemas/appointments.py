"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

# Field names below shadow the ``date`` type inside class bodies.
CalendarDate = date


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"


ACTIVE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    """Payment method enumeration."""

    CASH = "cash"
    CARD = "card"
    ONLINE = "online"
    INSURANCE = "insurance"


class ActorRole(str, Enum):
    """Role of the user performing an operation."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


def parse_slot_time(value: str) -> time:
    """Parse an ``HH:MM`` string."""
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def compose_datetime(day: date, slot: str) -> datetime:
    """Combine a calendar day and an ``HH:MM`` time into one naive instant."""
    return datetime.combine(day, parse_slot_time(slot))


class CamelModel(BaseModel):
    """Base model exposing camelCase keys while accepting snake_case names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Medication(CamelModel):
    """Single prescribed medication."""

    name: str = Field(..., min_length=1, max_length=200)
    dosage: str | None = None
    frequency: str | None = None
    duration: str | None = None
    instructions: str | None = None


class Prescription(CamelModel):
    """Prescription attached by the doctor after the visit."""

    medications: list[Medication] = Field(default_factory=list)
    follow_up_date: CalendarDate | None = None
    follow_up_notes: str | None = Field(None, max_length=1000)


class Payment(CamelModel):
    """Payment record; the core only stores status and amount."""

    amount: float = Field(..., ge=0)
    status: PaymentStatus = PaymentStatus.PENDING
    method: PaymentMethod | None = None
    transaction_id: str | None = None
    paid_at: datetime | None = None


class ReminderChannel(CamelModel):
    """Delivery state of one reminder channel."""

    enabled: bool = False
    sent: bool = False
    sent_at: datetime | None = None


class Reminders(CamelModel):
    """Email and SMS reminder settings."""

    email: ReminderChannel = Field(default_factory=lambda: ReminderChannel(enabled=True))
    sms: ReminderChannel = Field(default_factory=ReminderChannel)


class Appointment(CamelModel):
    """Appointment record in its durable external representation."""

    id: UUID
    patient_id: UUID
    doctor_id: UUID
    date: CalendarDate
    time: str = Field(..., pattern=TIME_PATTERN)
    duration_minutes: int = Field(default=30, ge=5, le=480)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    reason: str = Field(..., min_length=1, max_length=500)
    notes: str | None = Field(None, max_length=1000)
    doctor_notes: str | None = Field(None, max_length=1000)
    prescription: Prescription | None = None
    payment: Payment
    reminders: Reminders = Field(default_factory=Reminders)
    cancelled_by: UUID | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = Field(None, max_length=500)
    completed_at: datetime | None = None
    rating: int | None = Field(None, ge=1, le=5)
    review: str | None = Field(None, max_length=500)
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @property
    def scheduled_at(self) -> datetime:
        """Composed date-time of the appointment."""
        return compose_datetime(self.date, self.time)

    @property
    def is_active(self) -> bool:
        """Whether the appointment still holds its slot."""
        return self.status in ACTIVE_STATUSES

    @property
    def slot_key(self) -> tuple[UUID, CalendarDate, str]:
        """Doctor slot occupied by this appointment."""
        return (self.doctor_id, self.date, self.time)


class AppointmentCreate(CamelModel):
    """Booking request."""

    doctor_id: UUID
    date: CalendarDate
    time: str = Field(..., pattern=TIME_PATTERN)
    reason: str = Field(..., min_length=1, max_length=500)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        """Reject whitespace-only reasons."""
        if not v.strip():
            raise ValueError("Reason for appointment is required")
        return v


class AppointmentUpdate(CamelModel):
    """
    Field edits on an existing appointment.

    Which of these a caller may set depends on its role; the scheduling
    service enforces that.
    """

    status: AppointmentStatus | None = None
    notes: str | None = Field(None, max_length=1000)
    doctor_notes: str | None = Field(None, max_length=1000)
    prescription: Prescription | None = None
    cancellation_reason: str | None = Field(None, max_length=500)
    # Admin only
    patient_id: UUID | None = None
    doctor_id: UUID | None = None
    date: CalendarDate | None = None
    time: str | None = Field(None, pattern=TIME_PATTERN)
    duration_minutes: int | None = Field(None, ge=5, le=480)
    reason: str | None = Field(None, min_length=1, max_length=500)
    payment: Payment | None = None
    reminders: Reminders | None = None
    rating: int | None = Field(None, ge=1, le=5)
    review: str | None = Field(None, max_length=500)


class AppointmentCancel(CamelModel):
    """Cancellation request."""

    cancellation_reason: str | None = Field(None, max_length=500)


class AppointmentReschedule(CamelModel):
    """Move an appointment to another slot."""

    date: CalendarDate
    time: str = Field(..., pattern=TIME_PATTERN)


class AppointmentFilters(CamelModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    patient_id: UUID | None = None
    start_date: CalendarDate | None = None
    end_date: CalendarDate | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)


class AppointmentListResponse(CamelModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    pages: int
    items: list[Appointment]


class RescheduleResponse(CamelModel):
    """Outcome of a reschedule: the cancelled original and its replacement."""

    previous: Appointment
    appointment: Appointment
