"""Doctor availability schemas."""

from datetime import date
from uuid import UUID

from pydantic import Field, model_validator

from app.schemas.appointments import TIME_PATTERN, CamelModel, parse_slot_time

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class AvailabilityWindow(CamelModel):
    """One working interval within a weekday."""

    start: str = Field(..., pattern=TIME_PATTERN)
    end: str = Field(..., pattern=TIME_PATTERN)

    @model_validator(mode="after")
    def validate_order(self) -> "AvailabilityWindow":
        """Validate end is after start."""
        if parse_slot_time(self.end) <= parse_slot_time(self.start):
            raise ValueError("Availability end must be after start")
        return self


# Weekday name -> ordered intervals
WeeklyAvailability = dict[str, list[AvailabilityWindow]]


class DoctorSummary(CamelModel):
    """Doctor details shown next to availability."""

    id: UUID
    name: str | None
    specialization: str | None
    consultation_fee: float


class DoctorAvailabilityResponse(CamelModel):
    """Free slots for a doctor on one day."""

    doctor: DoctorSummary
    date: date
    available_slots: list[str]
