"""Appointment status state machine."""

from datetime import datetime, timedelta
from typing import Any

from app.core.exceptions import ForbiddenException, StateException
from app.schemas.appointments import (
    ACTIVE_STATUSES,
    ActorRole,
    Appointment,
    AppointmentStatus,
)
from app.schemas.users import Actor

STAFF = frozenset({ActorRole.DOCTOR, ActorRole.ADMIN})
EVERYONE = frozenset(ActorRole)

# from-status -> to-status -> roles allowed to request the change
TRANSITIONS: dict[AppointmentStatus, dict[AppointmentStatus, frozenset[ActorRole]]] = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CONFIRMED: STAFF,
        AppointmentStatus.CANCELLED: EVERYONE,
        AppointmentStatus.COMPLETED: STAFF,
        AppointmentStatus.NO_SHOW: STAFF,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.CANCELLED: EVERYONE,
        AppointmentStatus.COMPLETED: STAFF,
        AppointmentStatus.NO_SHOW: STAFF,
    },
}


class LifecycleEngine:
    """
    Decides which status changes are allowed and what they write.

    Every method is pure: it inspects an appointment and a point in time and
    returns a decision or the field values to persist, leaving persistence to
    the caller.
    """

    def __init__(
        self,
        cancellation_window: timedelta = timedelta(hours=2),
        reschedule_window: timedelta = timedelta(hours=24),
    ):
        """Initialize with the minimum notice required to cancel or reschedule."""
        self.cancellation_window = cancellation_window
        self.reschedule_window = reschedule_window

    def can_cancel(self, appointment: Appointment, now: datetime) -> bool:
        """Active and more than the cancellation window away."""
        return appointment.is_active and appointment.scheduled_at - now > self.cancellation_window

    def can_reschedule(self, appointment: Appointment, now: datetime) -> bool:
        """Active and more than the reschedule window away."""
        return appointment.is_active and appointment.scheduled_at - now > self.reschedule_window

    def due_for_auto_completion(self, appointment: Appointment, now: datetime) -> bool:
        """Active and its composed date-time is strictly in the past."""
        return appointment.is_active and appointment.scheduled_at < now

    def auto_completion_values(self, now: datetime) -> dict[str, Any]:
        """Values written by the automatic completion transition."""
        return {
            "status": AppointmentStatus.COMPLETED,
            "completed_at": now,
            "updated_at": now,
        }

    def transition(
        self,
        appointment: Appointment,
        target: AppointmentStatus,
        actor: Actor,
        now: datetime,
        cancellation_reason: str | None = None,
    ) -> dict[str, Any]:
        """
        Validate an explicit status change and build the values to persist.

        Raises:
            StateException: If the edge is not in the transition table or the
                cancellation window has closed
            ForbiddenException: If the actor's role may not request the edge
        """
        current = appointment.status
        allowed = TRANSITIONS.get(current, {})

        if target not in allowed:
            raise StateException(
                f"Cannot change appointment status from '{current.value}' to '{target.value}'"
            )

        if actor.role not in allowed[target]:
            raise ForbiddenException(
                f"A {actor.role.value} cannot mark an appointment as '{target.value}'"
            )

        values: dict[str, Any] = {"status": target, "updated_at": now}

        if target == AppointmentStatus.CANCELLED:
            if not self.can_cancel(appointment, now):
                hours = int(self.cancellation_window.total_seconds() // 3600)
                raise StateException(
                    "Appointment cannot be cancelled at this time; "
                    f"cancellations close {hours} hours before the visit"
                )
            values.update(
                {
                    "cancelled_by": actor.id,
                    "cancelled_at": now,
                    "cancellation_reason": cancellation_reason,
                }
            )
        elif target == AppointmentStatus.COMPLETED:
            values["completed_at"] = now

        return values


def is_active_status(status: AppointmentStatus) -> bool:
    """Whether ``status`` holds a slot."""
    return status in ACTIVE_STATUSES
