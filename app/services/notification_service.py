"""Outbound appointment notifications."""

import structlog

from app.schemas.appointments import Appointment

logger = structlog.get_logger(__name__)


class AppointmentNotifier:
    """
    Hands finalized appointment records to the notification channel.

    Email and SMS delivery are owned by a separate service; this default
    implementation records each notification as a structured log event so the
    delivery pipeline can pick it up from the log stream.
    """

    def _emit(self, event: str, appointment: Appointment, **extra) -> None:
        logger.info(
            event,
            appointment_id=str(appointment.id),
            patient_id=str(appointment.patient_id),
            doctor_id=str(appointment.doctor_id),
            date=appointment.date.isoformat(),
            time=appointment.time,
            status=appointment.status.value,
            email_reminder=appointment.reminders.email.enabled,
            sms_reminder=appointment.reminders.sms.enabled,
            **extra,
        )

    async def appointment_booked(self, appointment: Appointment) -> None:
        """Notify the patient and doctor of a new booking."""
        self._emit("notification_appointment_booked", appointment)

    async def appointment_confirmed(self, appointment: Appointment) -> None:
        """Notify the patient that the doctor confirmed."""
        self._emit("notification_appointment_confirmed", appointment)

    async def appointment_cancelled(self, appointment: Appointment) -> None:
        """Notify both parties of a cancellation."""
        self._emit(
            "notification_appointment_cancelled",
            appointment,
            cancellation_reason=appointment.cancellation_reason,
        )

    async def appointment_rescheduled(self, previous: Appointment, appointment: Appointment) -> None:
        """Notify both parties that an appointment moved."""
        self._emit(
            "notification_appointment_rescheduled",
            appointment,
            previous_appointment_id=str(previous.id),
            previous_date=previous.date.isoformat(),
            previous_time=previous.time,
        )


async def notify_safely(send, *args) -> None:
    """
    Run a notifier call, logging instead of raising on failure.

    Args:
        send: Bound notifier coroutine function
        *args: Appointment records passed to ``send``
    """
    try:
        await send(*args)
    except Exception as e:
        logger.warning(
            "failed_to_send_appointment_notification",
            notification=getattr(send, "__name__", str(send)),
            error=str(e),
        )
