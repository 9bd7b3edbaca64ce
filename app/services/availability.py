"""Bookable slot computation from a doctor's weekly availability."""

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from app.schemas.appointments import parse_slot_time
from app.schemas.doctors import WEEKDAYS, WeeklyAvailability


def format_slot(moment: datetime) -> str:
    """Render a slot start as ``HH:MM``."""
    return moment.strftime("%H:%M")


class AvailabilityResolver:
    """
    Turns a weekly availability template into the free slots of one day.

    Each configured interval is walked in fixed steps from its start; a slot
    is offered only if it fits entirely before the interval end and its time
    is not already occupied. For the current day, slots at or before ``now``
    are never offered.
    """

    def __init__(self, slot_minutes: int = 30):
        """Initialize with the slot length in minutes."""
        if slot_minutes <= 0:
            raise ValueError("slot_minutes must be positive")
        self.slot_minutes = slot_minutes

    def next_round_slot(self, now: datetime) -> datetime:
        """First slot boundary strictly after ``now``, counted from midnight."""
        midnight = datetime.combine(now.date(), datetime.min.time())
        elapsed = int((now - midnight).total_seconds() // 60)
        boundary = (elapsed // self.slot_minutes + 1) * self.slot_minutes
        return midnight + timedelta(minutes=boundary)

    def resolve(
        self,
        availability: WeeklyAvailability,
        target_date: date,
        occupied: Iterable[str],
        now: datetime | None = None,
    ) -> list[str]:
        """
        Compute free slots for ``target_date``.

        Args:
            availability: Weekday name to ordered working intervals
            target_date: Day to resolve
            occupied: Times already taken by active appointments that day
            now: Current clinic-local time; enables past-slot exclusion

        Returns:
            Ordered ``HH:MM`` slot start times
        """
        if now is not None and target_date < now.date():
            return []

        windows = availability.get(WEEKDAYS[target_date.weekday()], [])
        taken = set(occupied)
        step = timedelta(minutes=self.slot_minutes)
        is_today = now is not None and target_date == now.date()

        slots: list[str] = []
        for window in windows:
            cursor = datetime.combine(target_date, parse_slot_time(window.start))
            end = datetime.combine(target_date, parse_slot_time(window.end))

            if is_today and cursor <= now:
                cursor = max(cursor, self.next_round_slot(now))

            while cursor + step <= end:
                label = format_slot(cursor)
                if label not in taken and label not in slots:
                    slots.append(label)
                cursor += step

        return slots
