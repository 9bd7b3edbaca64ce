"""Wall-clock access in the clinic's time zone."""

from collections.abc import Callable
from datetime import datetime
from zoneinfo import ZoneInfo

from app.config import settings

Clock = Callable[[], datetime]


def clinic_now() -> datetime:
    """Return the current naive wall-clock time in the configured clinic zone."""
    return datetime.now(ZoneInfo(settings.clinic_timezone)).replace(tzinfo=None)
