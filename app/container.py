"""Process-wide wiring of stores and services."""

from dataclasses import dataclass, field
from datetime import timedelta

import structlog

from app.config import Settings
from app.core.clock import Clock, clinic_now
from app.core.redis_client import CacheManager, get_redis_client
from app.repositories.appointment_store import AppointmentStore
from app.repositories.memory import InMemoryAppointmentStore, InMemoryUserDirectory
from app.repositories.user_directory import UserDirectory
from app.services.audit_service import AuditLogger
from app.services.availability import AvailabilityResolver
from app.services.conflict_guard import ConflictGuard
from app.services.lifecycle import LifecycleEngine
from app.services.notification_service import AppointmentNotifier
from app.services.report_service import ReportService
from app.services.scheduling_service import SchedulingService

logger = structlog.get_logger()


@dataclass
class ServiceContainer:
    """
    Everything a request handler needs, built once per process.

    The appointment store is chosen here and handed to every service; nothing
    else looks it up.
    """

    store: AppointmentStore
    users: UserDirectory
    cache: CacheManager | None = None
    clock: Clock = clinic_now
    slot_minutes: int = 30
    cancellation_window: timedelta = timedelta(hours=2)
    reschedule_window: timedelta = timedelta(hours=24)
    cache_ttl: int = 300
    audit: AuditLogger = field(default_factory=AuditLogger)
    notifier: AppointmentNotifier = field(default_factory=AppointmentNotifier)

    def __post_init__(self) -> None:
        self.lifecycle = LifecycleEngine(self.cancellation_window, self.reschedule_window)
        self.guard = ConflictGuard(self.store)
        self.resolver = AvailabilityResolver(self.slot_minutes)
        self.scheduling = SchedulingService(
            self.store,
            self.users,
            lifecycle=self.lifecycle,
            guard=self.guard,
            resolver=self.resolver,
            clock=self.clock,
            cache=self.cache,
        )
        self.reports = ReportService(
            self.store,
            self.users,
            clock=self.clock,
            cache=self.cache,
            cache_ttl=self.cache_ttl,
        )

    async def close(self) -> None:
        """Release the store's resources."""
        await self.store.close()


def build_container(settings: Settings) -> ServiceContainer:
    """
    Build the container for the configured storage backend.

    Args:
        settings: Application settings

    Returns:
        Wired service container
    """
    if settings.uses_memory_store:
        store: AppointmentStore = InMemoryAppointmentStore()
        users: UserDirectory = InMemoryUserDirectory()
    else:
        from app.database import get_session_factory
        from app.repositories.sql import SqlAppointmentStore
        from app.repositories.user_directory import SqlUserDirectory

        session_factory = get_session_factory()
        store = SqlAppointmentStore(session_factory)
        users = SqlUserDirectory(session_factory)

    cache = CacheManager(get_redis_client()) if settings.report_cache_enabled else None

    logger.info(
        "service_container_built",
        storage_backend=settings.storage_backend,
        report_cache=cache is not None,
    )
    return ServiceContainer(
        store=store,
        users=users,
        cache=cache,
        slot_minutes=settings.slot_minutes,
        cancellation_window=timedelta(hours=settings.cancellation_window_hours),
        reschedule_window=timedelta(hours=settings.reschedule_window_hours),
        cache_ttl=settings.report_cache_ttl_seconds,
    )
