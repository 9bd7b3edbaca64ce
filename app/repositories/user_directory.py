"""Read access to users owned by the identity service."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.users import users
from app.schemas.users import UserProfile


class UserDirectory(ABC):
    """Lookup of doctors and patients by ID."""

    @abstractmethod
    async def get_user(self, user_id: UUID) -> UserProfile | None:
        """Fetch one user profile."""

    @abstractmethod
    async def get_users(self, user_ids: Iterable[UUID]) -> dict[UUID, UserProfile]:
        """Fetch several profiles keyed by ID; unknown IDs are omitted."""


class SqlUserDirectory(UserDirectory):
    """User directory backed by the ``users`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    @staticmethod
    def _to_profile(row) -> UserProfile:
        mapping = dict(row._mapping)
        mapping["availability"] = mapping.get("availability") or {}
        if mapping.get("consultation_fee") is not None:
            mapping["consultation_fee"] = float(mapping["consultation_fee"])
        return UserProfile.model_validate(mapping)

    async def get_user(self, user_id: UUID) -> UserProfile | None:
        async with self.session_factory() as session:
            result = await session.execute(select(users).where(users.c.id == user_id))
            row = result.fetchone()
        return self._to_profile(row) if row else None

    async def get_users(self, user_ids: Iterable[UUID]) -> dict[UUID, UserProfile]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        async with self.session_factory() as session:
            result = await session.execute(select(users).where(users.c.id.in_(ids)))
            rows = result.fetchall()
        profiles = [self._to_profile(row) for row in rows]
        return {profile.id: profile for profile in profiles}
