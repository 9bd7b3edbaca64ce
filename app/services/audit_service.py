"""Audit trail of mutating appointment operations."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from uuid import UUID

import structlog

from app.schemas.users import Actor

logger = structlog.get_logger("audit")


@dataclass
class AuditEntry:
    """An action being tracked; the block may fill in the resource once known."""

    actor: Actor
    action: str
    resource_id: UUID | str | None = None


class AuditLogger:
    """Records ``(actor, action, resource, outcome)`` tuples as log events."""

    async def record(
        self,
        actor: Actor,
        action: str,
        resource_id: UUID | str | None,
        outcome: str = "success",
    ) -> None:
        """
        Record one audited action.

        Args:
            actor: Caller that performed the action
            action: Dotted action name, e.g. ``appointment.cancel``
            resource_id: Affected appointment, if any
            outcome: ``success`` or the error kind that stopped the action
        """
        logger.info(
            "audit_event",
            actor_id=str(actor.id),
            actor_role=actor.role.value,
            action=action,
            resource_id=str(resource_id) if resource_id is not None else None,
            outcome=outcome,
        )

    @asynccontextmanager
    async def track(
        self,
        actor: Actor,
        action: str,
        resource_id: UUID | str | None = None,
    ) -> AsyncIterator[AuditEntry]:
        """
        Record the action when the enclosed block finishes.

        The outcome is ``success``, or the name of the exception that escaped
        the block; the exception is re-raised. Actions that create a resource
        set ``resource_id`` on the yielded entry.
        """
        entry = AuditEntry(actor, action, resource_id)
        try:
            yield entry
        except Exception as e:
            await self.record(actor, action, entry.resource_id, outcome=type(e).__name__)
            raise
        await self.record(actor, action, entry.resource_id)
