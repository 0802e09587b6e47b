"""Append-only audit trail of accepted device transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from climatesync.models.enums import ActionType, Actor

if TYPE_CHECKING:
    from climatesync.core.stores import AuditLogStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class Transition:
    """Immutable record of one accepted power or mode change."""

    actor: Actor
    action_type: ActionType
    description: str
    device_id: str
    timestamp: datetime = field(default_factory=_utc_now)


class AuditRecorder:
    """Best-effort writer in front of an append-only :class:`AuditLogStore`.

    A failed write is logged and reported through the return value; it never
    propagates, so a state change that is already persisted is never undone
    because its audit entry could not be stored.
    """

    def __init__(self, store: AuditLogStore) -> None:
        self._store = store

    async def record(
        self,
        actor: Actor,
        action_type: ActionType,
        description: str,
        device_id: str,
        timestamp: datetime | None = None,
    ) -> Transition | None:
        transition = Transition(
            actor=Actor(actor),
            action_type=ActionType(action_type),
            description=description,
            device_id=device_id,
            timestamp=timestamp or _utc_now(),
        )
        return await self.record_transition(transition)

    async def record_transition(self, transition: Transition) -> Transition | None:
        try:
            await self._store.append(transition)
        except Exception:
            logger.exception(
                "Audit write failed for device %s (%s by %s)",
                transition.device_id,
                transition.action_type.value,
                transition.actor.value,
            )
            return None
        logger.info(
            "Audit: device=%s actor=%s action=%s %s",
            transition.device_id,
            transition.actor.value,
            transition.action_type.value,
            transition.description,
        )
        return transition

    async def history(self, device_id: str, *, limit: int = 100) -> list[Transition]:
        return await self._store.list_for_device(device_id, limit=limit)


__all__ = ["AuditRecorder", "Transition"]
