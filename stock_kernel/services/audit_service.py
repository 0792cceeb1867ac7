"""
AuditService -- append-only audit log of inventory actions.

Responsibility:
    Writes one AuditEvent row per significant action (transfer created or
    rejected, stock adjusted by an opname, purchase order created, product or
    branch registered, SKU allocated).

Architecture position:
    Kernel > Services.  Flush-only; the row commits or rolls back with the
    action it describes.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import AuditEntry
from stock_kernel.logging_config import get_logger
from stock_kernel.models.audit_event import AuditAction, AuditEvent
from stock_kernel.services.base import BaseService

logger = get_logger("services.audit")


def _plain(value: Any) -> Any:
    """JSON-safe copy of ``value``: UUIDs, Decimals and dates become strings."""
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


class AuditService(BaseService[AuditEvent]):

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def record(
        self,
        action: AuditAction,
        entity: str,
        entity_id: UUID | str | None,
        details: dict[str, Any] | None = None,
        actor_id: UUID | None = None,
    ) -> AuditEntry:
        event = AuditEvent(
            action=action.value,
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=_plain(details or {}),
            actor_id=actor_id,
            occurred_at=self._clock.now(),
        )
        self.session.add(event)
        self.session.flush()
        logger.info(
            "audit_recorded",
            extra={
                "action": action.value,
                "entity": entity,
                "entity_id": event.entity_id,
            },
        )
        return event.to_dto()
