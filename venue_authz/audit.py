"""
Audit sink for authorization decisions.

The engine never writes audit records itself; the embedding application
forwards each decision through ``emit_decision``. Sinks are fire-and-forget:
a failing sink is logged and never changes or blocks the decision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any, Protocol, runtime_checkable

from venue_authz.engine import Decision, Principal
from venue_authz.engine.types import EntityId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    """One authorization outcome, as handed to an audit sink."""

    user_id: EntityId
    role: str
    resource: str
    action: str
    venue_id: EntityId | None
    allow: bool
    reason: str
    detail: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_decision(
        cls,
        principal: Principal,
        resource: str,
        action: str,
        decision: Decision,
        venue_id: EntityId | None = None,
        timestamp: datetime | None = None,
    ) -> AuditRecord:
        return cls(
            user_id=principal.user_id,
            role=principal.role.name,
            resource=resource,
            action=action,
            venue_id=venue_id,
            allow=decision.allow,
            reason=decision.reason.value,
            detail=decision.detail,
            timestamp=timestamp or datetime.now(timezone.utc),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dict."""
        return {
            "user_id": self.user_id,
            "role": self.role,
            "resource": self.resource,
            "action": self.action,
            "venue_id": self.venue_id,
            "allow": self.allow,
            "reason": self.reason,
            "detail": self.detail,
            "timestamp": self.timestamp.isoformat(),
        }


@runtime_checkable
class AuditSink(Protocol):
    def record(self, entry: AuditRecord) -> None: ...


class LoggingAuditSink:
    """Writes one INFO line per decision to the ``venue_authz.audit`` logger."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def record(self, entry: AuditRecord) -> None:
        self._log.info(
            "AUDIT: user=%s role=%s resource=%s action=%s venue=%s allow=%s reason=%s detail=%s at=%s",
            entry.user_id,
            entry.role,
            entry.resource,
            entry.action,
            entry.venue_id,
            entry.allow,
            entry.reason,
            entry.detail,
            entry.timestamp.isoformat(),
        )


def emit_decision(
    sink: AuditSink,
    principal: Principal,
    resource: str,
    action: str,
    decision: Decision,
    venue_id: EntityId | None = None,
) -> None:
    """Forward a decision to ``sink``; sink errors are logged, never raised."""

    entry = AuditRecord.from_decision(principal, resource, action, decision, venue_id)
    try:
        sink.record(entry)
    except Exception:
        logger.exception(
            "Audit sink failed; decision stands user=%s resource=%s action=%s allow=%s",
            principal.user_id,
            resource,
            action,
            decision.allow,
        )
