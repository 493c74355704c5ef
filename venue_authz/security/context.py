from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from venue_authz.engine import AccessLevel, Decision, DecisionEngine, Principal


@dataclass(frozen=True)
class AuthzContext:
    """
    Per-request authorization result.

    Attached to ``request.state.authz`` by the guard dependency so handlers
    and serializers can apply field-level rules without reloading facts.
    """

    principal: Principal
    resource: str
    action: str
    decision: Decision
    engine: DecisionEngine

    # Ceiling for field access, derived from the decision and whether the action mutates.
    ceiling: AccessLevel

    def field_access(self, field: str) -> AccessLevel:
        return self.engine.field_access(self.principal, self.resource, field, self.ceiling)

    def readable(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Drop the fields of ``data`` the principal may not read."""
        return self.engine.filter_fields(
            self.principal, self.resource, data, intent=AccessLevel.READ, ceiling=self.ceiling
        )

    def unwritable(self, data: Mapping[str, Any]) -> list[str]:
        """Fields of an incoming payload the principal may not write."""
        return self.engine.denied_fields(
            self.principal, self.resource, data, intent=AccessLevel.WRITE, ceiling=self.ceiling
        )
