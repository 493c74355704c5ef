"""Field-level access resolution, bounded above by the action-level decision."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from .snapshot import FactProvider
from .types import AccessLevel, Decision, EntityId

logger = logging.getLogger(__name__)


def ceiling_for(decision: Decision, *, mutating: bool) -> AccessLevel:
    """
    Translate an action-level decision into the highest field access it permits.

    deny -> NONE, allow on a mutating action -> WRITE, allow on a view -> READ.
    """

    if not decision.allow:
        return AccessLevel.NONE
    return AccessLevel.WRITE if mutating else AccessLevel.READ


class FieldAccessResolver:
    """
    Resolve one field of one resource for one role.

    A field rule only narrows: the result is ``min(rule.access, ceiling)``.
    Without a rule the ceiling itself is returned. The resolver never consults
    the action-level engine; callers pass the ceiling in.
    """

    def __init__(self, facts: FactProvider) -> None:
        self._facts = facts

    def resolve(self, role_id: EntityId, resource: str, field: str, ceiling: AccessLevel) -> AccessLevel:
        rule = self._facts.field_rule(role_id, resource, field)
        if rule is None:
            return ceiling

        access = coerce_access(rule.access)
        if access is None:
            logger.warning(
                "Field rule with unknown access treated as none role=%s resource=%s field=%s access=%r",
                role_id,
                resource,
                field,
                rule.access,
            )
            return AccessLevel.NONE
        return access.cap(ceiling)


def coerce_access(raw: object) -> AccessLevel | None:
    if isinstance(raw, AccessLevel):
        return raw
    if isinstance(raw, str):
        try:
            return AccessLevel(raw.strip().lower())
        except ValueError:
            return None
    return None


# Fields that carry pay, personal or free-text data. Summaries flag the ones a
# principal can see so admin screens can highlight them.
SENSITIVE_FIELDS: dict[str, frozenset[str]] = {
    "users": frozenset({"weekdayRate", "saturdayRate", "sundayRate", "dateOfBirth", "phone", "bio", "password"}),
    "rosters": frozenset({"shifts.payRate", "shifts.breakMinutes"}),
    "timeoff": frozenset({"reason", "notes"}),
}


def is_sensitive_field(resource: str, field: str) -> bool:
    return field in SENSITIVE_FIELDS.get(resource, frozenset())


@dataclass(frozen=True)
class FieldSummary:
    """Per-resource view of what one principal may read and write."""

    viewable: tuple[str, ...]
    editable: tuple[str, ...]
    # Sensitive fields among the viewable ones.
    sensitive: tuple[str, ...]

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "viewable": list(self.viewable),
            "editable": list(self.editable),
            "sensitive": list(self.sensitive),
        }
