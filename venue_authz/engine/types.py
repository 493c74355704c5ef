"""
Data contracts shared by the evaluators and the decision engine.

Everything here is a frozen dataclass or an enum so a snapshot can be handed
to any number of concurrent requests without copying.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

EntityId = Union[int, str]

VENUE_CONTEXT_KEY = "venueId"


# ---- Enums ---------------------------------------------------------------------------


class OverrideKind(str, Enum):
    GRANT = "grant"
    REVOKE = "revoke"


class AccessLevel(str, Enum):
    """Field access, ordered NONE < READ < WRITE."""

    NONE = "none"
    READ = "read"
    WRITE = "write"

    @property
    def rank(self) -> int:
        return _ACCESS_RANK[self]

    def admits(self, intent: AccessLevel) -> bool:
        """True if this level is enough for ``intent`` (READ or WRITE)."""
        return intent is not AccessLevel.NONE and self.rank >= intent.rank

    def cap(self, ceiling: AccessLevel) -> AccessLevel:
        return self if self.rank <= ceiling.rank else ceiling


_ACCESS_RANK = {AccessLevel.NONE: 0, AccessLevel.READ: 1, AccessLevel.WRITE: 2}


class Operator(str, Enum):
    EQ = "="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"


class ReasonCode(str, Enum):
    ADMIN_BYPASS = "admin_bypass"
    INACTIVE_PRINCIPAL = "inactive_principal"
    NO_GRANT = "no_grant"
    VENUE_REVOKED = "venue_revoked"
    CONDITION_FAILED = "condition_failed"
    OUTSIDE_TIME_WINDOW = "outside_time_window"
    ALLOWED = "allowed"


# ---- Principal -----------------------------------------------------------------------


@dataclass(frozen=True)
class Role:
    role_id: EntityId
    name: str


@dataclass(frozen=True)
class Principal:
    """
    Authenticated actor for a single authorization check.

    Built fresh per request by the fact provider and never mutated.
    """

    user_id: EntityId
    role: Role
    active: bool = True
    venue_ids: frozenset[EntityId] = field(default_factory=frozenset)

    @property
    def role_id(self) -> EntityId:
        return self.role.role_id


# ---- Rule rows -----------------------------------------------------------------------


@dataclass(frozen=True)
class PermissionGrant:
    role_id: EntityId
    resource: str
    action: str


@dataclass(frozen=True)
class VenueOverride:
    """Per-user, per-venue exception layered over the role grants."""

    user_id: EntityId
    venue_id: EntityId
    resource: str
    action: str
    kind: OverrideKind


@dataclass(frozen=True)
class FieldRule:
    role_id: EntityId
    resource: str
    field: str
    access: AccessLevel


@dataclass(frozen=True)
class ConditionalRule:
    """
    Business-rule predicate over the request context.

    ``operator`` stays a plain string: rows written by an older admin tool may
    carry operators the evaluator does not know, and those must simply never
    match.
    """

    role_id: EntityId
    resource: str
    action: str
    field: str
    operator: str
    value: Any

    def describe(self) -> str:
        return f"{self.field} {self.operator} {self.value!r}"


@dataclass(frozen=True)
class TimeWindowRule:
    """Allowed window: ISO weekdays (1 = Monday) and ``[start_time, end_time)``."""

    role_id: EntityId
    resource: str
    action: str
    days_of_week: frozenset[int]
    start_time: str
    end_time: str
    timezone: str = "UTC"


# ---- Output --------------------------------------------------------------------------


@dataclass(frozen=True)
class Decision:
    allow: bool
    reason: ReasonCode
    detail: str | None = None

    @classmethod
    def allowed(cls, reason: ReasonCode = ReasonCode.ALLOWED) -> Decision:
        return cls(allow=True, reason=reason)

    @classmethod
    def deny(cls, reason: ReasonCode, detail: str | None = None) -> Decision:
        return cls(allow=False, reason=reason, detail=detail)

    def __bool__(self) -> bool:
        return self.allow

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable dict."""
        return {
            "allow": self.allow,
            "reason": self.reason.value,
            "detail": self.detail,
        }
