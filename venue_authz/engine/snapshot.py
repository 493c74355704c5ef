"""
Fact provider interface and the in-memory snapshot the engine reads from.

The engine never fetches anything itself. A fact provider (rule file, SQL
loader, test fixture) materializes the rows into a ``RuleSnapshot`` before
``authorize`` is called; the snapshot is immutable afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Protocol, runtime_checkable

from .types import (
    ConditionalRule,
    EntityId,
    FieldRule,
    OverrideKind,
    PermissionGrant,
    TimeWindowRule,
    VenueOverride,
)


@runtime_checkable
class FactProvider(Protocol):
    """Read-only view over the rule rows for one or more roles/users."""

    def has_grant(self, role_id: EntityId, resource: str, action: str) -> bool: ...

    def venue_override(
        self, user_id: EntityId, venue_id: EntityId, resource: str, action: str
    ) -> VenueOverride | None: ...

    def conditional_rules(self, role_id: EntityId, resource: str, action: str) -> tuple[ConditionalRule, ...]: ...

    def time_window_rules(self, role_id: EntityId, resource: str, action: str) -> tuple[TimeWindowRule, ...]: ...

    def field_rule(self, role_id: EntityId, resource: str, field: str) -> FieldRule | None: ...

    def grants_for_role(self, role_id: EntityId) -> frozenset[tuple[str, str]]: ...

    def overrides_for(self, user_id: EntityId, venue_id: EntityId) -> tuple[VenueOverride, ...]: ...


_RoleKey = tuple[EntityId, str, str]


class RuleSnapshot:
    """
    Indexed, immutable collection of rule rows.

    Usage:
        snapshot = RuleSnapshot(grants=[PermissionGrant("manager", "timeoff", "approve")])
        engine = DecisionEngine(snapshot)

    Duplicate venue overrides (same user/venue/resource/action) and duplicate
    field rules (same role/resource/field) collapse to the last row given,
    matching "a reissued override replaces the previous one".
    """

    def __init__(
        self,
        grants: Iterable[PermissionGrant] = (),
        venue_overrides: Iterable[VenueOverride] = (),
        field_rules: Iterable[FieldRule] = (),
        conditional_rules: Iterable[ConditionalRule] = (),
        time_window_rules: Iterable[TimeWindowRule] = (),
    ) -> None:
        grant_keys: set[_RoleKey] = set()
        role_grants: dict[EntityId, set[tuple[str, str]]] = {}
        for grant in grants:
            grant_keys.add((grant.role_id, grant.resource, grant.action))
            role_grants.setdefault(grant.role_id, set()).add((grant.resource, grant.action))

        overrides: dict[tuple[EntityId, EntityId, str, str], VenueOverride] = {}
        for override in venue_overrides:
            overrides[(override.user_id, override.venue_id, override.resource, override.action)] = override

        fields: dict[_RoleKey, FieldRule] = {}
        for rule in field_rules:
            fields[(rule.role_id, rule.resource, rule.field)] = rule

        conditions: dict[_RoleKey, list[ConditionalRule]] = {}
        for rule in conditional_rules:
            conditions.setdefault((rule.role_id, rule.resource, rule.action), []).append(rule)

        windows: dict[_RoleKey, list[TimeWindowRule]] = {}
        for rule in time_window_rules:
            windows.setdefault((rule.role_id, rule.resource, rule.action), []).append(rule)

        self._grant_keys = frozenset(grant_keys)
        self._role_grants = {role: frozenset(pairs) for role, pairs in role_grants.items()}
        self._overrides: Mapping[tuple[EntityId, EntityId, str, str], VenueOverride] = MappingProxyType(overrides)
        self._fields: Mapping[_RoleKey, FieldRule] = MappingProxyType(fields)
        self._conditions = {key: tuple(rules) for key, rules in conditions.items()}
        self._windows = {key: tuple(rules) for key, rules in windows.items()}

    # ---- FactProvider ---------------------------------------------------------------

    def has_grant(self, role_id: EntityId, resource: str, action: str) -> bool:
        return (role_id, resource, action) in self._grant_keys

    def venue_override(
        self, user_id: EntityId, venue_id: EntityId, resource: str, action: str
    ) -> VenueOverride | None:
        return self._overrides.get((user_id, venue_id, resource, action))

    def conditional_rules(self, role_id: EntityId, resource: str, action: str) -> tuple[ConditionalRule, ...]:
        return self._conditions.get((role_id, resource, action), ())

    def time_window_rules(self, role_id: EntityId, resource: str, action: str) -> tuple[TimeWindowRule, ...]:
        return self._windows.get((role_id, resource, action), ())

    def field_rule(self, role_id: EntityId, resource: str, field: str) -> FieldRule | None:
        return self._fields.get((role_id, resource, field))

    def grants_for_role(self, role_id: EntityId) -> frozenset[tuple[str, str]]:
        return self._role_grants.get(role_id, frozenset())

    def overrides_for(self, user_id: EntityId, venue_id: EntityId) -> tuple[VenueOverride, ...]:
        return tuple(o for o in self._overrides.values() if o.user_id == user_id and o.venue_id == venue_id)

    def __repr__(self) -> str:
        return (
            f"RuleSnapshot(grants={len(self._grant_keys)}, overrides={len(self._overrides)}, "
            f"field_rules={len(self._fields)}, conditional_rules={sum(map(len, self._conditions.values()))}, "
            f"time_windows={sum(map(len, self._windows.values()))})"
        )


def override_kind(override: VenueOverride | None) -> OverrideKind | None:
    return override.kind if override is not None else None
