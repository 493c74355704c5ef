"""
Rule-file fact provider.

Loads grants, venue overrides, field rules, conditional rules and time
windows from YAML into an immutable RuleSnapshot. This is the administration
side of the engine, so it validates strictly: bad time windows, unknown
operators and unknown access levels are rejected here instead of silently
never matching at decision time.

Expected shape (simplified):

    authz:
      grants:
        - {role: manager, resource: timeoff, action: approve}
      venue_overrides:
        - {user: u-7, venue: v-1, resource: timeoff, action: approve, kind: revoke}
      field_rules:
        - {role: staff, resource: users, field: weekdayRate, access: none}
      conditional_rules:
        - {role: manager, resource: timeoff, action: approve, field: durationDays, operator: "<", value: 5}
      time_windows:
        - {role: staff, resource: reports, action: view_team, days: [1, 2, 3, 4, 5],
           start: "09:00", end: "17:00", timezone: Australia/Sydney}
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    field_validator,
    model_validator,
)

from venue_authz.engine import (
    AccessLevel,
    ConditionalRule,
    FieldRule,
    InvalidRuleError,
    OverrideKind,
    PermissionGrant,
    RuleSnapshot,
    TimeWindowRule,
    VenueOverride,
    validate_time_window,
)
from venue_authz.engine.conditions import freeze_value, parse_operator

logger = logging.getLogger(__name__)

Ident = Union[int, str]
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class RulesConfigError(ValueError):
    """Raised when the rule file is invalid."""


class _Row(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class GrantRow(_Row):
    role: Ident
    resource: Name
    action: Name


class VenueOverrideRow(_Row):
    user: Ident
    venue: Ident
    resource: Name
    action: Name
    kind: OverrideKind

    @field_validator("kind", mode="before")
    @classmethod
    def _lower_kind(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class FieldRuleRow(_Row):
    role: Ident
    resource: Name
    field: Name
    access: AccessLevel

    @field_validator("access", mode="before")
    @classmethod
    def _lower_access(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class ConditionalRuleRow(_Row):
    role: Ident
    resource: Name
    action: Name
    field: Name
    operator: str
    value: Any = None

    @field_validator("operator")
    @classmethod
    def _known_operator(cls, value: str) -> str:
        operator = parse_operator(value)
        if operator is None:
            raise ValueError(f"unknown operator {value!r}")
        return operator.value

    @model_validator(mode="after")
    def _list_for_membership(self) -> ConditionalRuleRow:
        if self.operator in ("in", "not_in") and not isinstance(self.value, list):
            raise ValueError(f"operator {self.operator!r} needs a list value")
        return self


class TimeWindowRow(_Row):
    role: Ident
    resource: Name
    action: Name
    days: list[int] = Field(alias="days_of_week")
    start: str = Field(alias="start_time")
    end: str = Field(alias="end_time")
    timezone: str = "UTC"

    @model_validator(mode="after")
    def _valid_window(self) -> TimeWindowRow:
        try:
            validate_time_window(self.days, self.start, self.end, self.timezone)
        except InvalidRuleError as exc:
            raise ValueError(str(exc)) from exc
        return self


class RulesConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    grants: list[GrantRow] = Field(default_factory=list)
    venue_overrides: list[VenueOverrideRow] = Field(default_factory=list)
    field_rules: list[FieldRuleRow] = Field(default_factory=list)
    conditional_rules: list[ConditionalRuleRow] = Field(default_factory=list)
    time_windows: list[TimeWindowRow] = Field(default_factory=list)


def build_snapshot(model: RulesConfigModel) -> RuleSnapshot:
    return RuleSnapshot(
        grants=[PermissionGrant(g.role, g.resource, g.action) for g in model.grants],
        venue_overrides=[
            VenueOverride(o.user, o.venue, o.resource, o.action, o.kind) for o in model.venue_overrides
        ],
        field_rules=[FieldRule(f.role, f.resource, f.field, f.access) for f in model.field_rules],
        conditional_rules=[
            ConditionalRule(c.role, c.resource, c.action, c.field, c.operator, freeze_value(c.value))
            for c in model.conditional_rules
        ],
        time_window_rules=[
            TimeWindowRule(w.role, w.resource, w.action, frozenset(w.days), w.start, w.end, w.timezone)
            for w in model.time_windows
        ],
    )


def rules_from_mapping(raw: dict[str, Any]) -> RuleSnapshot:
    """Validate an already-parsed ``{"authz": {...}}`` document."""

    if not isinstance(raw, dict) or "authz" not in raw:
        raise RulesConfigError("Missing top-level 'authz' key in rule file")

    try:
        model = RulesConfigModel.model_validate(raw["authz"] or {})
    except ValidationError as exc:
        raise RulesConfigError(str(exc)) from exc
    return build_snapshot(model)


def load_rules(path: Path) -> RuleSnapshot:
    """Load and validate a YAML rule file from disk."""

    raw_text = path.read_text(encoding="utf-8")
    raw = yaml.safe_load(raw_text) or {}

    try:
        snapshot = rules_from_mapping(raw)
    except RulesConfigError as exc:
        raise RulesConfigError(f"{path}: {exc}") from exc

    logger.info("Loaded authorization rules from %s: %r", path, snapshot)
    return snapshot
