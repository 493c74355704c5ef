"""
Authorization decision engine.

This package has no dependency on other venue_authz packages (db, security,
rule files). Build a RuleSnapshot (or any FactProvider), wrap it in a
DecisionEngine, and call authorize() / field_access() with a Principal.
"""

from .conditions import evaluate
from .decision import DecisionEngine
from .errors import AuthorizationInputError, InvalidRuleError
from .fields import SENSITIVE_FIELDS, FieldAccessResolver, FieldSummary, ceiling_for, is_sensitive_field
from .snapshot import FactProvider, RuleSnapshot
from .time_windows import matches, validate_time_window
from .types import (
    VENUE_CONTEXT_KEY,
    AccessLevel,
    ConditionalRule,
    Decision,
    FieldRule,
    Operator,
    OverrideKind,
    PermissionGrant,
    Principal,
    ReasonCode,
    Role,
    TimeWindowRule,
    VenueOverride,
)

__all__ = [
    "SENSITIVE_FIELDS",
    "VENUE_CONTEXT_KEY",
    "AccessLevel",
    "AuthorizationInputError",
    "ConditionalRule",
    "Decision",
    "DecisionEngine",
    "FactProvider",
    "FieldAccessResolver",
    "FieldRule",
    "FieldSummary",
    "InvalidRuleError",
    "Operator",
    "OverrideKind",
    "PermissionGrant",
    "Principal",
    "ReasonCode",
    "Role",
    "RuleSnapshot",
    "TimeWindowRule",
    "VenueOverride",
    "ceiling_for",
    "evaluate",
    "is_sensitive_field",
    "matches",
    "validate_time_window",
]
