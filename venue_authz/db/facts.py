"""
SQL fact provider.

Reads a principal and the rule rows that can affect its decisions, and
materializes them into a RuleSnapshot before the engine runs. Loading is
eager (selectinload plus one query per rule table) so the engine never
triggers lazy loads or other I/O.
"""

from __future__ import annotations

from dataclasses import replace
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from venue_authz.engine import (
    ConditionalRule,
    FieldRule,
    OverrideKind,
    PermissionGrant,
    Principal,
    Role as RoleValue,
    RuleSnapshot,
    TimeWindowRule,
    VenueOverride,
)
from venue_authz.engine.conditions import freeze_value
from venue_authz.engine.fields import coerce_access
from venue_authz.models.authz import (
    RoleCondition,
    RoleFieldRule,
    RoleGrant,
    RoleTimeWindow,
    User,
    UserVenueOverride,
)

logger = logging.getLogger(__name__)


class UnknownPrincipalError(LookupError):
    """Raised when no user exists for the requested id."""


def load_principal(db: Session, user_id: int) -> Principal:
    """
    Build the immutable Principal for ``user_id``.

    Inactive users are returned (with ``active=False``) rather than rejected:
    deciding what an inactive principal may do is the engine's job.
    """

    user = db.execute(
        select(User)
        .where(User.id == user_id)
        .options(
            selectinload(User.role),
            selectinload(User.venues),
        )
    ).scalar_one_or_none()

    if user is None:
        raise UnknownPrincipalError(f"no user with id {user_id!r}")

    return Principal(
        user_id=user.id,
        role=RoleValue(role_id=user.role.id, name=user.role.name),
        active=user.is_active,
        venue_ids=frozenset(v.id for v in user.venues),
    )


def keyed_by_role_name(principal: Principal) -> Principal:
    """
    Re-key a database principal by role name.

    Rule files name roles (``role: manager``) while SQL rows use the role
    primary key, so a principal loaded from SQL must be re-keyed before it is
    checked against a rule-file snapshot.
    """

    return replace(principal, role=RoleValue(role_id=principal.role.name, name=principal.role.name))


def load_snapshot(db: Session, principal: Principal) -> RuleSnapshot:
    """Materialize every rule row for the principal's role and that user's venue overrides."""

    role_id = principal.role_id

    grants = db.scalars(select(RoleGrant).where(RoleGrant.role_id == role_id)).all()
    overrides = db.scalars(
        select(UserVenueOverride)
        .where(UserVenueOverride.user_id == principal.user_id)
        .order_by(UserVenueOverride.granted_at, UserVenueOverride.id)
    ).all()
    field_rules = db.scalars(select(RoleFieldRule).where(RoleFieldRule.role_id == role_id)).all()
    conditions = db.scalars(select(RoleCondition).where(RoleCondition.role_id == role_id)).all()
    windows = db.scalars(select(RoleTimeWindow).where(RoleTimeWindow.role_id == role_id)).all()

    snapshot = RuleSnapshot(
        grants=[PermissionGrant(g.role_id, g.resource, g.action) for g in grants],
        venue_overrides=[o for o in map(_override, overrides) if o is not None],
        field_rules=[_field_rule(f) for f in field_rules],
        conditional_rules=[
            ConditionalRule(c.role_id, c.resource, c.action, c.field, c.operator, freeze_value(c.value))
            for c in conditions
        ],
        time_window_rules=[
            TimeWindowRule(
                w.role_id,
                w.resource,
                w.action,
                frozenset(w.days_of_week or ()),
                w.start_time,
                w.end_time,
                w.timezone,
            )
            for w in windows
        ],
    )
    logger.debug("Loaded rule snapshot user=%s role=%s %r", principal.user_id, role_id, snapshot)
    return snapshot


def _override(row: UserVenueOverride) -> VenueOverride | None:
    try:
        kind = OverrideKind(row.kind.strip().lower())
    except (AttributeError, ValueError):
        logger.warning("Skipping venue override with unknown kind id=%s kind=%r", row.id, row.kind)
        return None
    return VenueOverride(row.user_id, row.venue_id, row.resource, row.action, kind)


def _field_rule(row: RoleFieldRule) -> FieldRule:
    # Unknown access strings are passed through; the resolver treats them as NONE.
    return FieldRule(row.role_id, row.resource, row.field, coerce_access(row.access) or row.access)
