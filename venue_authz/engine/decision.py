"""
Decision engine.

Combines the five permission layers into one verdict:

1. admin bypass (role name, case-insensitive),
2. inactive principal,
3. base access: role grant OR venue grant override,
4. venue revoke override,
5. conditional rules (all must hold),
6. time windows (any must match, when any exist).

Each stage can only narrow what the previous ones allowed. The engine is a
pure function of its arguments and the snapshot it was built with: no I/O,
no caching, no mutable state, so one instance can serve concurrent requests.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
import logging
from typing import Any, Callable

from . import conditions, time_windows
from .errors import AuthorizationInputError
from .fields import SENSITIVE_FIELDS, FieldAccessResolver, FieldSummary
from .snapshot import FactProvider, override_kind
from .types import (
    VENUE_CONTEXT_KEY,
    AccessLevel,
    Decision,
    EntityId,
    OverrideKind,
    Principal,
    ReasonCode,
    TimeWindowRule,
)

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ROLE = "admin"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_name(kind: str, value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise AuthorizationInputError(f"{kind} must be a non-empty string, got {value!r}")
    return value


def _venue_scope(venue_id: Any) -> EntityId | None:
    """Venue id usable as an override key; unhashable values mean no venue scope."""

    if venue_id is None:
        return None
    try:
        hash(venue_id)
    except TypeError:
        logger.warning("Ignoring unhashable venue scope %r; venue overrides not applied", venue_id)
        return None
    return venue_id


class DecisionEngine:
    """
    Authorization decisions over an immutable fact snapshot.

    Usage:
        engine = DecisionEngine(load_rules(Path("rules.yaml")))
        decision = engine.authorize(principal, "timeoff", "approve", {"durationDays": 3})
        if not decision.allow:
            ...  # map decision.reason to a 403
    """

    def __init__(
        self,
        facts: FactProvider,
        *,
        admin_role_name: str = DEFAULT_ADMIN_ROLE,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._facts = facts
        self._admin_role = admin_role_name.casefold()
        self._clock = clock
        self._fields = FieldAccessResolver(facts)

    @property
    def facts(self) -> FactProvider:
        return self._facts

    def is_admin(self, principal: Principal) -> bool:
        return principal.role.name.casefold() == self._admin_role

    # ---- Main decision API ----------------------------------------------------------

    def authorize(
        self,
        principal: Principal,
        resource: str,
        action: str,
        context: Mapping[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> Decision:
        """
        Decide whether ``principal`` may perform ``action`` on ``resource``.

        ``context`` holds fields of the resource instance being acted on; the
        venue scope is read from ``context["venueId"]``. ``now`` defaults to
        the engine clock and only matters when time windows exist.

        Raises AuthorizationInputError for a missing principal or an empty
        resource/action. Every other situation yields a Decision.
        """

        if principal is None:
            raise AuthorizationInputError("principal is required")
        _require_name("resource", resource)
        _require_name("action", action)
        context = context or {}

        decision = self._decide(principal, resource, action, context, now)
        logger.debug(
            "AUTHZ: user=%s role=%s resource=%s action=%s venue=%s allow=%s reason=%s",
            principal.user_id,
            principal.role.name,
            resource,
            action,
            context.get(VENUE_CONTEXT_KEY),
            decision.allow,
            decision.reason.value,
        )
        return decision

    def _decide(
        self,
        principal: Principal,
        resource: str,
        action: str,
        context: Mapping[str, Any],
        now: datetime | None,
    ) -> Decision:
        if self.is_admin(principal):
            return Decision.allowed(ReasonCode.ADMIN_BYPASS)

        if not principal.active:
            return Decision.deny(ReasonCode.INACTIVE_PRINCIPAL)

        role_id = principal.role_id
        venue_id = _venue_scope(context.get(VENUE_CONTEXT_KEY))
        kind = None
        if venue_id is not None:
            kind = override_kind(self._facts.venue_override(principal.user_id, venue_id, resource, action))

        has_base = self._facts.has_grant(role_id, resource, action) or kind is OverrideKind.GRANT
        if not has_base:
            return Decision.deny(ReasonCode.NO_GRANT, f"no grant for {resource}:{action}")

        if kind is OverrideKind.REVOKE:
            return Decision.deny(ReasonCode.VENUE_REVOKED, f"{resource}:{action} revoked at venue {venue_id}")

        failed = conditions.first_failing(self._facts.conditional_rules(role_id, resource, action), context)
        if failed is not None:
            return Decision.deny(ReasonCode.CONDITION_FAILED, f"condition not met: {failed.describe()}")

        windows = self._facts.time_window_rules(role_id, resource, action)
        if windows and not time_windows.any_matches(windows, now or self._clock()):
            return Decision.deny(ReasonCode.OUTSIDE_TIME_WINDOW, "current time is outside every allowed window")

        return Decision.allowed()

    def authorize_all(
        self,
        principal: Principal,
        permissions: Iterable[tuple[str, str]],
        context: Mapping[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> bool:
        """True iff every (resource, action) pair is allowed."""
        moment = now or self._clock()
        return all(self.authorize(principal, r, a, context, now=moment).allow for r, a in permissions)

    def authorize_any(
        self,
        principal: Principal,
        permissions: Iterable[tuple[str, str]],
        context: Mapping[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> bool:
        """True iff at least one (resource, action) pair is allowed."""
        moment = now or self._clock()
        return any(self.authorize(principal, r, a, context, now=moment).allow for r, a in permissions)

    # ---- Field-level API ------------------------------------------------------------

    def field_access(
        self,
        principal: Principal,
        resource: str,
        field: str,
        action_level_default: AccessLevel,
    ) -> AccessLevel:
        """
        Effective access to one field.

        ``action_level_default`` is the ceiling derived from the action-level
        decision (see ``ceiling_for``); the result never exceeds it. Admins get
        the ceiling unchanged, inactive principals get NONE.
        """

        if principal is None:
            raise AuthorizationInputError("principal is required")
        _require_name("resource", resource)
        _require_name("field", field)

        if self.is_admin(principal):
            return action_level_default
        if not principal.active:
            return AccessLevel.NONE
        return self._fields.resolve(principal.role_id, resource, field, action_level_default)

    def filter_fields(
        self,
        principal: Principal,
        resource: str,
        data: Mapping[str, Any],
        *,
        intent: AccessLevel,
        ceiling: AccessLevel,
    ) -> dict[str, Any]:
        """Return the subset of ``data`` whose fields admit ``intent`` (READ or WRITE)."""

        return {
            key: value
            for key, value in data.items()
            if self.field_access(principal, resource, key, ceiling).admits(intent)
        }

    def denied_fields(
        self,
        principal: Principal,
        resource: str,
        data: Mapping[str, Any],
        *,
        intent: AccessLevel,
        ceiling: AccessLevel,
    ) -> list[str]:
        """Sorted names of the fields in ``data`` that ``filter_fields`` would drop."""

        return sorted(
            key for key in data if not self.field_access(principal, resource, key, ceiling).admits(intent)
        )

    def field_summary(
        self,
        principal: Principal,
        resource: str,
        fields: Iterable[str],
        *,
        view_ceiling: AccessLevel,
        edit_ceiling: AccessLevel,
        sensitive: Iterable[str] | None = None,
    ) -> FieldSummary:
        """
        Which of ``fields`` the principal can view and edit, and which visible ones are sensitive.

        The two ceilings come from the view and edit decisions on ``resource``
        (see ``ceiling_for``). ``sensitive`` defaults to ``SENSITIVE_FIELDS[resource]``.
        """

        names = sorted(set(fields))
        viewable = tuple(
            f for f in names if self.field_access(principal, resource, f, view_ceiling).admits(AccessLevel.READ)
        )
        editable = tuple(
            f for f in names if self.field_access(principal, resource, f, edit_ceiling).admits(AccessLevel.WRITE)
        )
        flagged = SENSITIVE_FIELDS.get(resource, frozenset()) if sensitive is None else frozenset(sensitive)
        return FieldSummary(
            viewable=viewable,
            editable=editable,
            sensitive=tuple(f for f in viewable if f in flagged),
        )

    # ---- Introspection --------------------------------------------------------------

    def effective_permissions(
        self,
        principal: Principal,
        venue_id: EntityId | None = None,
    ) -> frozenset[tuple[str, str]]:
        """
        (resource, action) pairs reachable before conditions and time windows.

        Role grants, plus grant overrides at ``venue_id``, minus revoke
        overrides at ``venue_id``. Admins and inactive principals get an empty
        set: the former hold everything through the bypass, the latter nothing.
        """

        if self.is_admin(principal) or not principal.active:
            return frozenset()

        pairs = set(self._facts.grants_for_role(principal.role_id))
        venue_id = _venue_scope(venue_id)
        if venue_id is not None:
            for override in self._facts.overrides_for(principal.user_id, venue_id):
                pair = (override.resource, override.action)
                if override.kind is OverrideKind.GRANT:
                    pairs.add(pair)
                else:
                    pairs.discard(pair)
        return frozenset(pairs)

    def time_windows_for(self, principal: Principal, resource: str, action: str) -> tuple[TimeWindowRule, ...]:
        """Windows restricting ``principal`` for (resource, action); empty means unrestricted."""

        if self.is_admin(principal):
            return ()
        return self._facts.time_window_rules(principal.role_id, resource, action)
