from __future__ import annotations

from collections.abc import Callable, Mapping
import logging
from typing import Any

from fastapi import Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from venue_authz.audit import AuditSink, LoggingAuditSink, emit_decision
from venue_authz.db.facts import UnknownPrincipalError, keyed_by_role_name, load_principal, load_snapshot
from venue_authz.db.session import get_db
from venue_authz.engine import VENUE_CONTEXT_KEY, DecisionEngine, RuleSnapshot, ceiling_for
from venue_authz.security.auth import extract_user_id
from venue_authz.security.context import AuthzContext
from venue_authz.settings import Settings, get_settings

logger = logging.getLogger(__name__)

_default_sink = LoggingAuditSink()


def get_audit_sink(request: Request) -> AuditSink:
    sink = getattr(request.app.state, "audit_sink", None)
    return sink if sink is not None else _default_sink


def get_rule_snapshot(request: Request) -> RuleSnapshot | None:
    """Rule-file snapshot installed at startup, or None to read rules from SQL."""
    return getattr(request.app.state, "rule_snapshot", None)


def no_context() -> Mapping[str, Any]:
    return {}


def require_permission(
    resource: str,
    action: str,
    *,
    mutating: bool = False,
    context_from: Callable[..., Mapping[str, Any]] = no_context,
) -> Callable[..., AuthzContext]:
    """
    Build a route dependency guarding ``(resource, action)``.

    Usage:
        @router.post("/timeoff/{id}/approve")
        def approve(authz: AuthzContext = Depends(require_permission("timeoff", "approve", mutating=True))):
            ...

    ``context_from`` is itself a FastAPI dependency returning the resource
    fields conditional rules look at (e.g. ``{"durationDays": 3}``). The
    ``venueId`` query parameter, when present, scopes venue overrides and
    takes precedence over a ``venueId`` supplied by ``context_from``.

    Rule rows come from SQL unless a rule-file snapshot was installed at
    startup (see ``venue_authz.startup``).

    Every decision, allow or deny, is forwarded to the audit sink before the
    response is decided.
    """

    def dependency(
        request: Request,
        venue_id: int | None = Query(default=None, alias=VENUE_CONTEXT_KEY),
        resource_context: Mapping[str, Any] = Depends(context_from),
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_settings),
        sink: AuditSink = Depends(get_audit_sink),
        rule_file: RuleSnapshot | None = Depends(get_rule_snapshot),
    ) -> AuthzContext:
        user_id = extract_user_id(request, settings)
        if user_id is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user id")

        try:
            principal = load_principal(db, user_id)
        except UnknownPrincipalError as exc:
            logger.info("Unknown user id=%s path=%s", user_id, request.url.path)
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user") from exc

        if rule_file is None:
            facts = load_snapshot(db, principal)
        else:
            principal = keyed_by_role_name(principal)
            facts = rule_file
        engine = DecisionEngine(facts, admin_role_name=settings.admin_role_name)

        context = dict(resource_context)
        if venue_id is not None:
            context[VENUE_CONTEXT_KEY] = venue_id

        decision = engine.authorize(principal, resource, action, context)
        emit_decision(sink, principal, resource, action, decision, context.get(VENUE_CONTEXT_KEY))

        if not decision.allow:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"reason": decision.reason.value, "detail": decision.detail},
            )

        authz = AuthzContext(
            principal=principal,
            resource=resource,
            action=action,
            decision=decision,
            engine=engine,
            ceiling=ceiling_for(decision, mutating=mutating),
        )
        request.state.authz = authz
        return authz

    return dependency
