"""
Tests for the SQL fact provider (ORM).

Uses db_session fixture: in-memory SQLite, rolled back after each test.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from venue_authz.db.facts import UnknownPrincipalError, load_principal, load_snapshot
from venue_authz.engine import AccessLevel, DecisionEngine, OverrideKind, ReasonCode
from venue_authz.models.authz import (
    Role,
    RoleCondition,
    RoleFieldRule,
    RoleGrant,
    RoleTimeWindow,
    User,
    UserVenueOverride,
    Venue,
)


def _seed(db_session, *, active=True):
    role = Role(name="MANAGER", description="Venue manager")
    other = Role(name="STAFF", description="Staff")
    venue = Venue(name="Harbour Bar")
    second = Venue(name="Garden Cafe")
    db_session.add_all([role, other, venue, second])
    db_session.flush()

    user = User(email="manager@example.com", role_id=role.id, is_active=active)
    user.venues.extend([venue, second])
    db_session.add(user)
    db_session.flush()

    db_session.add_all(
        [
            RoleGrant(role_id=role.id, resource="timeoff", action="approve"),
            RoleGrant(role_id=role.id, resource="reports", action="view_team"),
            RoleGrant(role_id=other.id, resource="posts", action="create"),
            RoleFieldRule(role_id=role.id, resource="users", field="weekdayRate", access="READ"),
            RoleCondition(
                role_id=role.id,
                resource="timeoff",
                action="approve",
                field="durationDays",
                operator="<",
                value=5,
            ),
            RoleTimeWindow(
                role_id=role.id,
                resource="reports",
                action="view_team",
                days_of_week=[1, 2, 3, 4, 5],
                start_time="08:00",
                end_time="18:00",
                timezone="Australia/Sydney",
            ),
            UserVenueOverride(
                user_id=user.id,
                venue_id=second.id,
                resource="timeoff",
                action="approve",
                kind="REVOKE",
            ),
        ]
    )
    db_session.commit()
    return user, venue, second


def test_load_principal_returns_role_and_venues(db_session):
    user, venue, second = _seed(db_session)

    principal = load_principal(db_session, user.id)

    assert principal.user_id == user.id
    assert principal.role.name == "MANAGER"
    assert principal.active is True
    assert principal.venue_ids == frozenset({venue.id, second.id})


def test_load_principal_raises_when_not_found(db_session):
    with pytest.raises(UnknownPrincipalError):
        load_principal(db_session, 99999)


def test_inactive_user_is_loaded_and_denied(db_session):
    user, _, _ = _seed(db_session, active=False)

    principal = load_principal(db_session, user.id)
    engine = DecisionEngine(load_snapshot(db_session, principal))

    assert principal.active is False
    assert engine.authorize(principal, "timeoff", "approve", {"durationDays": 1}).reason is ReasonCode.INACTIVE_PRINCIPAL


def test_snapshot_holds_only_the_principals_rows(db_session):
    user, _, second = _seed(db_session)
    principal = load_principal(db_session, user.id)

    snapshot = load_snapshot(db_session, principal)

    assert snapshot.grants_for_role(principal.role_id) == {("timeoff", "approve"), ("reports", "view_team")}
    assert snapshot.venue_override(user.id, second.id, "timeoff", "approve").kind is OverrideKind.REVOKE
    assert snapshot.field_rule(principal.role_id, "users", "weekdayRate").access is AccessLevel.READ
    (condition,) = snapshot.conditional_rules(principal.role_id, "timeoff", "approve")
    assert (condition.field, condition.operator, condition.value) == ("durationDays", "<", 5)
    (window,) = snapshot.time_window_rules(principal.role_id, "reports", "view_team")
    assert window.days_of_week == frozenset({1, 2, 3, 4, 5})
    assert window.timezone == "Australia/Sydney"


def test_loaded_snapshot_drives_decisions(db_session):
    user, venue, second = _seed(db_session)
    principal = load_principal(db_session, user.id)
    engine = DecisionEngine(load_snapshot(db_session, principal))

    assert engine.authorize(principal, "timeoff", "approve", {"durationDays": 3, "venueId": venue.id}).allow is True
    revoked = engine.authorize(principal, "timeoff", "approve", {"durationDays": 3, "venueId": second.id})
    assert revoked.reason is ReasonCode.VENUE_REVOKED

    # Tuesday 10:00 in Sydney.
    tuesday = datetime(2025, 6, 3, 0, 0, tzinfo=timezone.utc)
    assert engine.authorize(principal, "reports", "view_team", now=tuesday).allow is True


def test_unknown_override_kind_is_skipped(db_session, caplog):
    user, venue, _ = _seed(db_session)
    db_session.add(
        UserVenueOverride(user_id=user.id, venue_id=venue.id, resource="reports", action="export", kind="maybe")
    )
    db_session.commit()
    principal = load_principal(db_session, user.id)

    snapshot = load_snapshot(db_session, principal)

    assert snapshot.venue_override(user.id, venue.id, "reports", "export") is None
    assert "unknown kind" in caplog.text


def test_unknown_field_access_fails_closed(db_session):
    user, _, _ = _seed(db_session)
    db_session.add(RoleFieldRule(role_id=user.role_id, resource="users", field="bio", access="hidden"))
    db_session.commit()
    principal = load_principal(db_session, user.id)
    engine = DecisionEngine(load_snapshot(db_session, principal))

    assert engine.field_access(principal, "users", "bio", AccessLevel.WRITE) is AccessLevel.NONE
