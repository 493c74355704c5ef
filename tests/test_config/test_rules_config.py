"""Tests for the YAML rule-file loader."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from venue_authz.engine import (
    AccessLevel,
    DecisionEngine,
    OverrideKind,
    Principal,
    ReasonCode,
    Role,
)
from venue_authz.rules_config import RulesConfigError, load_rules, rules_from_mapping

REPO_RULES = Path(__file__).resolve().parents[2] / "config" / "authz_rules.yaml"


def _doc(**sections):
    return {"authz": sections}


def test_shipped_rule_file_loads():
    snapshot = load_rules(REPO_RULES)
    engine = DecisionEngine(snapshot)
    manager = Principal("u-1", Role("manager", "MANAGER"))

    assert engine.authorize(manager, "timeoff", "approve", {"durationDays": 3}).allow is True
    assert engine.authorize(manager, "timeoff", "approve", {"durationDays": 7}).reason is ReasonCode.CONDITION_FAILED
    assert engine.authorize(manager, "rosters", "edit_team", {"status": "DRAFT"}).allow is True

    # Saturday in Sydney is outside the weekday reporting window.
    saturday = datetime(2025, 6, 7, 1, 0, tzinfo=timezone.utc)
    assert engine.authorize(manager, "reports", "view_team", now=saturday).reason is ReasonCode.OUTSIDE_TIME_WINDOW


def test_rows_are_converted(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text(
        """
authz:
  grants:
    - {role: staff, resource: posts, action: create}
  venue_overrides:
    - {user: 7, venue: 1, resource: posts, action: create, kind: REVOKE}
  field_rules:
    - {role: staff, resource: users, field: phone, access: Write}
  conditional_rules:
    - {role: staff, resource: posts, action: create, field: channel, operator: not_in, value: [announcements]}
  time_windows:
    - {role: staff, resource: posts, action: create, days_of_week: [6, 7], start_time: "10:00", end_time: "14:00"}
""",
        encoding="utf-8",
    )

    snapshot = load_rules(path)

    assert snapshot.has_grant("staff", "posts", "create")
    assert snapshot.venue_override(7, 1, "posts", "create").kind is OverrideKind.REVOKE
    assert snapshot.field_rule("staff", "users", "phone").access is AccessLevel.WRITE
    (condition,) = snapshot.conditional_rules("staff", "posts", "create")
    assert condition.operator == "not_in"
    assert condition.value == ("announcements",)
    (window,) = snapshot.time_window_rules("staff", "posts", "create")
    assert window.days_of_week == frozenset({6, 7})
    assert window.timezone == "UTC"


def test_missing_top_level_key():
    with pytest.raises(RulesConfigError, match="authz"):
        rules_from_mapping({"rules": {}})


def test_empty_section_is_an_empty_snapshot():
    snapshot = rules_from_mapping({"authz": None})
    assert snapshot.grants_for_role("staff") == frozenset()


@pytest.mark.parametrize(
    "doc",
    [
        _doc(grants=[{"role": "staff", "resource": "", "action": "create"}]),
        _doc(grants=[{"role": "staff", "resource": "posts"}]),
        _doc(grants=[{"role": "staff", "resource": "posts", "action": "create", "extra": 1}]),
        _doc(venue_overrides=[{"user": 1, "venue": 1, "resource": "posts", "action": "create", "kind": "maybe"}]),
        _doc(field_rules=[{"role": "staff", "resource": "users", "field": "email", "access": "hidden"}]),
        _doc(
            conditional_rules=[
                {"role": "staff", "resource": "posts", "action": "create", "field": "x", "operator": "~", "value": 1}
            ]
        ),
        _doc(
            conditional_rules=[
                {"role": "staff", "resource": "posts", "action": "create", "field": "x", "operator": "in", "value": 1}
            ]
        ),
        _doc(unknown_section=[]),
    ],
)
def test_invalid_rows_are_rejected(doc):
    with pytest.raises(RulesConfigError):
        rules_from_mapping(doc)


@pytest.mark.parametrize(
    ("start", "end", "tz", "message"),
    [
        ("22:00", "06:00", "UTC", "overnight"),
        ("09:00", "17:00", "Not/AZone", "unknown timezone"),
    ],
)
def test_invalid_time_windows_are_rejected(start, end, tz, message):
    doc = _doc(
        time_windows=[
            {"role": "staff", "resource": "reports", "action": "view", "days": [1], "start": start, "end": end, "timezone": tz}
        ]
    )
    with pytest.raises(RulesConfigError, match=message):
        rules_from_mapping(doc)


def test_load_rules_error_names_the_file(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("authz:\n  grants:\n    - {role: staff}\n", encoding="utf-8")
    with pytest.raises(RulesConfigError, match="bad.yaml"):
        load_rules(path)
