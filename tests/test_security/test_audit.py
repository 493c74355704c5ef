"""Tests for audit records and sinks."""

from datetime import datetime, timezone
import logging

from venue_authz.audit import AuditRecord, AuditSink, LoggingAuditSink, emit_decision
from venue_authz.engine import Decision, ReasonCode


class BrokenSink:
    def record(self, entry):
        raise RuntimeError("disk full")


def test_record_from_decision_to_dict(manager):
    at = datetime(2025, 6, 2, 9, 30, tzinfo=timezone.utc)
    decision = Decision.deny(ReasonCode.VENUE_REVOKED, "timeoff:approve revoked at venue v-2")

    entry = AuditRecord.from_decision(manager, "timeoff", "approve", decision, "v-2", timestamp=at)

    assert entry.to_dict() == {
        "user_id": "u-manager",
        "role": "MANAGER",
        "resource": "timeoff",
        "action": "approve",
        "venue_id": "v-2",
        "allow": False,
        "reason": "venue_revoked",
        "detail": "timeoff:approve revoked at venue v-2",
        "timestamp": "2025-06-02T09:30:00+00:00",
    }


def test_logging_sink_writes_info_line(manager, caplog):
    caplog.set_level(logging.INFO, logger="venue_authz.audit")
    sink = LoggingAuditSink()
    assert isinstance(sink, AuditSink)

    emit_decision(sink, manager, "reports", "view_team", Decision.allowed())

    assert "AUDIT: user=u-manager role=MANAGER resource=reports action=view_team" in caplog.text
    assert "reason=allowed" in caplog.text


def test_failing_sink_is_logged_not_raised(manager, caplog):
    emit_decision(BrokenSink(), manager, "reports", "view_team", Decision.deny(ReasonCode.NO_GRANT))

    assert "Audit sink failed" in caplog.text
    assert "disk full" in caplog.text
