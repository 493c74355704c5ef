"""
Time window evaluator.

A window is a set of ISO weekdays plus a half-open time-of-day range
``[start_time, end_time)`` evaluated in the rule's IANA timezone. Windows
crossing midnight are not supported; they must be stored as two rules.

``matches`` never raises: a rule with an unknown timezone, an unparseable
time or ``end_time <= start_time`` is logged and treated as never matching.
``validate_time_window`` applies the same checks strictly, for the
administration side that writes rules.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, time, timezone as dt_timezone
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidRuleError
from .types import TimeWindowRule

logger = logging.getLogger(__name__)

ISO_DAYS = frozenset(range(1, 8))


def parse_time_of_day(raw: object) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS``; raises ValueError otherwise."""

    if isinstance(raw, time):
        return raw
    if not isinstance(raw, str) or raw.count(":") not in (1, 2):
        raise ValueError(f"invalid time of day: {raw!r}")
    return time.fromisoformat(raw.strip())


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as exc:
        raise ValueError(f"unknown timezone: {name!r}") from exc


def validate_time_window(
    days_of_week: Iterable[int],
    start_time: str,
    end_time: str,
    timezone: str,
) -> None:
    """
    Validate a window before it is stored.

    Raises InvalidRuleError when:
    - a day is outside 1..7 or no day is given,
    - start/end are not ``HH:MM[:SS]``,
    - ``end_time <= start_time`` (overnight windows need two rules),
    - the timezone is unknown.
    """

    days = list(days_of_week)
    if not days:
        raise InvalidRuleError("time window needs at least one day of week")
    bad_days = sorted({d for d in days if isinstance(d, bool) or d not in ISO_DAYS})
    if bad_days:
        raise InvalidRuleError(f"days of week must be ISO weekdays 1..7, got {bad_days}")

    try:
        start = parse_time_of_day(start_time)
        end = parse_time_of_day(end_time)
    except ValueError as exc:
        raise InvalidRuleError(str(exc)) from exc
    if end <= start:
        raise InvalidRuleError(
            f"end_time {end_time!r} must be after start_time {start_time!r}; split overnight windows into two rules"
        )

    try:
        resolve_timezone(timezone)
    except ValueError as exc:
        raise InvalidRuleError(str(exc)) from exc


def localize(now: datetime, tz: ZoneInfo) -> datetime:
    """Convert ``now`` into ``tz``; naive datetimes are taken as UTC."""

    if now.tzinfo is None:
        now = now.replace(tzinfo=dt_timezone.utc)
    return now.astimezone(tz)


def matches(rule: TimeWindowRule, now: datetime) -> bool:
    """Return True iff ``now`` falls inside the rule's window."""

    try:
        tz = resolve_timezone(rule.timezone)
        start = parse_time_of_day(rule.start_time)
        end = parse_time_of_day(rule.end_time)
    except ValueError as exc:
        logger.warning(
            "Malformed time window treated as never matching role=%s resource=%s action=%s error=%s",
            rule.role_id,
            rule.resource,
            rule.action,
            exc,
        )
        return False

    if end <= start:
        logger.warning(
            "Time window with end <= start treated as never matching role=%s resource=%s action=%s window=%s-%s",
            rule.role_id,
            rule.resource,
            rule.action,
            rule.start_time,
            rule.end_time,
        )
        return False

    local = localize(now, tz)
    if local.isoweekday() not in rule.days_of_week:
        return False

    current = local.time().replace(tzinfo=None)
    return start <= current < end


def any_matches(rules: Iterable[TimeWindowRule], now: datetime) -> bool:
    return any(matches(rule, now) for rule in rules)
