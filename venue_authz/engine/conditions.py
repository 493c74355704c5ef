"""
Condition evaluator for business-rule permissions.

A rule compares ``context[rule.field]`` with ``rule.value``. Every branch
fails closed: a missing field, a non-numeric operand for an ordering operator,
a malformed rule value or an unknown operator all evaluate to False. The only
exceptions are ``!=`` and ``not_in``, where an absent field is treated as
"does not equal" / "not a member".
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
import logging
import math
from numbers import Real
from typing import Any, Callable

from .types import ConditionalRule, Operator

logger = logging.getLogger(__name__)

_MISSING = object()

_COLLECTION_TYPES = (list, tuple, set, frozenset)

# A "contains" needle must be one of these; None and containers never match.
_SCALAR_TYPES = (str, bool, Real, Decimal)


# ---- Coercion helpers ----------------------------------------------------------------


def _as_number(value: Any) -> float | None:
    """Return ``value`` as a finite float, or None if it is not numeric."""

    if isinstance(value, bool):
        return None
    if isinstance(value, (Real, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _as_text(value: str | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value.strip().lower()


def _equals(actual: Any, expected: Any) -> bool:
    expected_number = _as_number(expected)
    if expected_number is not None:
        actual_number = _as_number(actual)
        return actual_number is not None and actual_number == expected_number

    scalar = (str, bool)
    if isinstance(actual, scalar) or isinstance(expected, scalar):
        if not (isinstance(actual, scalar) and isinstance(expected, scalar)):
            return False
        if isinstance(actual, bool) or isinstance(expected, bool):
            # "true"/"false" strings from form posts compare equal to booleans
            return _as_text(actual) == _as_text(expected)
        return actual == expected
    return actual == expected


def _ordered(compare: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    def check(actual: Any, expected: Any) -> bool:
        left = _as_number(actual)
        right = _as_number(expected)
        if left is None or right is None:
            return False
        return compare(left, right)

    return check


def _member(actual: Any, expected: Any) -> bool:
    return any(_equals(actual, candidate) for candidate in expected)


def _contains(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, _SCALAR_TYPES):
        return False
    if isinstance(actual, str):
        return str(expected) in actual
    if isinstance(actual, _COLLECTION_TYPES):
        return any(_equals(item, expected) for item in actual)
    return False


_COMPARATORS: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQ: _equals,
    Operator.NE: lambda actual, expected: not _equals(actual, expected),
    Operator.GT: _ordered(lambda a, b: a > b),
    Operator.LT: _ordered(lambda a, b: a < b),
    Operator.GE: _ordered(lambda a, b: a >= b),
    Operator.LE: _ordered(lambda a, b: a <= b),
    Operator.IN: _member,
    Operator.NOT_IN: lambda actual, expected: not _member(actual, expected),
    Operator.CONTAINS: _contains,
}

# Absence of the context field satisfies these operators.
_TRUE_WHEN_MISSING = frozenset({Operator.NE, Operator.NOT_IN})


# ---- Public API ----------------------------------------------------------------------


def parse_operator(raw: object) -> Operator | None:
    """Map a stored operator string onto Operator; None when unrecognized."""

    if isinstance(raw, Operator):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return Operator(raw.strip().lower())
    except ValueError:
        return None


def evaluate(rule: ConditionalRule, context: Mapping[str, Any] | None) -> bool:
    """Evaluate one conditional rule against the request context."""

    operator = parse_operator(rule.operator)
    if operator is None:
        logger.warning(
            "Conditional rule has unknown operator; treating as failed role=%s resource=%s action=%s operator=%r",
            rule.role_id,
            rule.resource,
            rule.action,
            rule.operator,
        )
        return False

    if operator in (Operator.IN, Operator.NOT_IN) and not isinstance(rule.value, _COLLECTION_TYPES):
        logger.warning(
            "Conditional rule %r expects a list value; treating as failed role=%s resource=%s action=%s",
            rule.describe(),
            rule.role_id,
            rule.resource,
            rule.action,
        )
        return False

    actual = (context or {}).get(rule.field, _MISSING)
    if actual is _MISSING:
        return operator in _TRUE_WHEN_MISSING

    return _COMPARATORS[operator](actual, rule.value)


def first_failing(rules: list[ConditionalRule] | tuple[ConditionalRule, ...], context: Mapping[str, Any] | None) -> ConditionalRule | None:
    """
    Return the first rule that does not hold, or None if all of them hold.

    Rules form an unordered conjunction; the order only decides which failure
    is reported.
    """

    for rule in rules:
        if not evaluate(rule, context):
            return rule
    return None


def freeze_value(value: Any) -> Any:
    """Turn JSON/YAML lists into tuples so rule rows stay immutable."""

    if isinstance(value, list):
        return tuple(freeze_value(v) for v in value)
    return value
