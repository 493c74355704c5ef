from __future__ import annotations


class AuthorizationInputError(ValueError):
    """Raised when authorize/field_access is called without a principal or with an empty resource/action."""


class InvalidRuleError(ValueError):
    """Raised by administration-side validation when a rule can never be satisfied as written."""
