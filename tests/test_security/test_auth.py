"""Tests for identity header parsing."""

import pytest

from venue_authz.security.auth import CredentialsError, parse_user_token


@pytest.mark.parametrize("raw", ["Bearer 7", "bearer 7", "  BEARER   7  "])
def test_scheme_is_case_insensitive(raw):
    assert parse_user_token(raw, "Bearer") == 7


def test_custom_scheme():
    assert parse_user_token("User 12", "User") == 12


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ("Token 7", "expected 'Bearer <user id>'"),
        ("Bearer", "missing user id"),
        ("Bearer   ", "missing user id"),
        ("Bearer abc", "positive integer"),
        ("Bearer -3", "positive integer"),
        ("Bearer 0", "positive integer"),
        ("Bearer ²", "positive integer"),
    ],
)
def test_malformed_tokens_are_rejected(raw, message):
    with pytest.raises(CredentialsError, match=message):
        parse_user_token(raw, "Bearer")
