from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from venue_authz.settings import Settings

logger = logging.getLogger(__name__)


class CredentialsError(ValueError):
    """Raised when the identity header is present but unusable."""


def parse_user_token(raw: str, scheme: str) -> int:
    """
    Turn ``"<scheme> <user id>"`` into the integer user id.

    The scheme is matched case-insensitively (``bearer 7`` is accepted); the
    token itself must be a positive integer.
    """

    found_scheme, _, token = raw.strip().partition(" ")
    if found_scheme.casefold() != scheme.casefold():
        raise CredentialsError(f"expected '{scheme} <user id>'")

    token = token.strip()
    if not token:
        raise CredentialsError(f"missing user id after '{scheme}'")
    if not (token.isascii() and token.isdigit()) or int(token) <= 0:
        raise CredentialsError("user id must be a positive integer")
    return int(token)


def extract_user_id(request: Request, settings: Settings) -> int | None:
    """
    Resolve the caller's user id from the configured identity header.

    Token validation happens upstream; this layer only trusts the id it is
    given. Returns None when the header is absent (mapped to 401 by the
    guard) and raises a 400 when it is malformed.
    """

    raw = request.headers.get(settings.user_header)
    if not raw:
        return None

    try:
        return parse_user_token(raw, settings.bearer_prefix)
    except CredentialsError as exc:
        logger.warning("Rejected %s header path=%s reason=%s", settings.user_header, request.url.path, exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {settings.user_header} header: {exc}",
        ) from exc
