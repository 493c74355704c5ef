from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level of the ``venue_authz`` logger tree.

    Notes:
    - Stdlib logging only; the embedding application owns the handlers.
    - ``AUTHZ_LOG_LEVEL=DEBUG`` prints one trace line per decision
      (``venue_authz.engine.decision``); audit records are INFO on
      ``venue_authz.audit``.
    """

    normalized = level.upper()
    root = logging.getLogger("venue_authz")
    root.setLevel(normalized)
    root.propagate = True
