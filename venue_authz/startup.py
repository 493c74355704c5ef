"""
Startup wiring for an application embedding the route guard.

Usage:
    app = FastAPI(lifespan=authz_lifespan)

or, when the application has its own lifespan, call ``install_authz(app)``
from it.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from venue_authz.audit import LoggingAuditSink
from venue_authz.logging_config import configure_app_logging
from venue_authz.rules_config import load_rules
from venue_authz.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def install_authz(app: FastAPI, settings: Settings | None = None) -> None:
    """
    Apply settings to ``app.state`` before the first request.

    - sets the ``venue_authz`` log level from ``log_level``,
    - installs a LoggingAuditSink unless the app already set ``audit_sink``,
    - with ``rules_source="file"``, loads the rule file once into
      ``app.state.rule_snapshot`` (a bad file fails startup); with ``"db"``
      the guard reads rule rows from SQL on every request.
    """

    settings = settings or get_settings()
    configure_app_logging(settings.log_level)

    if getattr(app.state, "audit_sink", None) is None:
        app.state.audit_sink = LoggingAuditSink()

    if settings.rules_source == "file":
        path = settings.resolved_rules_path()
        app.state.rule_snapshot = load_rules(path)
        logger.info("Authorization rules source: file %s", path)
    else:
        app.state.rule_snapshot = None
        logger.info("Authorization rules source: database")


@asynccontextmanager
async def authz_lifespan(app: FastAPI):
    install_authz(app)
    yield
