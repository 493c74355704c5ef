"""Tests for Settings from environment."""

import logging
from pathlib import Path

from venue_authz.logging_config import configure_app_logging
from venue_authz.settings import Settings


def test_defaults_point_at_repo_files(monkeypatch):
    for name in ("AUTHZ_DB_URL", "AUTHZ_RULES_PATH", "AUTHZ_RULES_SOURCE", "AUTHZ_ADMIN_ROLE_NAME"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.admin_role_name == "admin"
    assert settings.user_header == "Authorization"
    assert settings.bearer_prefix == "Bearer"
    assert settings.rules_source == "db"
    assert settings.resolved_db_url().startswith("sqlite:///")
    assert settings.resolved_db_url().endswith("authz.db")
    assert settings.resolved_rules_path().parts[-2:] == ("config", "authz_rules.yaml")


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("AUTHZ_DB_URL", "sqlite:///:memory:")
    monkeypatch.setenv("AUTHZ_RULES_PATH", str(tmp_path / "rules.yaml"))
    monkeypatch.setenv("AUTHZ_ADMIN_ROLE_NAME", "ADMIN")
    monkeypatch.setenv("AUTHZ_USER_HEADER", "X-User")

    settings = Settings()

    assert settings.resolved_db_url() == "sqlite:///:memory:"
    assert settings.resolved_rules_path() == Path(tmp_path / "rules.yaml")
    assert settings.admin_role_name == "ADMIN"
    assert settings.user_header == "X-User"


def test_configure_app_logging_sets_package_level():
    logger = logging.getLogger("venue_authz")
    previous = logger.level
    try:
        configure_app_logging("debug")
        assert logger.level == logging.DEBUG
    finally:
        logger.setLevel(previous)
