from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Authorization settings.

    Notes:
    - Defaults are local and deterministic (SQLite file and rule file next to the repo).
    - Every field can be overridden with an ``AUTHZ_`` environment variable,
      e.g. ``AUTHZ_ADMIN_ROLE_NAME=ADMIN``.
    """

    model_config = SettingsConfigDict(env_prefix="AUTHZ_", extra="ignore")

    db_url: str | None = None
    rules_path: str | None = None
    # "db": rule rows come from the SQL tables; "file": from the YAML rule file at startup.
    rules_source: Literal["db", "file"] = "db"
    log_level: str = "INFO"

    admin_role_name: str = "admin"
    user_header: str = "Authorization"
    bearer_prefix: str = "Bearer"

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "authz.db"
        return f"sqlite:///{db_path}"

    def resolved_rules_path(self) -> Path:
        if self.rules_path:
            return Path(self.rules_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "authz_rules.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
