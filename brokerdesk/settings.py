from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the repo).
    - Override via ``BROKERDESK_*`` env vars.
    """

    model_config = SettingsConfigDict(env_prefix="BROKERDESK_", extra="ignore")

    db_url: str | None = None
    navigation_config_path: str | None = None
    log_level: str = "INFO"

    # Client side: where RemoteAuthorizationStore finds the authorization API.
    authz_base_url: str = "http://localhost:8000"
    authz_timeout_seconds: float = 5.0

    # Upper bound on a single evaluator decision (fail-closed on expiry).
    decision_timeout_seconds: float = 5.0

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "brokerdesk.db"
        return f"sqlite:///{db_path}"

    def resolved_navigation_config_path(self) -> Path:
        if self.navigation_config_path:
            return Path(self.navigation_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "navigation.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
