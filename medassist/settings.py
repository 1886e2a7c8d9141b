from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite, YAML policy, dummy auth).
    - Every field can be overridden with an `APP_`-prefixed env var.
    """

    model_config = SettingsConfigDict(env_prefix="APP_", extra="ignore")

    db_url: str | None = None
    security_config_path: str | None = None
    policy_config_path: str | None = None
    log_level: str = "INFO"

    # Policy decision point
    policy_backend: Literal["local", "permit"] = "local"
    permit_pdp_url: str = "https://cloudpdp.api.permit.io"
    permit_api_url: str = "https://api.permit.io"
    permit_api_key: str = ""
    permit_project: str = "default"
    permit_environment: str = "production"
    permit_timeout_seconds: float = 10.0

    # LLM provider
    llm_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    llm_api_key: str = ""
    llm_model: str = "gemini-2.5-pro-exp-03-25"
    llm_max_steps: int = 10
    llm_timeout_seconds: float = 60.0

    # Conversation history
    session_reuse_window_seconds: int = 3600
    background_save_workers: int = 1

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "app.db"
        return f"sqlite:///{db_path}"

    def resolved_security_config_path(self) -> Path:
        if self.security_config_path:
            return Path(self.security_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "security_config.yaml"

    def resolved_policy_config_path(self) -> Path:
        if self.policy_config_path:
            return Path(self.policy_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "policy.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
