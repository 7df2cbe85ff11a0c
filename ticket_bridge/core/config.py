"""Application configuration via pydantic-settings.

All values loaded from the .env file at the project root.
The .env file takes precedence over OS-level environment variables
so stale system env vars never shadow the project config.
Credentials for monday.com accounts are never configured here; they live
in the credential store, one per tenant.
"""

from pathlib import Path
from typing import Literal, Tuple, Type

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

# Resolve .env from project root (two levels up: ticket_bridge/core/config.py → project root)
_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    """Central application settings. .env file wins over OS env vars."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Override source priority: .env file > OS env vars > defaults."""
        return (init_settings, dotenv_settings, env_settings, file_secret_settings)

    # --- App ---
    app_env: str = "development"
    log_level: str = "INFO"
    agent_path: str = "/client/agent.html"

    # --- Key-value storage ---
    storage_backend: Literal["redis", "memory"] = "redis"
    storage_fallback_enabled: bool = True
    redis_url: str = "redis://localhost:6379/0"
    storage_retry_attempts: int = 3
    storage_retry_base_delay_seconds: float = 1.0

    # --- monday.com ---
    monday_api_url: str = "https://api.monday.com/v2"
    monday_file_api_url: str = "https://api.monday.com/v2/file"
    monday_request_timeout_seconds: float = 30.0
    monday_upload_timeout_seconds: float = 300.0

    # --- Scratch storage for recordings ---
    temp_dir: str = "public/temp"
    max_upload_bytes: int = 500 * 1024 * 1024
    temp_file_ttl_hours: int = 24

    # --- Recording sessions ---
    session_ttl_minutes: int = 60
    session_sweep_interval_minutes: int = 5
    max_active_sessions: int = 10000

    # --- Background file attach ---
    attach_shutdown_policy: Literal["drain", "drop"] = "drain"
    attach_drain_timeout_seconds: float = 30.0

    # --- Links ---
    link_code_max_attempts: int = 10

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def temp_path(self) -> Path:
        """Scratch directory as an absolute path."""
        return Path(self.temp_dir).resolve()


settings = Settings()
