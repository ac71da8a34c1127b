"""Application configuration via pydantic-settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-level configuration, loaded from environment / .env file.

    Routes live in the YAML config file; these settings only control how
    that file is found, reloaded and served.
    """

    config_path: Path | None = None
    environment: str = "development"
    log_level: str = "INFO"
    delegate_timeout_seconds: float = 5.0
    delegate_max_output_bytes: int = 1024 * 1024
    reload_debounce_seconds: float = 0.5
    watch_config: bool = True
    allow_large_config: bool = False

    model_config = SettingsConfigDict(
        env_prefix="BUNHOP_", env_file=".env", env_file_encoding="utf-8"
    )


# Module-level singleton; imported everywhere.
settings = Settings()
