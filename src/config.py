"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "Adhera"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Database ---
    # When unset the API runs on in-memory repositories (data is lost on exit).
    database_url: str | None = None
    database_pool_min_size: int = 2
    database_pool_max_size: int = 10

    # --- Tracking engine ---
    tracking_config_path: str | None = None  # overrides src/tracking/tracking_config.yaml
    analytics_report_timeout_seconds: float = 30.0

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
