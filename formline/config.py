"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "Formline"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Database ---
    # Empty = in-memory storage (local development only)
    database_url: str = ""
    db_pool_min_size: int = 2
    db_pool_max_size: int = 20

    # --- Strava ---
    strava_client_id: str = ""
    strava_client_secret: str = ""  # server-side only
    strava_webhook_verify_token: str = ""
    strava_timeout_seconds: float = 10.0

    # --- Scheduled jobs ---
    cron_secret: str = ""  # Bearer token expected on /cron/* endpoints

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
