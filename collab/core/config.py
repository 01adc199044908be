from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (default uses docker-compose service name)
    database_url: str = "postgresql+psycopg2://collab:collab_dev@db:5432/collab"

    # Redis: Celery broker and recording count cache
    redis_url: str = "redis://redis:6379/0"

    # App settings
    app_name: str = "Collab Session Links"
    debug: bool = False
    log_level: str = "INFO"

    # Remote conferencing service
    remote_api: Literal["auto", "rest", "soap", "testable"] = "auto"
    rest_api_url: str = ""
    rest_api_key: str = ""
    rest_api_secret: str = ""
    soap_api_url: str = ""
    soap_api_username: str = ""
    soap_api_password: str = ""
    remote_timeout: float = 30.0

    # Reuse a pre-seeded activity session id instead of creating one remotely
    simulation_mode: bool = False

    # Failed deletion sweep
    cleanup_interval_seconds: int = 3600
    max_deletion_attempts: Optional[int] = None  # None = retry forever

    recording_counts_ttl_seconds: int = 3600

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
