from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "Artisan Directory API"
    database_url: str = (
        "postgresql+psycopg2://artisans:artisans@db:5432/artisans"  # pragma: allowlist secret
    )
    database_echo: bool = False
    log_level: str = "INFO"
    redis_url: str = "redis://redis:6379/0"
    cors_origins: list[str] = ["http://localhost:3000"]

    rate_limit_requests: int = 500
    rate_limit_window_seconds: int = 15 * 60
    search_rate_limit_requests: int = 30
    search_rate_limit_window_seconds: int = 60

    default_page_size: int = 12
    max_page_size: int = 50
    default_search_limit: int = 10
    default_featured_limit: int = 3

    contact_quota_limit: int = 5
    contact_quota_window_seconds: int = 60 * 60
    contact_quota_backend: Literal["memory", "redis"] = "memory"

    mail_relay_base_url: str = "http://localhost:8025/api"
    mail_relay_api_key: str = ""
    mail_sender: str = "no-reply@trouve-ton-artisan.fr"
    mail_timeout_seconds: float = 10.0
    mail_mock_mode: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()


settings = get_settings()
