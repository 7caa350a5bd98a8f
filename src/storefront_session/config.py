"""Configuration and environment loading for Storefront Session."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Supabase
    supabase_url: str
    supabase_key: str
    profiles_table: str = "profiles"
    admin_table: str = "admin_auth"

    # Profile reconciliation: bounded wait for the backend trigger
    profile_wait_seconds: float = 2.0
    profile_wait_attempts: int = 1
    profile_wait_backoff: float = 2.0

    # Credential policy
    min_password_length: int = 8
    email_redirect_to: str | None = None
    password_reset_redirect_to: str | None = None

    # Snapshot subscribers
    subscriber_queue_size: int = 100

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
