"""Configuration settings for the Bidyard backend."""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Supabase
    supabase_url: str
    supabase_secret_key: str | None = None  # Backend/admin access
    supabase_service_role_key: str | None = None  # Legacy name for the same key

    # JWT (tokens are issued by the auth provider, only verified here)
    jwt_secret_key: str  # Required - no default for security
    jwt_algorithm: str = "HS256"

    # Marketplace
    commission_rate: Decimal = Decimal("0.001")
    max_notes_length: int = 2000

    # App
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars not in model


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
