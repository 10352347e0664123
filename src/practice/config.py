"""Configuration settings for the practice backend."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PRACTICE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "Coding Practice Backend"
    debug: bool = False
    environment: str = "development"

    # Database (credential store)
    db_url: str = "postgresql+asyncpg://localhost/practice"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Redis (session store)
    redis_url: str = "redis://localhost:6379/0"

    # Object store (activity log)
    s3_bucket_name: Optional[str] = None
    aws_region: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    log_prefix: str = "log"
    object_store_timeout: float = 10.0

    # External Services
    execution_base: str = "https://emkc.org/api/v2/piston"
    execution_language_version: str = "10.2.0"
    execution_timeout: float = 30.0
    advice_base: str = "https://api.openai.com/v1"
    advice_api_key: Optional[str] = None
    advice_model: str = "gpt-5-mini"
    advice_timeout: float = 60.0

    # Sessions
    session_secret: str = "change-me-in-production"
    session_algorithm: str = "HS256"
    session_ttl_seconds: int = 60 * 60 * 24
    session_cookie_name: str = "practice_session"
    session_cookie_secure: bool = False
    password_hash_rounds: int = 12

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Rate Limiting
    rate_limit_requests: int = 60
    rate_limit_window: int = 60  # seconds

    # Logging
    log_level: str = "info"
    log_format: str = "json"

    def missing_required(self) -> list[str]:
        """Names of settings the service cannot run without."""
        required = {
            "PRACTICE_S3_BUCKET_NAME": self.s3_bucket_name,
            "PRACTICE_AWS_REGION": self.aws_region,
            "PRACTICE_ADVICE_API_KEY": self.advice_api_key,
        }
        return [name for name, value in required.items() if not value]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
