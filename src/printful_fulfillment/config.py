"""Configuration management using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Printful Integration
    printful_api_key: str = Field(
        default="",
        description="Printful API bearer token",
    )
    printful_store_id: str = Field(
        default="",
        description="Printful store ID (sent as X-PF-Store-Id when set)",
    )
    printful_webhook_secret: str = Field(
        default="",
        description="Shared secret for webhook HMAC-SHA256 signatures (empty disables verification)",
    )
    printful_base_url: str = Field(
        default="https://api.printful.com",
        description="Printful API base URL",
    )
    printful_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for a single Printful API call",
    )
    printful_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for retryable Printful failures inside workflows",
    )
    printful_retry_backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Base delay for exponential backoff between attempts",
    )

    # Order locking
    redis_url: str = Field(
        default="",
        description="Redis connection string for distributed order locks (empty = in-process locks)",
    )
    order_lock_ttl_seconds: int = Field(
        default=60,
        description="Expiry of an order lock; renewed while held, so it only bounds a crashed holder",
    )
    order_lock_wait_seconds: float = Field(
        default=10.0,
        description="How long a workflow waits to acquire an order lock",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_json: bool = Field(
        default=True,
        description="Enable JSON structured logging",
    )

    # API Settings
    api_title: str = Field(
        default="Printful Fulfillment Service",
        description="API title",
    )
    api_version: str = Field(
        default="0.1.0",
        description="API version",
    )
    service_environment: str = Field(
        default="development",
        description="Deployment environment (development, staging, production)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
