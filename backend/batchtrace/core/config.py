"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Database - relative path for Docker, override via env for local dev
    database_url: str = "sqlite:///./data/batchtrace.db"

    # Security (direct order API bearer tokens)
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 240  # 4 hours

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # ==========================================================================
    # Shopify platform
    # ==========================================================================
    shopify_api_secret: str = ""  # webhook HMAC key, empty = skip verification
    shopify_api_version: str = "2024-07"
    shopify_metafield_namespace: str = "batch_tracking"
    shopify_shelf_life_key: str = "shelf_life_days"
    shopify_default_batch_quantity_key: str = "default_batch_quantity"

    # ==========================================================================
    # Metadata lookups (only consulted on a stock shortfall)
    # ==========================================================================
    metadata_timeout_seconds: float = 5.0
    metadata_max_attempts: int = 3
    metadata_retry_backoff_seconds: float = 0.5

    # ==========================================================================
    # Allocation
    # ==========================================================================
    allocation_max_attempts: int = 3
    allocation_retry_backoff_seconds: float = 0.1
    allocation_synthesize_on_shortfall: bool = True
    allocation_shortfall_policy: Literal["backorder", "reject"] = "backorder"
    synthesized_batch_prefix: str = "AUTO"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True

    @field_validator("metadata_max_attempts", "allocation_max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("attempt counts must be at least 1")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production safety."""
        if not self.debug:
            if self.secret_key == "change-me-in-production":
                raise ValueError(
                    "FATAL: Cannot start in production mode with default SECRET_KEY. "
                    "Set a secure SECRET_KEY environment variable (minimum 32 characters)."
                )
            if len(self.secret_key) < 32:
                raise ValueError(
                    f"FATAL: SECRET_KEY must be at least 32 characters in production mode "
                    f"(current length: {len(self.secret_key)})."
                )
            if not self.shopify_api_secret:
                import warnings
                warnings.warn(
                    "SHOPIFY_API_SECRET is not set; webhook signatures will not be verified.",
                    UserWarning,
                    stacklevel=2,
                )
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
