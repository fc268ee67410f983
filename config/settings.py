"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Secrets (Supabase keys, Anthropic key) never get logged.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # SHOPTET
    # ===================
    shoptet_api_url: str = Field(
        default="https://api.myshoptet.com",
        description="Base URL of the Shoptet REST API"
    )
    shoptet_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=120,
        description="Timeout for a single Shoptet API call"
    )
    shoptet_page_size: int = Field(
        default=200,
        ge=10,
        le=500,
        description="itemsPerPage used for paginated Shoptet listings"
    )

    # ===================
    # AI SUGGESTIONS
    # ===================
    anthropic_api_key: Optional[str] = Field(
        None,
        description="Anthropic API key used for mapping suggestions"
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used for mapping suggestions"
    )
    ai_timeout_seconds: float = Field(
        default=90.0,
        gt=0,
        le=300,
        description="Timeout for a single suggestion request"
    )
    ai_max_tokens: int = Field(
        default=4096,
        ge=256,
        le=16384,
        description="Maximum tokens in a suggestion response"
    )

    # ===================
    # MAPPING LIMITS
    # ===================
    validator_chunk_size: int = Field(
        default=100,
        ge=10,
        le=1000,
        description="Products read per chunk during default-category validation"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def ai_configured(self) -> bool:
        """Check if the suggestion backend has credentials."""
        return bool(self.anthropic_api_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
