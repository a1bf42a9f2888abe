"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Vendor credentials are required: a missing value fails at startup
with a validation error naming the field.
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
    # ZOHO INVENTORY
    # ===================
    zoho_client_id: str = Field(
        ...,
        description="Zoho OAuth client ID"
    )
    zoho_client_secret: str = Field(
        ...,
        description="Zoho OAuth client secret"
    )
    zoho_refresh_token: str = Field(
        ...,
        description="Zoho OAuth refresh token"
    )
    zoho_organization_id: str = Field(
        ...,
        description="Zoho Inventory organization ID"
    )
    zoho_base_url: str = Field(
        default="https://www.zohoapis.com/inventory/v1",
        description="Zoho Inventory REST base URL"
    )
    zoho_accounts_url: str = Field(
        default="https://accounts.zoho.com",
        description="Zoho accounts (OAuth) base URL"
    )
    zoho_webhook_secret: Optional[str] = Field(
        None,
        description="Shared secret for webhook HMAC verification"
    )

    # ===================
    # AIRTABLE
    # ===================
    airtable_token: Optional[str] = Field(
        None,
        description="Airtable personal access token"
    )
    airtable_base_id: Optional[str] = Field(
        None,
        description="Airtable base ID (appXXXXXXXXXXXXXX)"
    )
    airtable_table: str = Field(
        default="Products",
        description="Airtable table name or ID"
    )

    # ===================
    # ANTHROPIC
    # ===================
    anthropic_api_key: str = Field(
        ...,
        description="Anthropic API key for product classification"
    )
    claude_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used for classification and COA parsing"
    )
    claude_max_tokens: int = Field(
        default=2048,
        ge=256,
        le=8192,
        description="Maximum tokens for Claude responses"
    )

    # ===================
    # SYNC SETTINGS
    # ===================
    sync_batch_size: int = Field(
        default=50,
        ge=1,
        le=200,
        description="Records requested per vendor page"
    )
    sync_max_pages: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Hard page limit for product syncs"
    )
    order_sync_max_pages: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Hard page limit for order syncs"
    )
    sync_request_delay_ms: int = Field(
        default=200,
        ge=0,
        le=5000,
        description="Pause between vendor API calls (informal rate limit)"
    )
    sync_stale_after_hours: int = Field(
        default=24,
        ge=1,
        le=720,
        description="Hours after which a resource's last sync is reported stale"
    )
    http_timeout_seconds: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Timeout for vendor HTTP calls"
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
    def airtable_configured(self) -> bool:
        """Check if Airtable credentials are present."""
        return bool(self.airtable_token and self.airtable_base_id)

    @property
    def sync_request_delay(self) -> float:
        """Delay between vendor calls in seconds."""
        return self.sync_request_delay_ms / 1000


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
