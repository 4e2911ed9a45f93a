"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Marketplace tokens are read here and handed to the Wildberries client
as an explicit config value; nothing else reads them from the environment.
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
        default="",
        description="Supabase project URL"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (required for item updates)"
    )
    items_table: str = Field(
        default="items",
        description="Table holding local product records"
    )

    # ===================
    # WILDBERRIES
    # ===================
    wb_content_token: Optional[str] = Field(
        None,
        description="Content API token (preferred for catalog calls)"
    )
    wb_api_token: Optional[str] = Field(
        None,
        description="General API token (preferred for supplies calls)"
    )
    wb_content_base_url: str = Field(
        default="https://content-api.wildberries.ru",
        description="Content API base URL"
    )
    wb_supplies_base_url: str = Field(
        default="https://supplies-api.wildberries.ru",
        description="Supplies API base URL"
    )
    wb_request_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Per-request timeout in seconds"
    )

    # ===================
    # RETRY POLICY
    # ===================
    wb_retry_attempts: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Total attempts for 429/5xx responses"
    )
    wb_retry_base_delay_ms: int = Field(
        default=400,
        ge=0,
        le=10000,
        description="First backoff delay in milliseconds"
    )
    wb_retry_max_delay_ms: int = Field(
        default=4000,
        ge=0,
        le=60000,
        description="Backoff delay cap in milliseconds"
    )

    # ===================
    # SYNC BUDGETS
    # ===================
    sync_page_limit: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Cards requested per catalog page"
    )
    sync_max_pages: int = Field(
        default=500,
        ge=1,
        le=10000,
        description="Default page budget for a full catalog pass"
    )
    fallback_scan_max_pages: int = Field(
        default=200,
        ge=1,
        le=200,
        description="Page budget for the scan-and-match fallback"
    )
    sync_deadline_seconds: Optional[float] = Field(
        None,
        gt=0,
        description="Optional wall-clock budget for one pass"
    )
    write_batch_size: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Patches written per batch"
    )
    supplies_pacing_ms: int = Field(
        default=200,
        ge=0,
        le=5000,
        description="Delay between per-supply goods lookups"
    )
    max_supplies: int = Field(
        default=200,
        ge=1,
        le=1000,
        description="Default cap on supplies inspected by the fallback"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production|test)$",
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
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to call the sync endpoints"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def supabase_configured(self) -> bool:
        """Check if the store can be reached with write access."""
        return bool(self.supabase_url and self.supabase_service_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
