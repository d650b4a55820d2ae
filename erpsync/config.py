"""Configuration management for the contact sync service.

Uses pydantic-settings to load configuration from environment variables
with validation and type coercion. Every integration setting is optional
so the service starts (with that integration disabled) when credentials
are missing.
"""

from pathlib import Path
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DocumentType, DEFAULT_CRON_SCHEDULE


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # WooCommerce Configuration
    woocommerce_url: Optional[str] = Field(
        default=None,
        description="WooCommerce store URL (e.g., https://yourstore.com)"
    )
    woocommerce_consumer_key: Optional[str] = Field(
        default=None,
        description="WooCommerce REST API consumer key"
    )
    woocommerce_consumer_secret: Optional[str] = Field(
        default=None,
        description="WooCommerce REST API consumer secret"
    )
    woocommerce_sync_contacts: bool = Field(
        default=False,
        description="Enable customer sync from WooCommerce orders"
    )
    woocommerce_sync_cron: str = Field(
        default=DEFAULT_CRON_SCHEDULE,
        description="Cron expression for the WooCommerce customer sync"
    )
    woocommerce_page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Orders requested per WooCommerce page"
    )

    # Chatwoot Configuration
    chatwoot_url: str = Field(
        default="https://app.chatwoot.com",
        description="Chatwoot base URL"
    )
    chatwoot_api_key: Optional[str] = Field(
        default=None,
        description="Chatwoot API access token"
    )
    chatwoot_account_id: Optional[str] = Field(
        default=None,
        description="Chatwoot account ID"
    )
    chatwoot_contacts_sync: bool = Field(
        default=False,
        description="Enable pushing contacts to Chatwoot (manual trigger)"
    )
    chatwoot_contacts_cron_enabled: bool = Field(
        default=False,
        description="Enable the scheduled Chatwoot contact push"
    )
    chatwoot_contacts_cron: str = Field(
        default=DEFAULT_CRON_SCHEDULE,
        description="Cron expression for the Chatwoot contact push"
    )
    chatwoot_concurrency: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum concurrent contact pushes to Chatwoot"
    )
    chatwoot_page_size: int = Field(
        default=100,
        ge=1,
        le=500,
        description="Local contacts loaded per page for the Chatwoot push"
    )

    # Locale
    default_country_code: str = Field(
        default="57",
        description="Calling code prepended to phone numbers (no plus sign)"
    )
    default_country_iso: str = Field(
        default="CO",
        description="ISO country code sent to Chatwoot"
    )
    default_document_type: DocumentType = Field(
        default=DocumentType.CC,
        description="Document type assigned when an order carries a document number"
    )

    # Application Settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    database_path: Path = Field(
        default=Path("data/contacts.db"),
        description="SQLite contact store file path"
    )
    log_file: Path = Field(
        default=Path("logs/sync.log"),
        description="Log file path"
    )
    http_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300.0,
        description="Timeout for outbound HTTP calls (seconds)"
    )

    # Performance Tuning
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retry attempts for rate-limited API calls"
    )
    retry_delay: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Initial backoff delay for rate-limited calls (seconds)"
    )

    @field_validator("woocommerce_url", "chatwoot_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        """Normalize base URLs."""
        if v is None:
            return v
        v = v.strip().rstrip("/")
        return v or None

    @field_validator("default_country_code")
    @classmethod
    def validate_country_code(cls, v: str) -> str:
        """Ensure the calling code is digits only."""
        v = v.strip().lstrip("+")
        if not v.isdigit():
            raise ValueError("Country code must contain digits only")
        return v

    @field_validator("woocommerce_sync_cron", "chatwoot_contacts_cron")
    @classmethod
    def validate_cron(cls, v: str) -> str:
        """Ensure cron expressions have the five standard fields."""
        v = " ".join(v.split())
        if len(v.split(" ")) != 5:
            raise ValueError("Cron expression must have 5 fields")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        v = v.upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v

    @property
    def woocommerce_configured(self) -> bool:
        """True when URL, consumer key and consumer secret are all set."""
        return bool(
            self.woocommerce_url
            and self.woocommerce_consumer_key
            and self.woocommerce_consumer_secret
        )

    @property
    def woocommerce_sync_enabled(self) -> bool:
        """True when customer sync is switched on and WooCommerce is configured."""
        return self.woocommerce_sync_contacts and self.woocommerce_configured

    @property
    def chatwoot_configured(self) -> bool:
        """True when URL, account ID and API key are all set."""
        return bool(self.chatwoot_url and self.chatwoot_account_id and self.chatwoot_api_key)

    @property
    def chatwoot_sync_enabled(self) -> bool:
        return self.chatwoot_contacts_sync and self.chatwoot_configured

    @property
    def chatwoot_cron_enabled(self) -> bool:
        return self.chatwoot_contacts_cron_enabled and self.chatwoot_configured

    @property
    def woocommerce_api_url(self) -> str:
        """Get the WooCommerce REST API base URL."""
        return f"{self.woocommerce_url}/wp-json/wc/v3"

    @property
    def chatwoot_api_url(self) -> str:
        """Get the Chatwoot account API base URL."""
        return f"{self.chatwoot_url}/api/v1/accounts/{self.chatwoot_account_id}"


def get_settings() -> Settings:
    """Get application settings.

    Returns:
        Settings: Application settings loaded from environment
    """
    return Settings()
