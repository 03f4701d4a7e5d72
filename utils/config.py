"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to all environment variables with validation.

Settings are built explicitly at the start of every run and passed down to
the components that need them; nothing reads the environment at import time.

Usage:
    from utils.config import load_settings

    settings = load_settings()
    base_url = settings.DYNAMICS_URL
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.errors import ConfigError

DEFAULT_SELECT_FIELDS = [
    "name",
    "telephone1",
    "fax",
    "websiteurl",
    "address1_composite",
    "revenue",
    "numberofemployees",
    "preferredcontactmethodcode",
    "industrycode",
    "sic",
    "address1_longitude",
    "address1_latitude",
    "customertypecode",
    "cr356_duedate",
    "cr356_processed",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Identity Configuration
    CLIENT_ID: str = Field(default="")
    CLIENT_SECRET: str = Field(default="")
    TENANT_ID: str = Field(default="")
    AUTHORITY_HOST: str = Field(default="https://login.microsoftonline.com")

    # Source (CRM Web API) Configuration
    DYNAMICS_URL: str = Field(default="")
    DYNAMICS_API_VERSION: str = Field(default="v9.2")
    DYNAMICS_ENTITY_SET: str = Field(default="accounts")
    SOURCE_SELECT_FIELDS: list[str] = Field(default_factory=lambda: list(DEFAULT_SELECT_FIELDS))
    SOURCE_PAGE_SIZE: int = Field(default=5000, gt=0)
    HTTP_TIMEOUT_SECONDS: float = Field(default=600.0, gt=0)

    # Update Configuration
    PROCESSED_FIELD: str = Field(default="cr356_processed")
    PROCESSED_MARKER: str = Field(default="TRUE")
    UPDATE_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    UPDATE_BACKOFF_SECONDS: float = Field(default=2.0, ge=0)
    UPDATE_BACKOFF_STRATEGY: Literal["constant", "exponential"] = Field(default="constant")
    UPDATE_MAX_BACKOFF_SECONDS: float = Field(default=30.0, ge=0)
    UPDATE_CONCURRENCY: int = Field(default=1, ge=1)

    # Archive Configuration
    ARCHIVE_BACKEND: Literal["blob", "local"] = Field(default="blob")
    BLOB_CONNECTION_STRING: str = Field(default="")
    BLOB_CONTAINER_NAME: str = Field(default="")
    ARCHIVE_PREFIX: str = Field(default="accountentityprocessing")
    ARCHIVE_LABEL: str = Field(default="AccountsProcessed")
    LOCAL_ARCHIVE_DIR: str = Field(default="/app/data/archive")
    EXPORT_DIR: str | None = Field(default=None)

    # Scheduler Configuration
    SYNC_SCHEDULE_CRON: str = Field(default="0 2 * * *")
    RUN_TIMEOUT_SECONDS: float = Field(default=600.0, gt=0)
    RUN_ONCE: bool = Field(default=False)

    # Trigger API Configuration
    API_PORT: int = Field(default=8000)
    API_HOST: str = Field(default="0.0.0.0")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: Literal["json", "text"] = Field(default="json")

    # Application Metadata
    ENVIRONMENT: str = Field(default="production")
    APP_NAME: str = Field(default="account-archive-sync")
    APP_VERSION: str = Field(default="0.1.0")

    @property
    def api_root(self) -> str:
        """Web API root, e.g. https://org.crm.dynamics.com/api/data/v9.2"""
        return f"{self.DYNAMICS_URL.rstrip('/')}/api/data/{self.DYNAMICS_API_VERSION}"

    def require(self, *names: str) -> None:
        """Fail fast when any of the named settings is empty.

        Raises:
            ConfigError: listing every missing setting
        """
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            raise ConfigError(
                f"Missing required configuration: {', '.join(missing)}",
                details={"missing": missing},
            )


def load_settings(**overrides: object) -> Settings:
    """Build a fresh Settings instance for one run.

    Args:
        **overrides: Explicit values that take precedence over the environment

    Returns:
        Settings instance
    """
    return Settings(**overrides)
