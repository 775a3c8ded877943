# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for LearnBridge.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.integrations.connection_test_timeout)
    15.0
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational store configuration.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        url_override: Full async URL; takes precedence over the components.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        auto_migrate: Apply pending schema migrations at API startup.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "learnbridge"
    password: SecretStr = SecretStr("learnbridge_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "learnbridge"
    url_override: str | None = Field(default=None, validation_alias="DATABASE_URL")
    pool_size: int = 10
    max_overflow: int = 20
    auto_migrate: bool = False

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class RedisSettings(BaseSettings):
    """Redis configuration for the background task broker.

    Attributes:
        host: Redis server host.
        port: Redis server port.
        password: Redis password.
        database: Redis database number.
    """

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = 6379
    password: SecretStr | None = None
    database: int = 0

    @property
    def url(self) -> str:
        """Build the Redis connection URL."""
        if self.password is None:
            return f"redis://{self.host}:{self.port}/{self.database}"
        pwd = self.password.get_secret_value()
        return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"


class IntegrationSettings(BaseSettings):
    """External learning-platform integration configuration.

    Page delays are the pause inserted between two page requests to the same
    vendor and are part of each vendor's rate-limit contract.

    Attributes:
        request_timeout: Per-request timeout for adapter traffic in seconds.
        connection_test_timeout: Hard timeout for a connection test attempt.
        sync_timeout_seconds: Deadline for one status-managed sync run.
        stale_sync_minutes: Age after which a leftover "syncing" mark is ignored.
        page_size: Requested page size for list endpoints.
        max_pages: Upper bound on pages fetched per list operation.
        coursera_page_delay: Seconds between Coursera page requests.
        pluralsight_page_delay: Seconds between Pluralsight page requests.
        udemy_page_delay: Seconds between Udemy page requests.
        coursera_token_url: OAuth2 token endpoint for Coursera.
        coursera_api_url: Coursera for Business API root.
        pluralsight_api_url: Pluralsight plans API root.
        udemy_host_template: Udemy Business host, formatted with the account id.
    """

    model_config = SettingsConfigDict(
        env_prefix="INTEGRATIONS_",
        extra="ignore",
    )

    request_timeout: float = 30.0
    connection_test_timeout: float = 15.0
    sync_timeout_seconds: float = 900.0
    stale_sync_minutes: int = 60
    page_size: int = Field(default=100, ge=1, le=1000)
    max_pages: int = Field(default=500, ge=1)

    coursera_page_delay: float = Field(default=0.2, ge=0.15, le=0.3)
    pluralsight_page_delay: float = Field(default=0.25, ge=0.15, le=0.3)
    udemy_page_delay: float = Field(default=0.15, ge=0.15, le=0.3)

    coursera_token_url: str = "https://api.coursera.org/oauth2/client_credentials/token"
    coursera_api_url: str = "https://api.coursera.org/api/businesses.v1"
    pluralsight_api_url: str = "https://api.pluralsight.com/api/v1"
    udemy_host_template: str = "https://{account_id}.udemy.com"


class CORSSettings(BaseSettings):
    """CORS configuration for the API.

    Attributes:
        origins: Comma-separated list of allowed origins.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:3000"

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Bind address.
        port: Bind port.
        title: OpenAPI title.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    title: str = "LearnBridge API"


class Settings(BaseSettings):
    """Root application settings.

    Attributes:
        environment: Deployment environment.
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        redis: Redis settings.
        integrations: External platform integration settings.
        cors: CORS settings.
        api: API server settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "test", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    integrations: IntegrationSettings = Field(default_factory=IntegrationSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            if self.debug:
                raise ValueError(
                    "Debug mode must be disabled in production. Set DEBUG=false."
                )
            if self.database.password.get_secret_value() == "learnbridge_password":
                raise ValueError(
                    "Database password must be changed from default in production. "
                    "Set DB_PASSWORD environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
