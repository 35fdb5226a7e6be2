# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

Settings are loaded from environment variables with sensible defaults.
The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from campus_results.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.risk.window
    5
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "change-this-in-production"


class DatabaseSettings(BaseSettings):
    """Results database configuration.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        url_override: Full async DSN; takes precedence over the components.
        echo: Log every SQL statement.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
        populate_by_name=True,
    )

    user: str = "campus"
    password: SecretStr = SecretStr("campus_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "campus_results"
    pool_size: int = 10
    max_overflow: int = 20
    url_override: str | None = Field(default=None, validation_alias="DATABASE_URL")
    echo: bool = False

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured URL targets SQLite."""
        return self.url.startswith("sqlite")


class JWTSettings(BaseSettings):
    """Bearer token verification configuration.

    Tokens are issued by the identity service; this engine only verifies them.

    Attributes:
        secret_key: Secret key used to verify signatures.
        algorithm: JWT signing algorithm.
        audience: Expected audience claim, if the issuer sets one.
    """

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        extra="ignore",
    )

    secret_key: SecretStr = SecretStr(DEFAULT_JWT_SECRET)
    algorithm: str = "HS256"
    audience: str | None = None


class RateLimitSettings(BaseSettings):
    """Rate limiting configuration for the public verification path.

    Attributes:
        verification_per_minute: Verification lookups allowed per client IP.
        storage_uri: slowapi storage backend.
    """

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        extra="ignore",
    )

    verification_per_minute: int = 30
    storage_uri: str = "memory://"


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Server bind address.
        port: Server port.
        request_timeout_seconds: Deadline applied to every request.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8000
    request_timeout_seconds: float = 30.0


class WorkflowSettings(BaseSettings):
    """Result workflow configuration.

    Attributes:
        token_bytes: Random bytes behind each verification token.
        batch_deadline_seconds: Default deadline for batch submit/publish.
        reference_prefix: Prefix of human-readable result references.
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_",
        extra="ignore",
    )

    token_bytes: int = Field(default=24, ge=16)
    batch_deadline_seconds: float = Field(default=60.0, gt=0)
    reference_prefix: str = "RES"


class RiskSettings(BaseSettings):
    """Dropout-risk heuristic configuration.

    risk = 100 * (wf*F + wt*T + wc*C) / (wf + wt + wc) where F is the
    failure rate over the last `window` published results, T the clamped
    negative slope of those scores and C the share of expected
    evaluations the student is missing.

    Attributes:
        window: Number of most recent published results considered.
        failure_weight: Weight of the failure rate.
        trend_weight: Weight of the downward trend.
        coverage_weight: Weight of the missing-evaluation share.
        slope_cap: Slope (points per evaluation) mapped to a full trend signal.
        pass_threshold: Normalized score under which a result counts as failed.
        at_risk_threshold: Score from which a student counts as at risk.
    """

    model_config = SettingsConfigDict(
        env_prefix="RISK_",
        extra="ignore",
    )

    window: int = Field(default=5, ge=1)
    failure_weight: float = Field(default=0.5, ge=0)
    trend_weight: float = Field(default=0.3, ge=0)
    coverage_weight: float = Field(default=0.2, ge=0)
    slope_cap: float = Field(default=2.0, gt=0)
    pass_threshold: float = 10.0
    at_risk_threshold: float = 60.0

    @model_validator(mode="after")
    def validate_weights(self) -> Self:
        """Reject a configuration where every weight is zero."""
        if self.failure_weight + self.trend_weight + self.coverage_weight <= 0:
            raise ValueError("At least one dropout-risk weight must be positive")
        return self


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        jwt: Bearer token settings.
        rate_limit: Rate limiting settings.
        api: API server settings.
        workflow: Result workflow settings.
        risk: Dropout-risk settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    api: APISettings = Field(default_factory=APISettings)
    workflow: WorkflowSettings = Field(default_factory=WorkflowSettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            if self.jwt.secret_key.get_secret_value() == DEFAULT_JWT_SECRET:
                raise ValueError(
                    "JWT secret key must be changed from default in production. "
                    "Set JWT_SECRET_KEY environment variable."
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
    """
    get_settings.cache_clear()
