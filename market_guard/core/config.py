"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class RateLimitPolicy(BaseModel):
    """A single throttling tier: at most N requests per rolling window."""

    max_requests: int = Field(..., ge=1, description="Admitted requests per window")
    window_ms: int = Field(..., ge=1, description="Rolling window length in milliseconds")


def _default_policies() -> dict[str, RateLimitPolicy]:
    return {
        "purchase": RateLimitPolicy(max_requests=5, window_ms=60_000),
        "creation": RateLimitPolicy(max_requests=3, window_ms=3_600_000),
        "beautify": RateLimitPolicy(max_requests=10, window_ms=60_000),
    }


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AuthSettings(BaseSettings):
    """Bearer token verification and role configuration."""

    jwt_secret: str | None = Field(
        None,
        description="Shared secret (or public key) used to verify bearer tokens",
    )
    jwt_algorithm: str = Field("HS256", description="Expected JWT signing algorithm")
    jwt_issuer: str | None = Field(None, description="Expected `iss` claim, if any")
    jwt_audience: str | None = Field(None, description="Expected `aud` claim, if any")
    admin_role: str = Field("admin", description="Role required for admin endpoints")

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Throttling configuration shared by all request handlers."""

    enabled: bool = Field(
        True,
        description="Enable per-caller rate limiting",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    sweep_probability: float = Field(
        0.01,
        description="Chance that a limiter call also sweeps idle identifiers",
        ge=0.0,
        le=1.0,
    )
    sweep_interval_seconds: float = Field(
        0.0,
        description="Run a periodic sweep at this interval (0 disables the timer)",
        ge=0.0,
    )
    trusted_proxy_hops: int = Field(
        0,
        description=(
            "Number of trusted reverse proxies appending to X-Forwarded-For. "
            "0 ignores the header and keys anonymous callers by peer address"
        ),
        ge=0,
    )
    policies: dict[str, RateLimitPolicy] = Field(
        default_factory=_default_policies,
        description="Named throttling tiers (JSON in RATE_LIMIT_POLICIES)",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


def _build_app_settings() -> AppSettings:
    """Build app settings from environment.

    Static type checkers treat fields as constructor arguments, which is not
    how BaseSettings is meant to be used; hence the factories below.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> LogSettings:
    return LogSettings()  # type: ignore[call-arg]


def _build_auth_settings() -> AuthSettings:
    return AuthSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> RateLimitSettings:
    return RateLimitSettings()  # type: ignore[call-arg]


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)
    auth: AuthSettings = Field(default_factory=_build_auth_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
