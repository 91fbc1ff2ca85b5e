"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
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


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_auth_settings() -> "AuthSettings":
    """Build auth settings from environment.

    Pydantic Settings (v2) populates required fields from environment
    variables, which static type checkers see as missing constructor args.
    """

    return AuthSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    client_url: str = Field(
        "http://localhost:5173",
        description="Frontend origin allowed by CORS (credentials enabled)",
    )
    trust_proxy_headers: bool = Field(
        False,
        description="Use the first X-Forwarded-For hop as the client origin",
    )
    max_compile_code_chars: int = Field(
        500_000,
        description="Maximum source size accepted by the compile endpoint",
    )
    max_snippet_code_chars: int = Field(
        100_000,
        description="Maximum source size stored per snippet",
    )
    max_snippet_title_chars: int = Field(
        100,
        description="Maximum snippet title length",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10_485_760, description="Rotate log file after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Number of rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Header carrying the correlation id")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Admission control configuration.

    Policies themselves are static code; these knobs only control the
    counting store and the HTTP surface of rejections.
    """

    enabled: bool = Field(
        True,
        description="Enable rate limiting for all policies",
    )
    redis_url: str | None = Field(
        None,
        description="Shared counter store URL (redis:// or rediss://). Memory store when unset.",
    )
    key_prefix: str = Field(
        "rl:",
        description="Prefix applied to every counter key in the shared store",
    )
    store_timeout_seconds: float = Field(
        0.5,
        description="Upper bound for a single shared store call before falling back",
        gt=0,
    )
    reconnect_interval_seconds: float = Field(
        5.0,
        description="Minimum delay between reconnect probes while the shared store is down",
        ge=0,
    )
    shutdown_timeout_seconds: float = Field(
        5.0,
        description="Maximum wait for in-flight increments on shutdown",
        ge=0,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class JudgeSettings(BaseSettings):
    """Remote code execution service (Judge0) configuration."""

    api_url: str = Field(
        "https://judge0-ce.p.rapidapi.com",
        description="Judge0 base URL",
    )
    api_key: str | None = Field(
        None,
        description="RapidAPI key; enables X-RapidAPI-* headers when set",
    )
    api_host: str = Field(
        "judge0-ce.p.rapidapi.com",
        description="Value sent as X-RapidAPI-Host",
    )
    timeout_seconds: float = Field(30.0, description="Request timeout in seconds")
    cpu_time_limit: float = Field(5.0, description="CPU time limit per submission (seconds)")
    memory_limit: int = Field(262_144, description="Memory limit per submission (KB)")

    model_config = SettingsConfigDict(
        env_prefix="JUDGE0_",
        case_sensitive=False,
    )


class AuthSettings(BaseSettings):
    """Session token and one-time passcode configuration."""

    jwt_secret: str = Field(
        ...,
        description="HMAC secret used to sign session tokens",
    )
    jwt_algorithm: str = Field("HS256", description="JWT signing algorithm")
    token_ttl_days: int = Field(7, description="Session lifetime in days", ge=1)
    cookie_name: str = Field("token", description="Session cookie name")
    cookie_secure: bool = Field(False, description="Mark the session cookie Secure")
    otp_length: int = Field(6, description="Number of digits per passcode", ge=4)
    otp_ttl_seconds: int = Field(600, description="Passcode lifetime in seconds", ge=1)

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if required settings are missing.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    judge: JudgeSettings = Field(default_factory=JudgeSettings)
    auth: AuthSettings = Field(default_factory=_build_auth_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
