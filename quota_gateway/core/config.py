"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

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


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class LLMSettings(BaseSettings):
    """Completion provider configuration.

    Any OpenAI-compatible endpoint works; the default points at Groq.
    Missing credentials are reported by the client factory, not here, so the
    quota endpoints stay usable without a provider key.
    """

    provider: str = Field(
        "openai",
        description="Client implementation (openai covers OpenAI-compatible APIs)",
    )
    api_key: str | None = Field(
        None,
        description="API key for the completion provider",
    )
    base_url: str | None = Field(
        "https://api.groq.com/openai/v1",
        description="OpenAI-compatible endpoint",
    )
    timeout_seconds: float = Field(
        45.0,
        description="Request timeout in seconds",
    )
    top_p: float = Field(0.9, ge=0.0, le=1.0)

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        case_sensitive=False,
    )


class ModelSettings(BaseSettings):
    """Tier names and the hysteresis parameters of the model selector."""

    primary: str = Field(
        "llama-3.1-8b-instant",
        description="Model used while load is below the trip threshold",
    )
    degraded: str = Field(
        "compound-mini",
        description="Cheaper model forced while in fallback mode",
    )
    trip_threshold: float = Field(
        0.70,
        gt=0.0,
        le=1.0,
        description="Load fraction above which the degraded tier is forced",
    )
    recovery_threshold: float = Field(
        0.50,
        gt=0.0,
        le=1.0,
        description="Load fraction below which fallback mode may be cleared",
    )
    cooldown_seconds: int = Field(
        300,
        ge=0,
        description="Minimum time spent in fallback mode once tripped",
    )

    model_config = SettingsConfigDict(
        env_prefix="MODEL_",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def _check_thresholds(self) -> "ModelSettings":
        if self.recovery_threshold > self.trip_threshold:
            raise ValueError("recovery_threshold must not exceed trip_threshold")
        return self


class QuotaSettings(BaseSettings):
    """Global (shared upstream) and per-identity limits."""

    global_rpm: int = Field(30, ge=1, description="Requests per minute, all identities")
    global_rpd: int = Field(14400, ge=1, description="Requests per day, all identities")
    global_tpm: int = Field(6000, ge=1, description="Tokens per minute, all identities")
    global_tpd: int = Field(500000, ge=1, description="Tokens per day, all identities")
    identity_rpd: int = Field(50, ge=1, description="Requests per day, per identity")
    identity_tpd: int = Field(20000, ge=1, description="Tokens per day, per identity")

    model_config = SettingsConfigDict(
        env_prefix="QUOTA_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Counter store backend selection."""

    backend: str = Field(
        "memory",
        description="Counter store backend: memory or redis",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL (rediss:// enables TLS)",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        gt=0.0,
        description="Redis socket timeout; a timeout surfaces as store unavailability",
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )
    max_prompt_chars: int = Field(
        50000,
        ge=1,
        description="Maximum combined prompt length in characters",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable HTTP rate limiting per API key",
    )
    rate_limit_requests: int = Field(
        60,
        description="Maximum number of requests allowed per window (per API key)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, ge=0, description="Rotate after this many bytes (0 disables)")
    backup_count: int = Field(3, ge=0)
    request_id_header: str = Field("X-Request-ID")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    llm: LLMSettings = Field(default_factory=LLMSettings)
    models: ModelSettings = Field(default_factory=ModelSettings)
    quota: QuotaSettings = Field(default_factory=QuotaSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
