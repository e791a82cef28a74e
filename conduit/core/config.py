"""Centralized configuration management with environment-aware defaults.

This module implements the configuration system using Pydantic Settings,
providing type-safe configuration with validation and environment variable
support for both halves of Conduit: the typed request client and the edge
that rewrites `/api/*` paths to the backend.

Features:
- **Type safety**: All configuration values are validated and typed
- **Environment variables**: Supports .env files and environment overrides
- **Nested configuration**: Uses __ delimiter for complex config structures
- **Immutability**: Client and edge configuration are frozen once loaded
- **Caching**: Configuration is cached for the process lifetime

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in project root
3. Default values in model definitions
"""

import os
from functools import lru_cache
from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from conduit.core.constants import (
    DEFAULT_BACKEND_URL,
    DEFAULT_HSTS_MAX_AGE,
    DEFAULT_PUBLIC_PREFIX,
    DEFAULT_REQUEST_TIMEOUT_MS,
)


class LogConfig(BaseModel):
    """Simplified logging configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_formatter_type: Literal["console", "json"] | None = Field(
        default=None,
        description="Log output formatter. Auto-detected if not specified.",
    )
    excluded_paths: list[str] = Field(
        default_factory=lambda: ["/health"],
        description="Paths to exclude from request logging",
    )
    slow_request_threshold_ms: int = Field(
        default=1000,
        gt=0,
        description="Threshold for slow request warnings (milliseconds)",
    )
    sensitive_fields: list[str] = Field(
        default_factory=lambda: [
            "password",
            "token",
            "secret",
            "api_key",
            "authorization",
        ],
        description="Field names to redact",
    )


class ObservabilityConfig(BaseModel):
    """Cloud-agnostic observability configuration."""

    enable_tracing: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing",
    )
    exporter_type: Literal["console", "otlp", "none"] = Field(
        default="console",
        description="Trace exporter type. Defaults to console for development.",
    )
    exporter_endpoint: str | None = Field(
        default=None,
        description="OTLP exporter endpoint",
    )
    trace_sample_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Trace sampling rate (0.0 to 1.0)",
    )

    @field_validator("exporter_endpoint", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        if v == "":
            return None
        return v


class ClientConfig(BaseModel):
    """Immutable configuration shared by every request an ApiClient issues."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(
        default=DEFAULT_BACKEND_URL,
        description="Origin requests are sent to (scheme://host[:port])",
    )
    timeout_ms: int = Field(
        default=DEFAULT_REQUEST_TIMEOUT_MS,
        gt=0,
        description="Default request timeout in milliseconds",
    )
    public_prefix: str = Field(
        default=DEFAULT_PUBLIC_PREFIX,
        description="Path prefix every client path is relative to",
    )
    default_headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers sent with every request unless overridden",
    )

    @field_validator("base_url", mode="after")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) origin and drop any trailing slash."""
        parts = urlsplit(v)
        if parts.scheme not in {"http", "https"} or not parts.netloc:
            msg = f"base_url must be an http(s) origin, got {v!r}"
            raise ValueError(msg)
        return v.rstrip("/")

    @field_validator("public_prefix", mode="after")
    @classmethod
    def normalize_prefix(cls, v: str) -> str:
        """Public prefix is stored with a leading slash and no trailing one."""
        v = v.strip()
        if not v.startswith("/"):
            v = "/" + v
        return v.rstrip("/")


class RewriteRuleConfig(BaseModel):
    """Raw rewrite rule as read from the environment."""

    model_config = ConfigDict(frozen=True)

    match_prefix: str
    destination_origin: str


class EdgeConfig(BaseModel):
    """Configuration of the edge application (routing and response headers)."""

    model_config = ConfigDict(frozen=True)

    rewrite_rules: tuple[RewriteRuleConfig, ...] = Field(
        default=(),
        description=(
            "Ordered rewrite rules. When empty, a single rule forwarding the "
            "client public prefix to client_config.base_url is derived."
        ),
    )
    proxy_timeout_ms: int = Field(
        default=30000,
        gt=0,
        description="Timeout applied when forwarding a request to the backend",
    )
    static_dir: str | None = Field(
        default=None,
        description="Directory holding the built single-page application",
    )
    hsts_enabled: bool = Field(default=True, description="Send HSTS header")
    hsts_max_age: int = Field(
        default=DEFAULT_HSTS_MAX_AGE,
        ge=0,
        description="HSTS max-age in seconds",
    )
    hsts_include_subdomains: bool = Field(
        default=True, description="Add includeSubDomains to HSTS"
    )
    hsts_preload: bool = Field(default=False, description="Add preload to HSTS")

    @field_validator("static_dir", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        if v == "":
            return None
        return v


class Settings(BaseSettings):
    """Main settings class for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
    )

    # Application settings
    app_name: str = Field(default="Conduit", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Environment the application is running in",
    )
    debug: bool = Field(default=True, description="Debug mode flag")

    # Edge server settings
    api_host: str = Field(default="127.0.0.1", description="Edge host")
    api_port: int = Field(default=3000, description="Edge port")

    client_config: ClientConfig = Field(
        default_factory=ClientConfig, description="Request client configuration"
    )
    edge_config: EdgeConfig = Field(
        default_factory=EdgeConfig, description="Edge routing configuration"
    )
    log_config: LogConfig = Field(
        default_factory=LogConfig, description="Logging configuration"
    )
    observability_config: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig, description="Observability configuration"
    )

    @model_validator(mode="after")
    def derive_default_rewrite_rule(self) -> "Settings":
        """Forward the public prefix to the backend when no rules are given."""
        if not self.edge_config.rewrite_rules:
            rule = RewriteRuleConfig(
                match_prefix=self.client_config.public_prefix + "/",
                destination_origin=self.client_config.base_url,
            )
            self.edge_config = self.edge_config.model_copy(
                update={"rewrite_rules": (rule,)}
            )
        return self

    def model_post_init(self, __context: object) -> None:
        """Post initialization to set environment-based defaults."""
        super().model_post_init(__context)

        if self.log_config.log_formatter_type is None:
            self.log_config.log_formatter_type = self._detect_formatter()

    def _detect_formatter(self) -> Literal["console", "json"]:
        """Auto-detect log formatter based on environment."""
        # Containers in the cloud get structured output
        if os.getenv("K_SERVICE") or os.getenv("AWS_EXECUTION_ENV"):
            return "json"

        if self.environment == "development":
            return "console"
        return "json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
