"""Configuration management for the MCP Gateway.

Supports YAML configuration files and environment variable overrides.
Configuration is loaded once and cached for performance. Invalid settings
raise at load time so a misconfigured gateway never accepts traffic.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Optional

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

VALID_ENVIRONMENTS = ("development", "production", "test")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class SecuritySettings(BaseSettings):
    """Security gate configuration. Read-only to the gate."""
    enable_auth: bool = Field(default=False)
    api_key: Optional[str] = Field(default=None, description="Bearer secret for the protected prefix")
    enable_rate_limit: bool = Field(default=True)
    max_requests_per_minute: int = Field(default=100, gt=0)
    rate_limit_window_ms: int = Field(default=60_000, gt=0)
    tool_rate_limit_per_minute: int = Field(default=60, gt=0)
    enable_request_logging: bool = Field(default=True)
    trusted_origins: Annotated[list[str], NoDecode] = Field(default_factory=list)
    protected_prefix: str = Field(default="/mcp")

    model_config = SettingsConfigDict(
        env_prefix="SECURITY_",
        env_file=".env",
        extra="ignore"
    )

    @field_validator("trusted_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        # TRUSTED_ORIGINS arrives from the environment as "a,b,c"
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @model_validator(mode="after")
    def _require_key_with_auth(self) -> "SecuritySettings":
        if self.enable_auth and not self.api_key:
            raise ValueError("enable_auth requires a non-empty api_key")
        return self


class ServerSettings(BaseSettings):
    """HTTP server configuration."""
    host: str = Field(default="localhost")
    port: int = Field(default=8080, ge=1, le=65535)
    mcp_endpoint: str = Field(default="/mcp")
    health_endpoint: str = Field(default="/health")
    cleanup_interval_seconds: float = Field(default=300, gt=0)
    audit_capacity: int = Field(default=1000, gt=0)
    audit_export_path: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="MCP_SERVER_",
        env_file=".env",
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main application settings."""
    name: str = Field(default="mcp-gateway")
    version: str = Field(default="0.1.0")
    environment: str = Field(default="development")
    log_level: Optional[str] = Field(default=None)

    # Component settings
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def _check_environment(cls, value: str) -> str:
        if value not in VALID_ENVIRONMENTS:
            raise ValueError(
                f"Invalid environment: {value}. Must be one of: {', '.join(VALID_ENVIRONMENTS)}"
            )
        return value

    @model_validator(mode="after")
    def _resolve_log_level(self) -> "Settings":
        if self.log_level is None:
            self.log_level = "DEBUG" if self.environment == "development" else "INFO"
        level = self.log_level.upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level: {self.log_level}. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )
        self.log_level = level
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        return cls(**load_yaml_config(path))


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("MCP_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)
