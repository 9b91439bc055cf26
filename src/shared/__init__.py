"""Shared models, configuration and logging for the MCP Gateway."""

from shared.models import (
    Rejection,
    RequestContext,
    SecurityEvent,
    Severity,
    ToolDefinition,
    ToolResult,
    ToolResultStatus,
)
from shared.config import SecuritySettings, Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "Rejection",
    "RequestContext",
    "SecurityEvent",
    "Severity",
    "ToolDefinition",
    "ToolResult",
    "ToolResultStatus",
    "SecuritySettings",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
