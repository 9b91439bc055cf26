"""Built-in tools and resources.

Each handler that accepts a free-form argument runs it through the
sanitizers and turns a validation failure into a failed tool result.
"""

from typing import Any

from shared.models import ResourceDefinition, ToolDefinition, ToolResult, ToolResultStatus
from shared.schema import object_schema
from mcp_gateway.errors import ValidationError
from mcp_gateway.registry import ResourceUri, ToolName, ToolRegistry
from mcp_gateway.validation import (
    DEFAULT_MAX_LENGTH,
    sanitize_input,
    validate_file_path,
    validate_url,
)

NAME_MAX_LENGTH = 100

INFO_TEXT = (
    "MCP Gateway: a security-hardened MCP server. Every request passes "
    "security headers, origin checks, rate limiting and bearer-token "
    "authentication before it reaches a tool or resource."
)


def _invalid(tool: ToolName, error: ValidationError) -> ToolResult:
    return ToolResult(
        tool_name=tool.value,
        status=ToolResultStatus.VALIDATION_ERROR,
        error=str(error),
        error_code=type(error).__name__,
    )


def hello_world(arguments: dict[str, Any]) -> ToolResult:
    """Return a greeting, optionally personalised."""
    raw_name = arguments.get("name")
    if not raw_name:
        return ToolResult(
            tool_name=ToolName.HELLO_WORLD.value,
            status=ToolResultStatus.SUCCESS,
            text="Hello, World! Your MCP server is working correctly.",
        )

    try:
        name = sanitize_input(raw_name, max_length=NAME_MAX_LENGTH)
    except ValidationError as e:
        return _invalid(ToolName.HELLO_WORLD, e)

    return ToolResult(
        tool_name=ToolName.HELLO_WORLD.value,
        status=ToolResultStatus.SUCCESS,
        text=f"Hello, {name}! Welcome to your MCP server.",
    )


def check_path(arguments: dict[str, Any]) -> ToolResult:
    """Validate a relative file path and return its normalized form."""
    try:
        path = validate_file_path(arguments.get("path"))
    except ValidationError as e:
        return _invalid(ToolName.CHECK_PATH, e)

    return ToolResult(
        tool_name=ToolName.CHECK_PATH.value,
        status=ToolResultStatus.SUCCESS,
        text=f"Path is safe: {path}",
        data={"path": path},
    )


def inspect_url(arguments: dict[str, Any]) -> ToolResult:
    """Validate a URL and describe its parts. Nothing is fetched."""
    try:
        parsed = validate_url(arguments.get("url"))
    except ValidationError as e:
        return _invalid(ToolName.INSPECT_URL, e)

    data = {
        "scheme": parsed.scheme,
        "host": parsed.hostname,
        "port": parsed.port,
        "path": parsed.path or "/",
        "query": parsed.query,
    }
    return ToolResult(
        tool_name=ToolName.INSPECT_URL.value,
        status=ToolResultStatus.SUCCESS,
        text=f"URL is allowed: {parsed.geturl()}",
        data=data,
    )


BUILTIN_TOOLS = (
    (
        ToolName.HELLO_WORLD,
        ToolDefinition(
            name=ToolName.HELLO_WORLD.value,
            description="Returns a greeting message",
            input_schema=object_schema([
                {"name": "name", "type": "string", "description": "Name to greet (optional)",
                 "required": False, "max_length": NAME_MAX_LENGTH},
            ]),
        ),
        hello_world,
    ),
    (
        ToolName.CHECK_PATH,
        ToolDefinition(
            name=ToolName.CHECK_PATH.value,
            description="Checks that a relative file path is safe to use",
            input_schema=object_schema([
                {"name": "path", "type": "string", "description": "Relative file path",
                 "max_length": DEFAULT_MAX_LENGTH},
            ]),
        ),
        check_path,
    ),
    (
        ToolName.INSPECT_URL,
        ToolDefinition(
            name=ToolName.INSPECT_URL.value,
            description="Checks that a URL is allowed and returns its components",
            input_schema=object_schema([
                {"name": "url", "type": "string", "description": "http or https URL",
                 "max_length": DEFAULT_MAX_LENGTH},
            ]),
        ),
        inspect_url,
    ),
)

BUILTIN_RESOURCES = (
    (
        ResourceUri.INFO,
        ResourceDefinition(
            uri=ResourceUri.INFO.value,
            name="Server Information",
            description="Information about this MCP server",
        ),
        lambda: INFO_TEXT,
    ),
)


def register_builtin(registry: ToolRegistry) -> ToolRegistry:
    """Register all built-in tools and resources."""
    for name, tool, handler in BUILTIN_TOOLS:
        registry.register(name, tool, handler)
    for uri, resource, reader in BUILTIN_RESOURCES:
        registry.register_resource(uri, resource, reader)
    return registry
