"""Tool Router for the MCP endpoint.

Routes admitted tool calls to their handlers.
Handles name resolution, per-tool throttling, argument validation and
execution. Runs only after the security gate has admitted the request.
"""

import asyncio
import time
from typing import Any, Optional

from shared.logging import get_logger
from shared.models import ToolResult, ToolResultStatus
from mcp_gateway.ratelimit import RateLimiter
from mcp_gateway.registry import (
    HandlerResult,
    ResourceUri,
    ToolHandler,
    ToolName,
    ToolRegistry,
)

logger = get_logger(__name__)


class ResourceNotFound(LookupError):
    """Requested resource URI is not registered."""


class ToolRouter:
    """
    Routes tool calls to registered handlers.

    Responsibilities:
    - Resolve tool names to the closed set of known tools
    - Throttle calls per tool name
    - Validate arguments against schemas
    - Turn every failure into a ToolResult
    """

    def __init__(
        self,
        registry: ToolRegistry,
        tool_limiter: Optional[RateLimiter] = None,
        max_calls_per_minute: int = 60,
        window_ms: int = 60_000
    ) -> None:
        self.registry = registry
        self.tool_limiter = tool_limiter if tool_limiter is not None else RateLimiter(name="tool")
        self.max_calls_per_minute = max_calls_per_minute
        self.window_ms = window_ms

    async def execute(self, tool_name: Any, arguments: Optional[dict[str, Any]] = None) -> ToolResult:
        """
        Execute a tool call.

        Args:
            tool_name: Name supplied by the client
            arguments: Tool arguments

        Returns:
            Tool execution result
        """
        start_time = time.time()
        arguments = arguments or {}
        name = ToolName.parse(tool_name)

        entry = self.registry.get(name)
        if entry is None:
            logger.warning("Unknown tool requested", tool=str(tool_name))
            return ToolResult(
                tool_name=str(tool_name),
                status=ToolResultStatus.NOT_FOUND,
                error=f"Unknown tool: {tool_name}",
                error_code="TOOL_NOT_FOUND"
            )
        _, handler = entry

        if not self.tool_limiter.check(name.value, self.max_calls_per_minute, self.window_ms):
            logger.warning("Tool rate limit exceeded", tool=name.value)
            return ToolResult(
                tool_name=name.value,
                status=ToolResultStatus.RATE_LIMITED,
                error=f"Rate limit exceeded for tool '{name.value}'",
                error_code="TOOL_RATE_LIMITED"
            )

        is_valid, errors = self.registry.validate_input(name, arguments)
        if not is_valid:
            return ToolResult(
                tool_name=name.value,
                status=ToolResultStatus.VALIDATION_ERROR,
                error=f"Validation failed: {'; '.join(errors)}",
                error_code="VALIDATION_ERROR"
            )

        try:
            result = self._normalize(name, await self._call(handler, arguments))
        except Exception as e:
            logger.error(
                "Tool execution failed",
                tool=name.value,
                error=str(e),
                exc_info=True
            )
            result = ToolResult(
                tool_name=name.value,
                status=ToolResultStatus.ERROR,
                error=str(e),
                error_code="EXECUTION_ERROR"
            )

        result.execution_time_ms = (time.time() - start_time) * 1000
        logger.info(
            "Tool executed",
            tool=name.value,
            status=result.status.value,
            execution_time_ms=result.execution_time_ms
        )
        return result

    async def _call(self, handler: ToolHandler, arguments: dict[str, Any]) -> HandlerResult:
        result = handler(arguments)
        if asyncio.iscoroutine(result):
            result = await result
        return result

    @staticmethod
    def _normalize(name: ToolName, result: HandlerResult) -> ToolResult:
        if isinstance(result, ToolResult):
            return result
        if isinstance(result, str):
            return ToolResult(tool_name=name.value, status=ToolResultStatus.SUCCESS, text=result)
        return ToolResult(tool_name=name.value, status=ToolResultStatus.SUCCESS, data=result)

    def read_resource(self, uri: Any) -> dict[str, Any]:
        """
        Read a registered resource.

        Raises:
            ResourceNotFound: If the URI is not a known resource
        """
        entry = self.registry.get_resource(ResourceUri.parse(uri))
        if entry is None:
            raise ResourceNotFound(f"Unknown resource: {uri}")

        resource, reader = entry
        return {
            "contents": [
                {"uri": resource.uri, "mimeType": resource.mime_type, "text": reader()}
            ]
        }
