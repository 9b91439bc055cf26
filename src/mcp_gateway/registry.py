"""Tool and resource registry for the MCP endpoint.

Tools and resources are keyed by closed enums; a name that is not a
member parses to ``UNKNOWN`` and is never looked up by string.
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from shared.logging import get_logger
from shared.models import ResourceDefinition, ToolDefinition, ToolResult
from shared.schema import validate_schema

logger = get_logger(__name__)


class ToolName(str, Enum):
    """Known tool names."""
    HELLO_WORLD = "hello_world"
    CHECK_PATH = "check_path"
    INSPECT_URL = "inspect_url"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, name: Any) -> "ToolName":
        try:
            member = cls(name)
        except ValueError:
            return cls.UNKNOWN
        return member


class ResourceUri(str, Enum):
    """Known resource URIs."""
    INFO = "boilerplate://info"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, uri: Any) -> "ResourceUri":
        try:
            member = cls(uri)
        except ValueError:
            return cls.UNKNOWN
        return member


HandlerResult = Union[ToolResult, dict[str, Any], str]
ToolHandler = Callable[[dict[str, Any]], Union[HandlerResult, Awaitable[HandlerResult]]]
ResourceReader = Callable[[], str]


class ToolRegistry:
    """
    Registry of tool handlers and resource readers.

    Responsibilities:
    - Register tools and resources
    - List them for MCP clients
    - Validate tool arguments against each tool's schema
    """

    def __init__(self) -> None:
        self._tools: dict[ToolName, tuple[ToolDefinition, ToolHandler]] = {}
        self._resources: dict[ResourceUri, tuple[ResourceDefinition, ResourceReader]] = {}

    def register(self, name: ToolName, tool: ToolDefinition, handler: ToolHandler) -> None:
        """
        Register a tool.

        Raises:
            ValueError: If the name is UNKNOWN or already registered
        """
        if name is ToolName.UNKNOWN:
            raise ValueError("Cannot register the UNKNOWN tool")
        if name in self._tools:
            raise ValueError(f"Tool '{name.value}' is already registered")

        self._tools[name] = (tool, handler)
        logger.info("Tool registered", tool=name.value)

    def register_resource(
        self,
        uri: ResourceUri,
        resource: ResourceDefinition,
        reader: ResourceReader
    ) -> None:
        """
        Register a resource.

        Raises:
            ValueError: If the URI is UNKNOWN or already registered
        """
        if uri is ResourceUri.UNKNOWN:
            raise ValueError("Cannot register the UNKNOWN resource")
        if uri in self._resources:
            raise ValueError(f"Resource '{uri.value}' is already registered")

        self._resources[uri] = (resource, reader)
        logger.info("Resource registered", uri=uri.value)

    def get(self, name: ToolName) -> Optional[tuple[ToolDefinition, ToolHandler]]:
        return self._tools.get(name)

    def get_resource(self, uri: ResourceUri) -> Optional[tuple[ResourceDefinition, ResourceReader]]:
        return self._resources.get(uri)

    def list_tools(self) -> list[ToolDefinition]:
        return [tool for tool, _ in self._tools.values()]

    def list_resources(self) -> list[ResourceDefinition]:
        return [resource for resource, _ in self._resources.values()]

    def validate_input(
        self,
        name: ToolName,
        arguments: dict[str, Any]
    ) -> tuple[bool, list[str]]:
        """
        Validate arguments against a tool's input schema.

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        entry = self.get(name)
        if entry is None:
            return False, [f"Tool '{name.value}' not found"]

        tool, _ = entry
        return validate_schema(arguments, tool.input_schema)
