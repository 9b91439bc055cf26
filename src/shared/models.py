"""Core data models for the MCP Gateway.

This module defines the shared data structures used by the security gate
and the thin protocol layer behind it.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class Severity(str, Enum):
    """Severity of a security event."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RateLimitEntry(BaseModel):
    """
    Fixed-window counter for one identifier.

    Owned by a RateLimiter and mutated in place under its lock.
    ``reset_time`` is expressed on the limiter's clock, in seconds.
    """
    count: int = Field(default=0, ge=0)
    reset_time: float


class SecurityEvent(BaseModel):
    """
    Structured record of a security-relevant decision.

    Events are immutable once recorded.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utcnow)
    event: str = Field(..., description="Event kind, e.g. authentication_failed")
    identifier: str = Field(..., description="Best-effort client identifier")
    details: dict[str, Any] = Field(default_factory=dict)
    severity: Severity = Severity.LOW


class Rejection(BaseModel):
    """Terminal output of a gate stage that denies a request."""
    model_config = ConfigDict(frozen=True)

    status_code: int
    error_kind: str
    message: str
    retry_after: Optional[int] = None
    headers: dict[str, str] = Field(default_factory=dict)

    def to_body(self) -> dict[str, Any]:
        """JSON body sent back to the caller."""
        body: dict[str, Any] = {"error": self.error_kind, "message": self.message}
        if self.retry_after is not None:
            body["retry_after"] = self.retry_after
        return body


class ToolDefinition(BaseModel):
    """
    Definition of a tool exposed through the MCP endpoint.

    ``input_schema`` is a JSON Schema used to validate arguments before
    the handler runs.
    """
    name: str = Field(..., description="Tool name as seen by MCP clients")
    description: str = Field(..., description="Human readable description")
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
        description="JSON Schema for input validation"
    )

    def to_mcp(self) -> dict[str, Any]:
        """Format for a tools/list response."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class ResourceDefinition(BaseModel):
    """Definition of a readable resource."""
    uri: str
    name: str
    description: str
    mime_type: str = "text/plain"

    def to_mcp(self) -> dict[str, Any]:
        """Format for a resources/list response."""
        return {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }


class ToolResultStatus(str, Enum):
    """Status of tool execution."""
    SUCCESS = "success"
    ERROR = "error"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    RATE_LIMITED = "rate_limited"


class ToolResult(BaseModel):
    """
    Result of a tool execution.

    Failures are carried as data so a bad argument never turns into a
    transport-level fault.
    """
    tool_name: str
    status: ToolResultStatus
    text: Optional[str] = None
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    execution_time_ms: float = 0

    @property
    def is_error(self) -> bool:
        return self.status != ToolResultStatus.SUCCESS

    def to_mcp(self) -> dict[str, Any]:
        """Format for a tools/call response."""
        if self.is_error:
            text = f"Error: {self.error}"
        elif self.text is not None:
            text = self.text
        else:
            text = str(self.data)
        content: dict[str, Any] = {
            "content": [{"type": "text", "text": text}],
            "isError": self.is_error,
        }
        if self.data is not None:
            content["structuredContent"] = self.data
        if self.error_code:
            content["errorCode"] = self.error_code
        return content


class RequestContext(BaseModel):
    """
    In-flight request as seen by the security gate.

    Every stage receives the same context. ``response_headers`` collects
    the headers the gate wants on the final response, including rejections.
    """
    method: str
    path: str
    headers: dict[str, str] = Field(default_factory=dict)
    client_host: Optional[str] = None
    request_id: str = ""
    response_headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("headers")
    @classmethod
    def _lower_header_names(cls, value: dict[str, str]) -> dict[str, str]:
        return {k.lower(): v for k, v in value.items()}

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower())

    @property
    def client_id(self) -> str:
        """
        Best-effort client identifier, honouring proxy headers.

        First entry of X-Forwarded-For, then X-Real-IP, then the socket peer.
        """
        forwarded = self.header("x-forwarded-for")
        if forwarded is not None:
            first = forwarded.split(",")[0].strip()
            return first or "unknown"
        real_ip = self.header("x-real-ip")
        if real_ip:
            return real_ip
        return self.client_host or "unknown"
