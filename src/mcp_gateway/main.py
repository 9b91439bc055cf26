"""MCP Gateway - FastAPI Application.

Every request passes the security gate before it reaches a route. The MCP
endpoint itself is a thin JSON-RPC dispatcher over the built-in tools and
resources.
"""

import asyncio
import contextlib
import time
from contextlib import asynccontextmanager
from enum import Enum
from typing import Annotated, Any, Optional, Union

from fastapi import FastAPI, Query, Request
from pydantic import BaseModel, Field

from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging
from shared.models import SecurityEvent, Severity, utcnow
from mcp_gateway.audit import AuditLog
from mcp_gateway.middleware import SecurityGate, SecurityMiddleware
from mcp_gateway.ratelimit import RateLimiter, run_periodic_cleanup
from mcp_gateway.registry import ToolRegistry
from mcp_gateway.router import ResourceNotFound, ToolRouter
from mcp_gateway.tools import register_builtin
from mcp_gateway.validation import SafeString

logger = get_logger(__name__)

JSONRPC_VERSION = "2.0"
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


class McpMethod(str, Enum):
    """JSON-RPC methods served by the MCP endpoint."""
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    RESOURCES_LIST = "resources/list"
    RESOURCES_READ = "resources/read"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, method: str) -> "McpMethod":
        try:
            return cls(method)
        except ValueError:
            return cls.UNKNOWN


# Request/Response Models
class McpRequest(BaseModel):
    """JSON-RPC request to the MCP endpoint."""
    jsonrpc: str = Field(default=JSONRPC_VERSION)
    id: Optional[Union[int, str]] = None
    method: str
    params: dict[str, Any] = Field(default_factory=dict)


class McpResponse(BaseModel):
    """JSON-RPC response from the MCP endpoint."""
    jsonrpc: str = JSONRPC_VERSION
    id: Optional[Union[int, str]] = None
    result: Optional[dict[str, Any]] = None
    error: Optional[dict[str, Any]] = None


class SecurityEventQuery(BaseModel):
    """Filters for the security event snapshot."""
    event: Optional[SafeString] = None
    identifier: Optional[SafeString] = None
    severity: Optional[Severity] = None
    limit: int = Field(default=100, ge=1, le=1000)


class SecurityEventList(BaseModel):
    events: list[SecurityEvent]
    count: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    name: str
    uptime: str
    environment: str


def _rpc_error(request_id: Optional[Union[int, str]], code: int, message: str) -> McpResponse:
    return McpResponse(id=request_id, error={"code": code, "message": message})


async def dispatch(router: ToolRouter, request: McpRequest) -> McpResponse:
    """Dispatch one JSON-RPC request to the tool router."""
    method = McpMethod.parse(request.method)

    if method is McpMethod.TOOLS_LIST:
        tools = [tool.to_mcp() for tool in router.registry.list_tools()]
        return McpResponse(id=request.id, result={"tools": tools})

    if method is McpMethod.TOOLS_CALL:
        arguments = request.params.get("arguments") or {}
        if not isinstance(arguments, dict):
            return _rpc_error(request.id, INVALID_PARAMS, "arguments must be an object")
        result = await router.execute(request.params.get("name"), arguments)
        return McpResponse(id=request.id, result=result.to_mcp())

    if method is McpMethod.RESOURCES_LIST:
        resources = [resource.to_mcp() for resource in router.registry.list_resources()]
        return McpResponse(id=request.id, result={"resources": resources})

    if method is McpMethod.RESOURCES_READ:
        try:
            return McpResponse(id=request.id, result=router.read_resource(request.params.get("uri")))
        except ResourceNotFound as e:
            return _rpc_error(request.id, INVALID_PARAMS, str(e))

    return _rpc_error(request.id, METHOD_NOT_FOUND, f"Method not found: {request.method}")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the gateway application.

    Settings are validated before anything else is constructed, so a
    misconfigured gateway fails here rather than serving traffic.
    """
    settings = settings or get_settings()

    audit_log = AuditLog(capacity=settings.server.audit_capacity)
    gate = SecurityGate(
        settings.security,
        audit_log=audit_log,
        rate_limiter=RateLimiter(name="client"),
    )
    router = ToolRouter(
        registry=register_builtin(ToolRegistry()),
        tool_limiter=RateLimiter(name="tool"),
        max_calls_per_minute=settings.security.tool_rate_limit_per_minute,
        window_ms=settings.security.rate_limit_window_ms,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        setup_logging(settings.log_level, json_output=settings.is_production)
        logger.info(
            "Starting MCP Gateway",
            environment=settings.environment,
            auth=settings.security.enable_auth,
            rate_limit=settings.security.enable_rate_limit,
            trusted_origins=settings.security.trusted_origins
        )
        cleanup_task = asyncio.create_task(
            run_periodic_cleanup(
                [gate.rate_limiter, router.tool_limiter],
                settings.server.cleanup_interval_seconds
            )
        )

        yield

        logger.info("Shutting down MCP Gateway")
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task
        if settings.server.audit_export_path:
            await audit_log.export(settings.server.audit_export_path)

    app = FastAPI(
        title="MCP Gateway",
        description="Security-hardened MCP server",
        version=settings.version,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.gate = gate
    app.state.router = router
    app.state.audit_log = audit_log
    app.state.started_at = time.monotonic()

    app.add_middleware(SecurityMiddleware, gate=gate)

    @app.get(settings.server.health_endpoint, response_model=HealthResponse, tags=["System"])
    async def health_check(request: Request):
        """Health check endpoint."""
        uptime = time.monotonic() - request.app.state.started_at
        return HealthResponse(
            status="ok",
            timestamp=utcnow().isoformat(),
            version=settings.version,
            name=settings.name,
            uptime=f"{int(uptime)}s",
            environment=settings.environment,
        )

    @app.post(settings.server.mcp_endpoint, response_model=McpResponse, tags=["MCP"])
    async def mcp_endpoint(body: McpRequest, request: Request):
        """JSON-RPC endpoint for MCP clients."""
        return await dispatch(request.app.state.router, body)

    @app.get(
        f"{settings.server.mcp_endpoint}/security/events",
        response_model=SecurityEventList,
        tags=["Security"]
    )
    async def security_events(
        query: Annotated[SecurityEventQuery, Query()],
        request: Request
    ):
        """Snapshot of recorded security events, oldest first."""
        events = request.app.state.audit_log.query(
            event=query.event,
            identifier=query.identifier,
            severity=query.severity,
            limit=query.limit,
        )
        return SecurityEventList(events=events, count=len(events))

    return app


def main():
    """Run the MCP Gateway."""
    import uvicorn

    # Invalid configuration raises here, before the server binds
    settings = get_settings()
    setup_logging(settings.log_level, json_output=settings.is_production)

    host = "0.0.0.0" if settings.is_production else settings.server.host
    uvicorn.run(
        "mcp_gateway.main:create_app",
        factory=True,
        host=host,
        port=settings.server.port,
        reload=settings.environment == "development"
    )


if __name__ == "__main__":
    main()
