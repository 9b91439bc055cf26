"""MCP Gateway - request admission in front of MCP tool dispatch.

Every inbound call passes a fixed chain of checks (security headers,
request logging, origin, rate limit, bearer authentication) before it is
dispatched. Tool handlers sanitize free-form arguments inline.
"""

from mcp_gateway.audit import AuditLog
from mcp_gateway.auth import AuthGuard
from mcp_gateway.middleware import SecurityGate, SecurityMiddleware
from mcp_gateway.origin import OriginGuard
from mcp_gateway.ratelimit import RateLimiter
from mcp_gateway.validation import sanitize_input, validate_file_path, validate_url

__all__ = [
    "AuditLog",
    "AuthGuard",
    "OriginGuard",
    "RateLimiter",
    "SecurityGate",
    "SecurityMiddleware",
    "sanitize_input",
    "validate_file_path",
    "validate_url",
]
