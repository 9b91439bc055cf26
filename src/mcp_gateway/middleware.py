"""Security middleware chain.

Every request passes through the same stages, in this order:

1. security response headers (always applied, rejections included)
2. request logging, when enabled
3. origin check
4. rate limit, keyed by client identifier
5. authentication

The first stage that returns a rejection ends the chain; nothing after it
runs and the request is never dispatched.
"""

import math
import uuid
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from shared.config import SecuritySettings
from shared.logging import bind_request_context, get_logger
from shared.models import Rejection, RequestContext, Severity
from mcp_gateway.audit import AuditLog
from mcp_gateway.auth import AuthGuard
from mcp_gateway.errors import RateLimitExceeded
from mcp_gateway.origin import OriginGuard
from mcp_gateway.ratelimit import RateLimiter

logger = get_logger(__name__)

Stage = Callable[[RequestContext], Optional[Rejection]]

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data:; "
        "font-src 'self'; "
        "connect-src 'self'; "
        "frame-ancestors 'none';"
    ),
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


class SecurityGate:
    """
    Fixed-order admission chain.

    Framework independent: works on a ``RequestContext`` and returns the
    first rejection, or None when the request is admitted.
    """

    def __init__(
        self,
        config: SecuritySettings,
        audit_log: Optional[AuditLog] = None,
        rate_limiter: Optional[RateLimiter] = None
    ) -> None:
        self.config = config
        self.audit_log = audit_log if audit_log is not None else AuditLog()
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter(name="client")
        self.origin_guard = OriginGuard(config, self.audit_log)
        self.auth_guard = AuthGuard(config, self.audit_log)

    @property
    def stages(self) -> tuple[tuple[str, Stage], ...]:
        return (
            ("security_headers", self.apply_security_headers),
            ("request_logging", self.log_request),
            ("origin", self.origin_guard.check),
            ("rate_limit", self.check_rate_limit),
            ("auth", self.auth_guard.check),
        )

    def apply_security_headers(self, ctx: RequestContext) -> None:
        ctx.response_headers.update(SECURITY_HEADERS)
        return None

    def log_request(self, ctx: RequestContext) -> None:
        if self.config.enable_request_logging:
            logger.info(
                "Incoming request",
                method=ctx.method,
                url=ctx.path,
                user_agent=ctx.header("user-agent"),
                ip=ctx.client_id,
                request_id=ctx.request_id
            )
        return None

    @property
    def retry_after(self) -> int:
        """Seconds a throttled client is told to wait."""
        return math.ceil(self.config.rate_limit_window_ms / 1000)

    def check_rate_limit(self, ctx: RequestContext) -> Optional[Rejection]:
        if not self.config.enable_rate_limit:
            return None

        client_id = ctx.client_id
        admitted = self.rate_limiter.check(
            client_id,
            max_requests=self.config.max_requests_per_minute,
            window_ms=self.config.rate_limit_window_ms
        )
        if admitted:
            return None

        self.audit_log.record(
            event="rate_limit_exceeded",
            identifier=client_id,
            details={"url": ctx.path, "user_agent": ctx.header("user-agent")},
            severity=Severity.MEDIUM,
        )
        return RateLimitExceeded(retry_after=self.retry_after).to_rejection()

    def evaluate(self, ctx: RequestContext) -> Optional[Rejection]:
        """
        Run the chain for one request.

        Returns:
            The first rejection produced, or None if every stage admitted
        """
        for name, stage in self.stages:
            rejection = stage(ctx)
            if rejection is not None:
                logger.info(
                    "Request rejected",
                    stage=name,
                    error=rejection.error_kind,
                    status=rejection.status_code,
                    url=ctx.path
                )
                return rejection
        return None


class SecurityMiddleware(BaseHTTPMiddleware):
    """Starlette adapter running the security gate in front of every route."""

    def __init__(self, app: ASGIApp, gate: SecurityGate) -> None:
        super().__init__(app)
        self.gate = gate

    @staticmethod
    def build_context(request: Request) -> RequestContext:
        return RequestContext(
            method=request.method,
            path=request.url.path,
            headers=dict(request.headers),
            client_host=request.client.host if request.client else None,
            request_id=str(uuid.uuid4()),
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        ctx = self.build_context(request)
        bind_request_context(request_id=ctx.request_id, client=ctx.client_id)

        rejection = self.gate.evaluate(ctx)
        if rejection is not None:
            response: Response = JSONResponse(
                rejection.to_body(),
                status_code=rejection.status_code,
                headers=rejection.headers,
            )
        else:
            response = await call_next(request)

        response.headers.update(ctx.response_headers)
        response.headers["X-Request-ID"] = ctx.request_id
        return response
