"""Cross-origin enforcement for the protected prefix."""

from typing import Optional

from shared.config import SecuritySettings
from shared.logging import get_logger
from shared.models import Rejection, RequestContext, Severity
from mcp_gateway.audit import AuditLog
from mcp_gateway.auth import is_protected
from mcp_gateway.errors import OriginNotTrusted

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


class OriginGuard:
    """
    Origin stage of the security gate.

    With a non-empty trusted set, a request carrying an Origin outside the
    set is rejected and a trusted one is echoed back. With no trusted set
    configured, every origin passes.
    """

    def __init__(self, config: SecuritySettings, audit_log: AuditLog) -> None:
        self.config = config
        self.audit_log = audit_log
        self.trusted_origins = frozenset(config.trusted_origins)

    def check(self, ctx: RequestContext) -> Optional[Rejection]:
        """
        Check the request origin and set CORS response headers.

        Returns:
            None if the request may proceed, otherwise the rejection
        """
        if not is_protected(ctx.path, self.config.protected_prefix):
            return None

        origin = ctx.header("origin")
        if origin and self.trusted_origins:
            if origin not in self.trusted_origins:
                self.audit_log.record(
                    event="untrusted_origin_blocked",
                    identifier=ctx.client_id,
                    details={"origin": origin, "url": ctx.path},
                    severity=Severity.MEDIUM,
                )
                return OriginNotTrusted().to_rejection()
            ctx.response_headers["Access-Control-Allow-Origin"] = origin
            ctx.response_headers["Vary"] = "Origin"
            logger.debug("Trusted origin admitted", origin=origin)

        ctx.response_headers.update(CORS_HEADERS)
        return None
