"""Bearer-token authentication for the protected prefix.

Requests under the protected prefix must carry
``Authorization: Bearer <api_key>``. Everything else passes untouched.
"""

import hmac
from typing import Optional

from shared.config import SecuritySettings
from shared.logging import get_logger
from shared.models import Rejection, RequestContext, Severity
from mcp_gateway.audit import AuditLog
from mcp_gateway.errors import (
    AuthenticationInvalid,
    AuthenticationMissing,
    ConfigurationError,
)

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


def is_protected(path: str, prefix: str) -> bool:
    """Whether ``path`` falls under the protected prefix."""
    return path.startswith(prefix)


def tokens_match(presented: str, expected: str) -> bool:
    """Constant-time token comparison."""
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


class AuthGuard:
    """
    Authentication stage of the security gate.

    Each request goes from unchecked to allowed or rejected in one step:
    401 for a missing or malformed header, 403 for a wrong token.
    """

    def __init__(self, config: SecuritySettings, audit_log: AuditLog) -> None:
        if config.enable_auth and not config.api_key:
            raise ConfigurationError("Authentication is enabled but no API key is configured")
        self.config = config
        self.audit_log = audit_log

    def _reject(
        self,
        ctx: RequestContext,
        reason: str,
        severity: Severity,
        error: AuthenticationMissing | AuthenticationInvalid
    ) -> Rejection:
        self.audit_log.record(
            event="authentication_failed",
            identifier=ctx.client_id,
            details={
                "url": ctx.path,
                "user_agent": ctx.header("user-agent"),
                "reason": reason,
            },
            severity=severity,
        )
        return error.to_rejection()

    def check(self, ctx: RequestContext) -> Optional[Rejection]:
        """
        Authenticate a request.

        Returns:
            None if the request may proceed, otherwise the rejection
        """
        if not self.config.enable_auth or not is_protected(ctx.path, self.config.protected_prefix):
            return None

        auth_header = ctx.header("authorization")
        if not auth_header or not auth_header.startswith(BEARER_PREFIX):
            return self._reject(
                ctx, "missing_or_invalid_header", Severity.MEDIUM, AuthenticationMissing()
            )

        token = auth_header[len(BEARER_PREFIX):]
        if not tokens_match(token, self.config.api_key or ""):
            return self._reject(ctx, "invalid_token", Severity.HIGH, AuthenticationInvalid())

        logger.debug("Request authenticated", path=ctx.path, client=ctx.client_id)
        return None
