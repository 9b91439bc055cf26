"""Exception taxonomy for the security gate.

Input validation errors are raised inline by tool handlers and caught
there. Request-level denials are converted to a ``Rejection`` at the point
of detection and never reach the protocol dispatcher.
"""

from typing import Optional

from shared.models import Rejection


class GatewayError(Exception):
    """Base class for all gateway errors."""


class ConfigurationError(GatewayError):
    """Fatal startup misconfiguration."""


class ValidationError(GatewayError):
    """Input failed a type, length or pattern check."""


class PathTraversalError(ValidationError):
    """File path escapes its root or contains unsafe characters."""


class UrlValidationError(ValidationError):
    """URL could not be parsed or is not allowed."""


class UrlSchemeError(UrlValidationError):
    """URL scheme is outside the allowed set."""


class UrlPrivateNetworkError(UrlValidationError):
    """URL targets a loopback or private-network host."""


class RejectionError(GatewayError):
    """A request-level denial with an HTTP-style status."""

    status_code: int = 400
    error_kind: str = "rejected"
    default_message: str = "Request rejected"

    def __init__(
        self,
        message: Optional[str] = None,
        retry_after: Optional[int] = None,
        headers: Optional[dict[str, str]] = None
    ) -> None:
        self.message = message or self.default_message
        self.retry_after = retry_after
        self.headers = headers or {}
        super().__init__(self.message)

    def to_rejection(self) -> Rejection:
        return Rejection(
            status_code=self.status_code,
            error_kind=self.error_kind,
            message=self.message,
            retry_after=self.retry_after,
            headers=self.headers,
        )


class AuthenticationMissing(RejectionError):
    status_code = 401
    error_kind = "authentication_missing"
    default_message = "Missing or invalid authorization header"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class AuthenticationInvalid(RejectionError):
    status_code = 403
    error_kind = "authentication_invalid"
    default_message = "Invalid API key"


class RateLimitExceeded(RejectionError):
    status_code = 429
    error_kind = "rate_limit_exceeded"
    default_message = "Rate limit exceeded. Please try again later."

    def __init__(self, retry_after: int, message: Optional[str] = None) -> None:
        super().__init__(message, retry_after=retry_after, headers={"Retry-After": str(retry_after)})


class OriginNotTrusted(RejectionError):
    status_code = 403
    error_kind = "origin_not_trusted"
    default_message = "Origin not allowed"
