"""Input sanitizers for tool arguments.

Handlers that accept free-form strings, file paths or URLs run them through
these functions before use. The denylist is defense in depth and is not a
complete injection guard.

Hostnames are compared as literal strings. No DNS resolution happens, so a
name that resolves to a private address is not caught here. Numeric IPv4
forms such as `2130706433` or `0x7f.0.0.1` are not normalized by
`urlsplit` either, so they pass even though they name the loopback host.
"""

import re
import unicodedata
from typing import Annotated, Any, Callable, Iterable
from urllib.parse import SplitResult, urlsplit

from pydantic import AfterValidator, StringConstraints

from mcp_gateway.errors import (
    PathTraversalError,
    UrlPrivateNetworkError,
    UrlSchemeError,
    UrlValidationError,
    ValidationError,
)

DEFAULT_MAX_LENGTH = 1000
DEFAULT_ALLOWED_SCHEMES = ("http", "https")

# Evaluated in order; the first match rejects the input.
DANGEROUS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"[;&|`$(){}\[\]\\]"),
    re.compile(r"\b(?:eval|exec|system|spawn|fork)\b", re.IGNORECASE),
    re.compile(r"\b(?:rm|del|format|shutdown|reboot)\b", re.IGNORECASE),
    re.compile(r"\.\./|\.\.\\"),
    re.compile(r"[<>]"),
)

DISALLOWED_CHARS = re.compile(r"[^\w\s.-]", re.ASCII)
SAFE_PATH = re.compile(r"[A-Za-z0-9._/-]+")

BLOCKED_HOSTS = frozenset({"localhost", "127.0.0.1"})
BLOCKED_HOST_PREFIXES = ("192.168.", "10.", "172.")


def sanitize_input(raw: Any, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """
    Validate a free-form string and strip anything outside the allowlist.

    Args:
        raw: Value supplied by the caller
        max_length: Maximum accepted length

    Returns:
        The trimmed string with only word characters, whitespace, ``.`` and ``-``

    Raises:
        ValidationError: If the value is not a string, is too long, or
            matches a dangerous pattern. Nothing is returned in that case.
    """
    if not isinstance(raw, str):
        raise ValidationError("Input must be a string")

    if len(raw) > max_length:
        raise ValidationError(f"Input too long. Maximum length: {max_length}")

    for pattern in DANGEROUS_PATTERNS:
        if pattern.search(raw):
            raise ValidationError("Input contains potentially dangerous characters or commands")

    return DISALLOWED_CHARS.sub("", raw).strip()


def validate_file_path(path: Any) -> str:
    """
    Validate a relative file path.

    Returns:
        The NFC-normalized path

    Raises:
        PathTraversalError: On a ``..`` segment, a ``~``, or any character
            outside ``[A-Za-z0-9._/-]``
    """
    if not path or not isinstance(path, str):
        raise PathTraversalError("Invalid file path")

    normalized = unicodedata.normalize("NFC", path)

    if normalized.startswith("~") or ".." in re.split(r"[/\\]", normalized):
        raise PathTraversalError("Path traversal detected")

    if not SAFE_PATH.fullmatch(normalized):
        raise PathTraversalError("Invalid characters in file path")

    return normalized


def validate_url(
    url: Any,
    allowed_schemes: Iterable[str] = DEFAULT_ALLOWED_SCHEMES
) -> SplitResult:
    """
    Validate a URL against a scheme allowlist and block private hosts.

    Returns:
        The parsed URL

    Raises:
        UrlSchemeError: Scheme outside ``allowed_schemes``
        UrlPrivateNetworkError: Loopback or private-network literal hostname
        UrlValidationError: URL cannot be parsed
    """
    if not isinstance(url, str) or not url:
        raise UrlValidationError("Invalid URL: URL must be a non-empty string")

    try:
        parsed = urlsplit(url.strip())
        # Accessing port validates it
        parsed.port
    except ValueError as e:
        raise UrlValidationError(f"Invalid URL: {e}") from e

    if not parsed.scheme:
        raise UrlValidationError("Invalid URL: missing scheme")

    if parsed.scheme not in {scheme.lower() for scheme in allowed_schemes}:
        raise UrlSchemeError(f"Invalid URL: URL scheme not allowed: {parsed.scheme}:")

    hostname = parsed.hostname or ""
    if parsed.scheme in DEFAULT_ALLOWED_SCHEMES and not hostname:
        raise UrlValidationError("Invalid URL: missing host")

    if hostname in BLOCKED_HOSTS or hostname.startswith(BLOCKED_HOST_PREFIXES):
        raise UrlPrivateNetworkError("Invalid URL: Access to private/internal URLs not allowed")

    return parsed


def _as_value_error(check: Callable[[str], Any]) -> Callable[[str], str]:
    # pydantic only reports ValueError/AssertionError as validation failures
    def validator(value: str) -> str:
        try:
            check(value)
        except ValidationError as e:
            raise ValueError(str(e)) from e
        return value
    return validator


SafeString = Annotated[
    str,
    StringConstraints(min_length=1, max_length=DEFAULT_MAX_LENGTH),
    AfterValidator(_as_value_error(sanitize_input)),
]
SafeFilePath = Annotated[str, AfterValidator(_as_value_error(validate_file_path))]
SafeHttpUrl = Annotated[str, AfterValidator(_as_value_error(validate_url))]
