"""Tests for rate limiting, input validation and the audit log."""

import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from shared.models import Severity


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestRateLimiter:
    """Tests for the fixed-window RateLimiter."""

    def test_admits_up_to_limit_then_denies(self):
        """Test that the first N calls pass and the next is denied."""
        from mcp_gateway.ratelimit import RateLimiter

        limiter = RateLimiter(clock=FakeClock())

        results = [limiter.check("client-a", max_requests=5, window_ms=60_000) for _ in range(6)]

        assert results == [True] * 5 + [False]

    def test_denied_request_leaves_entry_unchanged(self):
        """Test that a denied call does not bump the counter."""
        from mcp_gateway.ratelimit import RateLimiter

        limiter = RateLimiter(clock=FakeClock())
        for _ in range(4):
            limiter.check("client-a", max_requests=2)

        entry = limiter.get("client-a")
        assert entry is not None
        assert entry.count == 2

    def test_window_rollover_starts_fresh(self):
        """Test that a new window is opened once the old one expires."""
        from mcp_gateway.ratelimit import RateLimiter

        clock = FakeClock()
        limiter = RateLimiter(clock=clock)

        assert limiter.check("client-a", max_requests=1, window_ms=1000)
        assert not limiter.check("client-a", max_requests=1, window_ms=1000)

        # Still inside the window at exactly reset_time
        clock.advance(1.0)
        assert not limiter.check("client-a", max_requests=1, window_ms=1000)

        clock.advance(0.001)
        assert limiter.check("client-a", max_requests=1, window_ms=1000)
        assert limiter.get("client-a").count == 1

    def test_identifiers_are_independent(self):
        """Test that each identifier has its own window."""
        from mcp_gateway.ratelimit import RateLimiter

        limiter = RateLimiter(clock=FakeClock())

        assert limiter.check("client-a", max_requests=1)
        assert not limiter.check("client-a", max_requests=1)
        assert limiter.check("client-b", max_requests=1)

    def test_cleanup_evicts_only_expired_entries(self):
        """Test that cleanup removes expired windows and keeps live ones."""
        from mcp_gateway.ratelimit import RateLimiter

        clock = FakeClock()
        limiter = RateLimiter(clock=clock)

        limiter.check("old", window_ms=1000)
        clock.advance(0.5)
        limiter.check("new", window_ms=1000)
        clock.advance(0.6)

        removed = limiter.cleanup()

        assert removed == 1
        assert limiter.get("old") is None
        assert limiter.get("new") is not None
        assert len(limiter) == 1

    def test_concurrent_checks_never_exceed_limit(self):
        """Test that concurrent callers cannot overshoot the limit."""
        from mcp_gateway.ratelimit import RateLimiter

        limiter = RateLimiter()

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(
                lambda _: limiter.check("shared", max_requests=50, window_ms=60_000),
                range(400)
            ))

        assert sum(results) == 50
        assert limiter.get("shared").count == 50

    @pytest.mark.asyncio
    async def test_periodic_cleanup_sweeps(self):
        """Test that the background sweep evicts expired entries."""
        import asyncio
        import contextlib
        from mcp_gateway.ratelimit import RateLimiter, run_periodic_cleanup

        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.check("client-a", window_ms=10)
        clock.advance(1)

        task = asyncio.create_task(run_periodic_cleanup([limiter], interval_seconds=0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

        assert len(limiter) == 0


class TestSanitizeInput:
    """Tests for sanitize_input."""

    @pytest.mark.parametrize("raw", [
        "ls; cat /etc/passwd",
        "a && b",
        "echo `id`",
        "$(whoami)",
        "eval this",
        "please EXEC now",
        "spawn a shell",
        "rm -rf tmp",
        "format the disk",
        "shutdown now",
        "../secret",
        "..\\secret",
        "a < b",
        "x > y",
    ])
    def test_rejects_dangerous_patterns(self, raw):
        """Test that denylisted input fails instead of being stripped."""
        from mcp_gateway.errors import ValidationError
        from mcp_gateway.validation import sanitize_input

        with pytest.raises(ValidationError, match="dangerous"):
            sanitize_input(raw)

    def test_rejects_non_string(self):
        """Test that non-string input is rejected."""
        from mcp_gateway.errors import ValidationError
        from mcp_gateway.validation import sanitize_input

        with pytest.raises(ValidationError, match="must be a string"):
            sanitize_input(123)

    def test_rejects_too_long_input(self):
        """Test that length is enforced regardless of content."""
        from mcp_gateway.errors import ValidationError
        from mcp_gateway.validation import sanitize_input

        with pytest.raises(ValidationError, match="too long"):
            sanitize_input("a" * 1001)

        with pytest.raises(ValidationError, match="Maximum length: 5"):
            sanitize_input("abcdef", max_length=5)

    def test_strips_characters_outside_allowlist(self):
        """Test the final allowlist pass and trimming."""
        from mcp_gateway.validation import sanitize_input

        assert sanitize_input("  Hi, there!  ") == "Hi there"
        assert sanitize_input("report-2024.txt") == "report-2024.txt"

    def test_keywords_match_whole_words_only(self):
        """Test that words merely containing a keyword are accepted."""
        from mcp_gateway.validation import sanitize_input

        assert sanitize_input("information about the system_id") == "information about the system_id"


class TestValidateFilePath:
    """Tests for validate_file_path."""

    @pytest.mark.parametrize("path", [
        "docs/readme.md",
        "/var/data/file_1.txt",
        "a..b/c-d",
    ])
    def test_accepts_safe_paths(self, path):
        """Test that paths from the safe character set pass."""
        from mcp_gateway.validation import validate_file_path

        assert validate_file_path(path) == path

    @pytest.mark.parametrize("path", [
        "../etc/passwd",
        "docs/../../etc",
        "docs/..",
        "~/.ssh/id_rsa",
        "docs/~backup",
        "docs/read me.md",
        "docs\\file",
        "",
        None,
    ])
    def test_rejects_unsafe_paths(self, path):
        """Test traversal and invalid characters are rejected."""
        from mcp_gateway.errors import PathTraversalError
        from mcp_gateway.validation import validate_file_path

        with pytest.raises(PathTraversalError):
            validate_file_path(path)


class TestValidateUrl:
    """Tests for validate_url."""

    def test_accepts_public_https_url(self):
        """Test that a public https URL is parsed."""
        from mcp_gateway.validation import validate_url

        parsed = validate_url("https://example.com/x")

        assert parsed.scheme == "https"
        assert parsed.hostname == "example.com"
        assert parsed.path == "/x"

    def test_rejects_disallowed_scheme(self):
        """Test that schemes outside the allowlist are rejected."""
        from mcp_gateway.errors import UrlSchemeError
        from mcp_gateway.validation import validate_url

        with pytest.raises(UrlSchemeError):
            validate_url("ftp://example.com", allowed_schemes={"http", "https"})

    @pytest.mark.parametrize("url", [
        "https://127.0.0.1/x",
        "https://192.168.1.5/x",
        "http://10.0.0.1/",
        "http://172.16.0.1/",
        "http://localhost:8080/",
        # literal prefix matching, no resolution
        "https://10.example.com/",
    ])
    def test_rejects_private_hosts(self, url):
        """Test that loopback and private literal hosts are rejected."""
        from mcp_gateway.errors import UrlPrivateNetworkError
        from mcp_gateway.validation import validate_url

        with pytest.raises(UrlPrivateNetworkError):
            validate_url(url)

    @pytest.mark.parametrize("url", ["http://2130706433/", "http://0x7f.0.0.1/"])
    def test_numeric_host_forms_are_not_normalized(self, url):
        """Test that numeric IPv4 spellings are matched literally and pass."""
        from mcp_gateway.validation import validate_url

        assert validate_url(url).hostname == url[len("http://"):-1]

    @pytest.mark.parametrize("url", ["not a url", "https://example.com:99999/", "", None])
    def test_rejects_malformed_urls(self, url):
        """Test that unparseable URLs raise a validation error."""
        from mcp_gateway.errors import UrlValidationError
        from mcp_gateway.validation import validate_url

        with pytest.raises(UrlValidationError):
            validate_url(url)

    def test_url_errors_are_validation_errors(self):
        """Test the error hierarchy used by tool handlers."""
        from mcp_gateway.errors import (
            PathTraversalError,
            UrlPrivateNetworkError,
            UrlSchemeError,
            ValidationError,
        )

        assert issubclass(UrlSchemeError, ValidationError)
        assert issubclass(UrlPrivateNetworkError, ValidationError)
        assert issubclass(PathTraversalError, ValidationError)


class TestSafeTypes:
    """Tests for the pydantic annotated validator types."""

    def test_safe_string(self):
        """Test SafeString accepts clean text and rejects injections."""
        from pydantic import TypeAdapter, ValidationError
        from mcp_gateway.validation import SafeString

        adapter = TypeAdapter(SafeString)

        assert adapter.validate_python("hello") == "hello"
        with pytest.raises(ValidationError):
            adapter.validate_python("rm -rf /")
        with pytest.raises(ValidationError):
            adapter.validate_python("")

    def test_safe_path_and_url(self):
        """Test SafeFilePath and SafeHttpUrl."""
        from pydantic import TypeAdapter, ValidationError
        from mcp_gateway.validation import SafeFilePath, SafeHttpUrl

        assert TypeAdapter(SafeFilePath).validate_python("a/b.txt") == "a/b.txt"
        with pytest.raises(ValidationError):
            TypeAdapter(SafeFilePath).validate_python("../a")

        assert TypeAdapter(SafeHttpUrl).validate_python("https://example.com") == "https://example.com"
        with pytest.raises(ValidationError):
            TypeAdapter(SafeHttpUrl).validate_python("http://127.0.0.1")


class TestAuditLog:
    """Tests for the bounded security audit log."""

    def test_record_and_snapshot_order(self):
        """Test that snapshots preserve insertion order."""
        from mcp_gateway.audit import AuditLog

        audit = AuditLog(capacity=10)
        for i in range(3):
            audit.record("test_event", f"client-{i}", {"n": i}, Severity.LOW)

        snapshot = audit.snapshot()

        assert isinstance(snapshot, tuple)
        assert [e.identifier for e in snapshot] == ["client-0", "client-1", "client-2"]

    def test_capacity_evicts_oldest(self):
        """Test that the 1001st event evicts the oldest one."""
        from mcp_gateway.audit import AuditLog

        audit = AuditLog()
        for i in range(1001):
            audit.record("test_event", f"client-{i}")

        snapshot = audit.snapshot()

        assert len(audit) == 1000
        assert len(snapshot) == 1000
        assert snapshot[0].identifier == "client-1"
        assert snapshot[-1].identifier == "client-1000"

    def test_snapshot_cannot_mutate_live_buffer(self):
        """Test that changing a snapshot leaves the log untouched."""
        from mcp_gateway.audit import AuditLog

        audit = AuditLog()
        audit.record("test_event", "client-a", {"reason": "first"})

        snapshot = audit.snapshot()
        snapshot[0].details["reason"] = "tampered"

        assert audit.snapshot()[0].details["reason"] == "first"

    def test_sensitive_details_redacted(self):
        """Test that secrets in details are never stored."""
        from mcp_gateway.audit import AuditLog

        audit = AuditLog()
        event = audit.record(
            "authentication_failed",
            "client-a",
            {"Authorization": "Bearer abc", "nested": {"api_key": "k"}, "url": "/mcp"}
        )

        assert event.details["Authorization"] == "[REDACTED]"
        assert event.details["nested"]["api_key"] == "[REDACTED]"
        assert event.details["url"] == "/mcp"

    def test_query_filters(self):
        """Test filtering by kind, identifier, severity and limit."""
        from mcp_gateway.audit import AuditLog

        audit = AuditLog()
        audit.record("authentication_failed", "a", severity=Severity.MEDIUM)
        audit.record("authentication_failed", "b", severity=Severity.HIGH)
        audit.record("rate_limit_exceeded", "a", severity=Severity.MEDIUM)

        assert len(audit.query(event="authentication_failed")) == 2
        assert len(audit.query(identifier="a")) == 2
        assert [e.identifier for e in audit.query(severity=Severity.HIGH)] == ["b"]
        assert [e.event for e in audit.query(limit=1)] == ["rate_limit_exceeded"]

    def test_recorded_event_cannot_mutate_live_buffer(self):
        """Test that changing the returned event leaves the log untouched."""
        from mcp_gateway.audit import AuditLog

        audit = AuditLog()
        event = audit.record("authentication_failed", "client-a", {"reason": "invalid_token"})

        event.details["reason"] = "tampered"

        assert audit.snapshot()[0].details["reason"] == "invalid_token"

    def test_concurrent_records_are_serialized(self):
        """Test that parallel appends lose nothing and respect capacity."""
        from mcp_gateway.audit import AuditLog

        audit = AuditLog(capacity=1000)
        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(lambda i: audit.record("test_event", f"client-{i}"), range(500)))

        assert len(audit) == 500
        assert {e.identifier for e in audit.snapshot()} == {f"client-{i}" for i in range(500)}

        bounded = AuditLog(capacity=100)
        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(lambda i: bounded.record("test_event", f"client-{i}"), range(400)))

        assert len(bounded) == 100
        assert len({e.identifier for e in bounded.snapshot()}) == 100

    @pytest.mark.asyncio
    async def test_export_writes_json_lines(self, tmp_path):
        """Test exporting the snapshot to a JSON-lines file."""
        from mcp_gateway.audit import AuditLog

        audit = AuditLog()
        audit.record("rate_limit_exceeded", "client-a", {"url": "/mcp"}, Severity.MEDIUM)
        audit.record("untrusted_origin_blocked", "client-b", severity=Severity.MEDIUM)

        path = tmp_path / "logs" / "security.jsonl"
        written = await audit.export(path)

        lines = path.read_text().splitlines()
        assert written == 2
        assert json.loads(lines[0])["event"] == "rate_limit_exceeded"
        assert json.loads(lines[1])["severity"] == "medium"
