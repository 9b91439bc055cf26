"""Security audit log for the MCP Gateway.

Records every security-relevant decision made by the gate: failed
authentication, rate-limit denials, untrusted origins.
Captures: event kind, client identifier, details, severity, timestamp.
"""

import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import aiofiles

from shared.logging import get_logger
from shared.models import SecurityEvent, Severity

logger = get_logger(__name__)

DEFAULT_CAPACITY = 1000


class AuditLog:
    """
    Bounded, append-only record of security events.

    The buffer holds at most ``capacity`` events; appending to a full
    buffer evicts the oldest one. Appends are serialized so insertion
    order and the capacity bound hold under concurrent requests.
    Reads return copies; the live buffer is never handed out.
    """

    # Detail keys that should be redacted before storage
    SENSITIVE_KEYS = {"authorization", "password", "token", "secret", "api_key", "apikey", "credential"}

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._events: deque[SecurityEvent] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def _redact_sensitive(self, details: dict[str, Any]) -> dict[str, Any]:
        """Redact sensitive values from event details."""
        redacted = {}
        for key, value in details.items():
            if key.lower() in self.SENSITIVE_KEYS:
                redacted[key] = "[REDACTED]"
            elif isinstance(value, dict):
                redacted[key] = self._redact_sensitive(value)
            else:
                redacted[key] = value
        return redacted

    def record(
        self,
        event: str,
        identifier: str,
        details: Optional[dict[str, Any]] = None,
        severity: Severity = Severity.LOW
    ) -> SecurityEvent:
        """
        Append a security event.

        Args:
            event: Event kind, e.g. ``authentication_failed``
            identifier: Best-effort client identifier
            details: Structured context (path, reason, ...)
            severity: Event severity

        Returns:
            A copy of the recorded event
        """
        entry = SecurityEvent(
            event=event,
            identifier=identifier,
            details=self._redact_sensitive(details or {}),
            severity=severity,
        )

        if severity in (Severity.HIGH, Severity.CRITICAL):
            log = logger.error
        elif severity == Severity.MEDIUM:
            log = logger.warning
        else:
            log = logger.info
        log(
            "Security event",
            security_event=entry.event,
            identifier=entry.identifier,
            severity=entry.severity.value,
            details=entry.details
        )

        with self._lock:
            self._events.append(entry)

        return entry.model_copy(deep=True)

    def snapshot(self) -> tuple[SecurityEvent, ...]:
        """Immutable copy of all events, oldest first."""
        with self._lock:
            events = list(self._events)
        return tuple(event.model_copy(deep=True) for event in events)

    def query(
        self,
        event: Optional[str] = None,
        identifier: Optional[str] = None,
        severity: Optional[Severity] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100
    ) -> list[SecurityEvent]:
        """
        Filter the current snapshot.

        Args:
            event: Filter by event kind
            identifier: Filter by client identifier
            severity: Filter by severity
            start_time: Only events at or after this time
            end_time: Only events at or before this time
            limit: Maximum events to return (most recent kept)

        Returns:
            Matching events, oldest first
        """
        results = [
            entry for entry in self.snapshot()
            if (event is None or entry.event == event)
            and (identifier is None or entry.identifier == identifier)
            and (severity is None or entry.severity == severity)
            and (start_time is None or entry.timestamp >= start_time)
            and (end_time is None or entry.timestamp <= end_time)
        ]
        if limit <= 0:
            return []
        return results[-limit:]

    async def export(self, path: str | Path) -> int:
        """
        Append the current snapshot to a JSON-lines file.

        Returns:
            Number of events written
        """
        events = self.snapshot()
        if not events:
            return 0

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "a") as f:
            for entry in events:
                await f.write(entry.model_dump_json() + "\n")

        logger.info("Audit log exported", path=str(path), count=len(events))
        return len(events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
