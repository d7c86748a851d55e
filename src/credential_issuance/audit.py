"""IssuanceAuditLogger — JSONL audit trail of issuance flow steps.

Each completed step (offering created, challenge issued, credential issued,
and so on) and each failure is appended as one JSON line to the configured
file. Without a file path, lines go to an in-memory buffer that can be
drained via :meth:`IssuanceAuditLogger.drain_buffer`.

Secrets (signatures, codes, tokens) are never written.
"""
from __future__ import annotations

import datetime
import json
import threading
from dataclasses import dataclass, field
from pathlib import Path

from credential_issuance.errors import FlowStep, IssuanceError


@dataclass
class AuditEvent:
    """A single auditable issuance event.

    Parameters
    ----------
    event_type:
        Short snake_case name (e.g. ``"offering_created"``).
    subject:
        What the event is about: a DID, an offering id, or a schema type.
    step:
        The flow step, when the event belongs to one.
    details:
        Arbitrary key-value metadata.
    timestamp:
        UTC datetime of the event. Defaults to now.
    """

    event_type: str
    subject: str
    step: FlowStep | None = None
    details: dict[str, object] = field(default_factory=dict)
    timestamp: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type,
            "subject": self.subject,
            "step": self.step.value if self.step is not None else None,
            "details": self.details,
        }


class IssuanceAuditLogger:
    """Append-only JSONL audit logger. Thread-safe.

    Parameters
    ----------
    log_path:
        Path to the JSONL file; parent directories are created. If None,
        events are buffered in memory only.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = log_path
        self._buffer: list[str] = []
        self._lock = threading.Lock()

        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, event: AuditEvent) -> None:
        line = json.dumps(event.to_dict(), separators=(",", ":"), default=str)
        with self._lock:
            if self._log_path is not None:
                with self._log_path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
            else:
                self._buffer.append(line)

    def log_step(self, step: FlowStep, subject: str, **details: object) -> None:
        """Record that *step* completed for *subject*."""
        self.log(
            AuditEvent(
                event_type=f"{step.value}_completed",
                subject=subject,
                step=step,
                details=dict(details),
            )
        )

    def log_failure(self, error: IssuanceError, subject: str) -> None:
        """Record a failed step."""
        self.log(
            AuditEvent(
                event_type="flow_failed",
                subject=subject,
                step=error.step,
                details={
                    "error": type(error).__name__,
                    "message": error.message,
                    "status_code": error.status_code,
                },
            )
        )

    def drain_buffer(self) -> list[str]:
        """Return and clear the in-memory buffer (oldest first)."""
        with self._lock:
            events = list(self._buffer)
            self._buffer.clear()
        return events

    def read_log(self, tail: int | None = None) -> list[dict[str, object]]:
        """Parse events from the log file (or the buffer when there is none).

        Parameters
        ----------
        tail:
            If given, only the last *tail* events are returned.
        """
        with self._lock:
            if self._log_path is None or not self._log_path.exists():
                lines = list(self._buffer)
            else:
                lines = self._log_path.read_text(encoding="utf-8").splitlines()

        parsed: list[dict[str, object]] = []
        for line in lines:
            stripped = line.strip()
            if not stripped:
                continue
            try:
                parsed.append(json.loads(stripped))
            except json.JSONDecodeError:
                continue

        if tail is not None:
            return parsed[-tail:]
        return parsed


__all__ = ["AuditEvent", "IssuanceAuditLogger"]
