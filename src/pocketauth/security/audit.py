"""
Audit Logging System.
Created: 2026-09-30

Append-only JSONL log of protocol decisions: code issuance, token
issuance and rotation, rejected grants (with the internal reason the
client never sees) and revocations. Raw secrets are never written here.
"""

import json
import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger("audit")


class AuditSeverity(str, Enum):
    INFO = "info"  # Normal protocol step
    WARNING = "warning"  # Rejected grant
    ALERT = "alert"  # Likely replay of a consumed secret


@dataclass
class AuditEvent:
    """A single audit log entry."""

    id: str
    timestamp: str
    severity: AuditSeverity
    action: str  # e.g. "code_issued", "token_rotated"
    target: str  # e.g. "client:abc"
    status: str  # "success", "rejected"
    context: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        severity: AuditSeverity,
        action: str,
        target: str,
        status: str,
        **context: Any,
    ) -> "AuditEvent":
        return cls(
            id=str(uuid.uuid4()),
            timestamp=datetime.now(tz=UTC).isoformat(),
            severity=severity,
            action=action,
            target=target,
            status=status,
            context=context,
        )


class AuditLogger:
    """
    Append-only audit logger.
    Writes to ~/.pocketauth/audit.jsonl unless a path is given.
    """

    def __init__(self, log_path: Path | None = None):
        if log_path is None:
            from pocketauth.config import get_config_dir

            log_path = get_config_dir() / "audit.jsonl"
        self.log_path = log_path
        self._lock = threading.Lock()

    def log(self, event: AuditEvent) -> None:
        """Write an event to the audit log."""
        try:
            line = json.dumps(asdict(event))
            with self._lock, open(self.log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except Exception as e:
            # Audit failure must not fail the request
            logger.critical("FAILED TO WRITE AUDIT LOG: %s | Event: %s", e, event.action)

    def log_api_event(
        self,
        action: str,
        target: str,
        status: str = "success",
        severity: AuditSeverity = AuditSeverity.INFO,
        **context: Any,
    ) -> str:
        """Helper to log an OAuth protocol event."""
        event = AuditEvent.create(
            severity=severity,
            action=action,
            target=target,
            status=status,
            **context,
        )
        self.log(event)
        return event.id


# Singleton
_audit_logger: AuditLogger | None = None


def get_audit_logger() -> AuditLogger:
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def reset_audit_logger(log_path: Path | None = None) -> None:
    """Reset singleton, optionally pointing it at *log_path* (for testing)."""
    global _audit_logger
    _audit_logger = AuditLogger(log_path) if log_path is not None else None
