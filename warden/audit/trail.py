"""
Audit Trail

Bounded in-memory auditor that keeps every audited request and effect as an
AuditEvent record. Useful for tests, debug endpoints and replaying recent
decisions.

Design:
- Events are immutable once appended
- When the trail grows past max_events the oldest 10% are evicted
- Filtering by AuditLevel happens before anything is stored
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from warden.audit.auditor import (
    AuditLevel,
    Auditor,
    should_audit_effect,
    should_audit_request,
)
from warden.policy.model import PolicyEffect
from warden.request import Request


class AuditEventKind(str, Enum):
    """Categories of audit events."""
    REQUEST = "request"
    EFFECT = "effect"


class AuditEvent(BaseModel):
    """
    A single audited request or effect.
    """
    model_config = ConfigDict(frozen=True)

    kind: AuditEventKind = Field(
        ...,
        description="Whether the event records a request or its effect"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event was recorded"
    )
    action: str
    resource: str
    subject: str
    roles: list[str] = Field(default_factory=list)
    scope: str = ""
    effect: PolicyEffect | None = Field(
        default=None,
        description="Applied effect (effect events only)"
    )

    @classmethod
    def from_request(
        cls,
        kind: AuditEventKind,
        request: Request,
        effect: PolicyEffect | None = None,
    ) -> AuditEvent:
        return cls(
            kind=kind,
            action=request.action,
            resource=request.resource,
            subject=request.subject.id,
            roles=request.role_queries(),
            scope=request.scope,
            effect=effect,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
            "resource": self.resource,
            "subject": self.subject,
            "roles": list(self.roles),
            "scope": self.scope,
            "effect": self.effect.value if self.effect else None,
        }


class TrailAuditor(Auditor):
    """
    In-memory append-only audit trail.

    Args:
        level: Audit verbosity
        max_events: Trail size before the oldest events are evicted
    """

    def __init__(self, level: AuditLevel = AuditLevel.ALL, max_events: int = 10000):
        self.level = AuditLevel.parse(level)
        self._max_events = max_events
        self._events: list[AuditEvent] = []
        self._lock = threading.Lock()

    def log_request(self, request: Request) -> None:
        if should_audit_request(self.level):
            self._append(AuditEvent.from_request(AuditEventKind.REQUEST, request))

    def log_policy_effect(self, request: Request, effect: PolicyEffect) -> None:
        if should_audit_effect(self.level, effect):
            self._append(AuditEvent.from_request(AuditEventKind.EFFECT, request, effect))

    def _append(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.append(event)
            if len(self._events) > self._max_events:
                # Remove oldest 10%
                del self._events[:max(1, self._max_events // 10)]

    def events(self) -> list[AuditEvent]:
        """All retained events, oldest first."""
        with self._lock:
            return list(self._events)

    def tail(self, limit: int = 100) -> tuple[list[AuditEvent], bool]:
        """
        Most recent events.

        Returns:
            Tuple of (events, truncated)
        """
        with self._lock:
            truncated = len(self._events) > limit
            return self._events[-limit:] if limit > 0 else [], truncated

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
