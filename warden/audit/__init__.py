# Audit
# Observes requests and the effects applied to them

from warden.audit.auditor import (
    AUDIT_LOGGER_NAME,
    TAG_REQUEST,
    TAG_ALLOW,
    TAG_DENY,
    AuditLevel,
    Auditor,
    ConsoleAuditor,
    format_audit_line,
)
from warden.audit.trail import (
    AuditEvent,
    AuditEventKind,
    TrailAuditor,
)

__all__ = [
    "AUDIT_LOGGER_NAME",
    "TAG_REQUEST",
    "TAG_ALLOW",
    "TAG_DENY",
    "AuditLevel",
    "Auditor",
    "ConsoleAuditor",
    "format_audit_line",
    "AuditEvent",
    "AuditEventKind",
    "TrailAuditor",
]
