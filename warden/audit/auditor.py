"""
Auditors

An Auditor observes every request evaluated by the Enforcer and the final
effect applied to it. What gets recorded depends on the AuditLevel; each
level includes everything below it:

    NONE < DENY < ALLOW < REQUEST < ALL

The Enforcer isolates auditor failures: an exception raised here is logged
and never changes or blocks a decision.
"""

import logging
from abc import ABC, abstractmethod
from enum import IntEnum

from warden.errors import ConfigurationError
from warden.policy.model import PolicyEffect
from warden.request import Request

logger = logging.getLogger(__name__)

AUDIT_LOGGER_NAME = "warden.audit"

TAG_REQUEST = "[AUDIT_REQ]:"
TAG_ALLOW = "[AUDIT_ALLOW]:"
TAG_DENY = "[AUDIT_DENY]:"


class AuditLevel(IntEnum):
    """Which operations are audited."""
    NONE = 0
    DENY = 1
    ALLOW = 2
    REQUEST = 3
    ALL = 4

    @classmethod
    def parse(cls, value: "str | int | AuditLevel") -> "AuditLevel":
        """
        Parse a level from its name or number.

        Raises:
            ConfigurationError: If the value names no level
        """
        if isinstance(value, AuditLevel):
            return value
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError as e:
                raise ConfigurationError(f"unknown audit level {value}") from e
        try:
            return cls[value.strip().upper()]
        except KeyError as e:
            raise ConfigurationError(
                f"unknown audit level {value!r}, expected one of {[lvl.name.lower() for lvl in cls]}"
            ) from e


class Auditor(ABC):
    """Receives requests and policy effects from the Enforcer."""

    @abstractmethod
    def log_request(self, request: Request) -> None:
        ...

    @abstractmethod
    def log_policy_effect(self, request: Request, effect: PolicyEffect) -> None:
        ...


def should_audit_request(level: AuditLevel) -> bool:
    return level >= AuditLevel.REQUEST


def should_audit_effect(level: AuditLevel, effect: PolicyEffect) -> bool:
    if effect == PolicyEffect.DENY:
        return level >= AuditLevel.DENY
    return level >= AuditLevel.ALLOW


def format_audit_line(tag: str, request: Request) -> str:
    """<TAG> action=<action> resource=<resource> role=<role> scope=<scope>"""
    roles = ",".join(request.role_queries())
    return (
        f"{tag} action={request.action} resource={request.resource} "
        f"role={roles} scope={request.scope}"
    )


class ConsoleAuditor(Auditor):
    """
    Writes audit lines through the "warden.audit" logger at INFO.

    Args:
        level: Audit verbosity
        log: Logger override (defaults to the "warden.audit" logger)
    """

    def __init__(self, level: AuditLevel = AuditLevel.DENY, log: logging.Logger | None = None):
        self.level = AuditLevel.parse(level)
        self._log = log or logging.getLogger(AUDIT_LOGGER_NAME)

    def log_request(self, request: Request) -> None:
        if should_audit_request(self.level):
            self._log.info(format_audit_line(TAG_REQUEST, request))

    def log_policy_effect(self, request: Request, effect: PolicyEffect) -> None:
        if not should_audit_effect(self.level, effect):
            return
        tag = TAG_DENY if effect == PolicyEffect.DENY else TAG_ALLOW
        self._log.info(format_audit_line(tag, request))
