"""
Warden Exceptions

Every failure raised by the library derives from WardenError.

Decision outcomes (allow, explicit deny, implicit deny) are NOT exceptions;
they are returned as Decision values by the Enforcer. The only exception
tied to a decision is RequestDeniedError, raised by enforce_or_raise() for
adapters that prefer raising over branching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from warden.policy.engine import Decision


class WardenError(Exception):
    """Base exception for warden errors."""
    pass


# =============================================================================
# Storage
# =============================================================================

class StorageError(WardenError):
    """Base exception for policy/role storage errors."""
    pass


class NotFoundError(StorageError):
    """Record not found."""
    pass


class DuplicateIdError(StorageError):
    """A record with the same id is already stored."""
    pass


class UnsupportedOperationError(StorageError):
    """The storage backend does not implement this operation."""
    pass


# =============================================================================
# Roles
# =============================================================================

class DuplicateRoleError(WardenError):
    """A sub role matches its parent or is already a direct child."""
    pass


# =============================================================================
# Patterns
# =============================================================================

class PatternError(WardenError):
    """Base exception for pattern compilation errors."""
    pass


class UnbalancedDelimiterError(PatternError):
    """Start and stop delimiters do not balance."""

    def __init__(self, definition: str):
        super().__init__(f"unbalanced escape sequence {definition!r}")
        self.definition = definition


class InvalidPatternError(PatternError):
    """A delimited fragment is not a valid regular expression."""
    pass


# =============================================================================
# Conditions & Policies
# =============================================================================

class ConditionError(WardenError):
    """Base exception for condition construction errors."""
    pass


class UnknownConditionError(ConditionError):
    """Condition type is not registered (strict resolution only)."""
    pass


class ConditionOptionsError(ConditionError):
    """Condition options failed validation for the condition type."""
    pass


class PolicyError(WardenError):
    """Policy could not be constructed or decoded."""
    pass


class ConfigurationError(WardenError):
    """Invalid configuration value."""
    pass


# =============================================================================
# Decisions
# =============================================================================

class RequestDeniedError(WardenError):
    """
    Raised by Enforcer.enforce_or_raise() when a request is denied.

    Carries the denial decision so callers can inspect the status code,
    the reason and (for explicit denials) the policy id.
    """

    def __init__(self, decision: "Decision"):
        super().__init__(decision.message)
        self.decision = decision

    @property
    def status_code(self) -> int:
        return self.decision.status_code

    @property
    def reason(self) -> str:
        return self.decision.reason
