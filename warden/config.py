"""
Configuration

Enforcer defaults are explicit settings passed into the Enforcer instead of
process-wide globals.

Environment variables (a .env file is loaded first when present):
- WARDEN_MATCHER: "wildcard", "simple" or "regex" (default: wildcard)
- WARDEN_DEFAULT_EFFECT: "deny" or "allow" (default: deny)
- WARDEN_AUDIT_LEVEL: "none", "deny", "allow", "request", "all" (default: deny)
- WARDEN_STRICT_CONDITIONS: "true" to reject unregistered condition types
- WARDEN_LOG_LEVEL: root log level (default: INFO)

Storage variables are read by warden.storage.settings_from_env().
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from warden.audit import AuditLevel
from warden.errors import ConfigurationError
from warden.match import MATCHERS
from warden.policy.model import PolicyEffect

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class EnforcerSettings:
    """
    Configuration for the Enforcer.

    Attributes:
        matcher: Registered matcher strategy name
        default_effect: Effect applied when no policy matches
        audit_level: Verbosity of the default auditor
        strict_conditions: Raise on unregistered condition types
        log_level: Root log level name
    """
    matcher: str = "wildcard"
    default_effect: PolicyEffect = PolicyEffect.DENY
    audit_level: AuditLevel = AuditLevel.DENY
    strict_conditions: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.matcher not in MATCHERS:
            raise ConfigurationError(
                f"unknown matcher {self.matcher!r}, expected one of {sorted(MATCHERS)}"
            )
        self.default_effect = _parse_effect(self.default_effect)
        self.audit_level = AuditLevel.parse(self.audit_level)
        if logging.getLevelName(self.log_level.upper()) == f"Level {self.log_level.upper()}":
            raise ConfigurationError(f"unknown log level {self.log_level!r}")


def _parse_effect(value: str | PolicyEffect) -> PolicyEffect:
    if isinstance(value, PolicyEffect):
        return value
    try:
        return PolicyEffect(value.strip().lower())
    except ValueError as e:
        raise ConfigurationError(f"unknown default effect {value!r}") from e


def parse_bool(value: str | None, default: bool) -> bool:
    """
    Parse a boolean environment value.

    Raises:
        ConfigurationError: If the value is not a recognized boolean
    """
    if value is None or value.strip() == "":
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ConfigurationError(f"invalid boolean value {value!r}")


def enforcer_settings_from_env(load_env_file: bool = True) -> EnforcerSettings:
    """
    Create EnforcerSettings from environment variables.

    Args:
        load_env_file: Load a .env file into the environment first

    Raises:
        ConfigurationError: If a variable holds an invalid value
    """
    if load_env_file:
        load_dotenv()

    return EnforcerSettings(
        matcher=os.getenv("WARDEN_MATCHER", "wildcard").strip().lower(),
        default_effect=os.getenv("WARDEN_DEFAULT_EFFECT", "deny"),
        audit_level=os.getenv("WARDEN_AUDIT_LEVEL", "deny"),
        strict_conditions=parse_bool(os.getenv("WARDEN_STRICT_CONDITIONS"), False),
        log_level=os.getenv("WARDEN_LOG_LEVEL", "INFO"),
    )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with the standard warden format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
