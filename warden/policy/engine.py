"""
Policy Enforcer

Evaluates a Request against the candidate policies supplied by a
PolicyManager and folds the outcomes into a single Decision.

Evaluation per candidate, in order, stopping at the first failing stage:
1. Action pattern matches request.action
2. Any policy role matches one of the subject's role queries
3. Resource pattern matches request.resource
4. Scope pattern matches request.scope
5. Every condition meets the request metadata

Folding:
- The first matched DENY policy ends evaluation (explicit denial). An
  allow match never overrides a deny; candidate order only decides which
  deny policy is cited.
- Otherwise, any matched ALLOW policy allows the request.
- Otherwise the configured default effect applies (DENY: implicit denial).

Decisions are values, never exceptions. Errors raised by the manager or
the matcher propagate unchanged. Auditor failures are logged and ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from warden.errors import RequestDeniedError
from warden.match import Matcher, WildcardMatcher, new_matcher
from warden.policy.model import Policy, PolicyEffect
from warden.request import Request

if TYPE_CHECKING:
    from warden.audit import Auditor
    from warden.config import EnforcerSettings
    from warden.storage.ports import PolicyManager

logger = logging.getLogger(__name__)

EXPLICIT_DENY_REASON = "request denied because a policy explicitly forbids it"
IMPLICIT_DENY_REASON = "request denied because no matching policy was found"
ALLOW_REASON = "request allowed by policy"
DEFAULT_ALLOW_REASON = "request allowed because the default effect is allow"


# =============================================================================
# Decisions
# =============================================================================

class Decision:
    """
    Result of a policy evaluation.

    Concrete decisions are Allowed, ExplicitDenial and ImplicitDenial.
    """
    effect: PolicyEffect
    reason: str
    status_code: int

    @property
    def is_allowed(self) -> bool:
        return self.effect == PolicyEffect.ALLOW

    @property
    def status(self) -> str:
        """Text explanation of the status code."""
        return HTTPStatus(self.status_code).phrase

    @property
    def message(self) -> str:
        return self.reason

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.is_allowed,
            "effect": self.effect.value,
            "reason": self.reason,
            "message": self.message,
            "status_code": self.status_code,
            "status": self.status,
        }


@dataclass(frozen=True)
class Allowed(Decision):
    """The request is allowed; policy_ids lists every matched allow policy."""
    policy_ids: tuple[str, ...] = ()
    reason: str = ALLOW_REASON
    effect: PolicyEffect = field(default=PolicyEffect.ALLOW, init=False)
    status_code: int = field(default=int(HTTPStatus.OK), init=False)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["policy_ids"] = list(self.policy_ids)
        return data


@dataclass(frozen=True)
class ExplicitDenial(Decision):
    """A matched policy with a deny effect forbids the request."""
    policy_id: str
    reason: str = EXPLICIT_DENY_REASON
    effect: PolicyEffect = field(default=PolicyEffect.DENY, init=False)
    status_code: int = field(default=int(HTTPStatus.FORBIDDEN), init=False)

    @property
    def message(self) -> str:
        return f"access denied by policy {self.policy_id}"

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["policy_id"] = self.policy_id
        return data


@dataclass(frozen=True)
class ImplicitDenial(Decision):
    """No policy allowed the request and the default effect is deny."""
    reason: str = IMPLICIT_DENY_REASON
    effect: PolicyEffect = field(default=PolicyEffect.DENY, init=False)
    status_code: int = field(default=int(HTTPStatus.FORBIDDEN), init=False)

    @property
    def message(self) -> str:
        return "access denied because no policy allowed access"


# =============================================================================
# Enforcer
# =============================================================================

class Enforcer:
    """
    Enforces the policies of a PolicyManager against requests.

    Stateless across calls: concurrent enforce() calls are independent.

    Args:
        manager: Supplies candidate policies
        matcher: Pattern matching strategy (default: strict wildcard)
        auditor: Optional auditor
        default_effect: Effect applied when no policy matches
    """

    def __init__(
        self,
        manager: PolicyManager,
        matcher: Matcher | None = None,
        auditor: Auditor | None = None,
        default_effect: PolicyEffect | str = PolicyEffect.DENY,
    ):
        self._manager = manager
        self._matcher = matcher or WildcardMatcher()
        self._auditor = auditor
        self._default_effect = PolicyEffect.parse(default_effect)

    @classmethod
    def from_settings(
        cls,
        manager: PolicyManager,
        settings: EnforcerSettings,
        auditor: Auditor | None = None,
    ) -> Enforcer:
        """
        Build an enforcer from settings.

        A ConsoleAuditor at settings.audit_level is created when no auditor
        is given and the level is not NONE.
        """
        from warden.audit import AuditLevel, ConsoleAuditor

        if auditor is None and settings.audit_level != AuditLevel.NONE:
            auditor = ConsoleAuditor(settings.audit_level)

        return cls(
            manager,
            matcher=new_matcher(settings.matcher),
            auditor=auditor,
            default_effect=settings.default_effect,
        )

    @property
    def manager(self) -> PolicyManager:
        return self._manager

    @property
    def matcher(self) -> Matcher:
        return self._matcher

    @property
    def default_effect(self) -> PolicyEffect:
        return self._default_effect

    async def enforce(self, request: Request) -> Decision:
        """
        Evaluate a request.

        Returns:
            Allowed, ExplicitDenial or ImplicitDenial

        Raises:
            Any error from the manager or the matcher, unchanged
        """
        self._audit_request(request)

        candidates = await self._manager.find_by_request(request)
        allowed: list[str] = []

        for policy in candidates:
            if not self.matches(policy, request):
                continue

            if policy.effect == PolicyEffect.DENY:
                logger.debug(f"Policy {policy.id} denies {request.action} on {request.resource}")
                decision: Decision = ExplicitDenial(policy_id=policy.id)
                self._audit_effect(request, decision.effect)
                return decision

            logger.debug(f"Policy {policy.id} allows {request.action} on {request.resource}")
            allowed.append(policy.id)

        if allowed:
            decision = Allowed(policy_ids=tuple(allowed))
        elif self._default_effect == PolicyEffect.DENY:
            decision = ImplicitDenial()
        else:
            decision = Allowed(reason=DEFAULT_ALLOW_REASON)

        self._audit_effect(request, decision.effect)
        return decision

    async def enforce_or_raise(self, request: Request) -> Decision:
        """
        Evaluate a request, raising on denial.

        Raises:
            RequestDeniedError: If the decision is a denial
        """
        decision = await self.enforce(request)
        if not decision.is_allowed:
            raise RequestDeniedError(decision)
        return decision

    def matches(self, policy: Policy, request: Request) -> bool:
        """True when policy matches every stage for request."""
        m = self._matcher

        if not m.match_policy(policy.actions, request.action):
            return False

        if not self._match_roles(policy, request):
            return False

        if not m.match_policy(policy.resources, request.resource):
            return False

        if not m.match_policy(policy.scopes, request.scope):
            return False

        return policy.conditions.meets(request)

    def _match_roles(self, policy: Policy, request: Request) -> bool:
        queries = request.role_queries()
        for role in policy.roles:
            for query in queries:
                if self._matcher.match_role(role, query):
                    return True
        return False

    # === Auditing ===

    def _audit_request(self, request: Request) -> None:
        if self._auditor is None:
            return
        try:
            self._auditor.log_request(request)
        except Exception:
            logger.exception("Auditor failed to log request")

    def _audit_effect(self, request: Request, effect: PolicyEffect) -> None:
        if self._auditor is None:
            return
        try:
            self._auditor.log_policy_effect(request, effect)
        except Exception:
            logger.exception("Auditor failed to log policy effect")
