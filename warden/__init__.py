# Warden - Policy Enforcement Engine
# Role hierarchies, attribute conditions and pattern matching folded into one
# allow/deny decision (deny overrides allow, fail closed)

__version__ = "0.1.0"

# Re-export commonly used components for convenience
from warden.errors import (
    WardenError,
    StorageError,
    NotFoundError,
    DuplicateIdError,
    RequestDeniedError,
)
from warden.role import Role, new_role
from warden.request import (
    Subject,
    Request,
    new_subject,
    new_request,
    new_request_context,
    subject_name,
    subject_role,
    subject_meta,
)
from warden.condition import (
    Condition,
    ConditionOptions,
    ConditionRegistry,
    ConditionSet,
    new_conditions,
)
from warden.match import Matcher, RegexMatcher, WildcardMatcher, new_matcher
from warden.policy import (
    Policy,
    PolicyEffect,
    PolicyOptions,
    new_policy,
    must_new_policy,
    policy_name,
    policy_description,
    policy_allow,
    policy_deny,
    set_resources,
    set_actions,
    set_scopes,
    with_condition,
    with_role,
    Decision,
    Allowed,
    ExplicitDenial,
    ImplicitDenial,
    Enforcer,
)
from warden.audit import AuditLevel, Auditor, ConsoleAuditor, TrailAuditor
from warden.config import EnforcerSettings, enforcer_settings_from_env

__all__ = [
    "__version__",
    # Errors
    "WardenError",
    "StorageError",
    "NotFoundError",
    "DuplicateIdError",
    "RequestDeniedError",
    # Roles & requests
    "Role",
    "new_role",
    "Subject",
    "Request",
    "new_subject",
    "new_request",
    "new_request_context",
    "subject_name",
    "subject_role",
    "subject_meta",
    # Conditions
    "Condition",
    "ConditionOptions",
    "ConditionRegistry",
    "ConditionSet",
    "new_conditions",
    # Matching
    "Matcher",
    "RegexMatcher",
    "WildcardMatcher",
    "new_matcher",
    # Policies
    "Policy",
    "PolicyEffect",
    "PolicyOptions",
    "new_policy",
    "must_new_policy",
    "policy_name",
    "policy_description",
    "policy_allow",
    "policy_deny",
    "set_resources",
    "set_actions",
    "set_scopes",
    "with_condition",
    "with_role",
    # Enforcement
    "Decision",
    "Allowed",
    "ExplicitDenial",
    "ImplicitDenial",
    "Enforcer",
    # Audit & config
    "AuditLevel",
    "Auditor",
    "ConsoleAuditor",
    "TrailAuditor",
    "EnforcerSettings",
    "enforcer_settings_from_env",
]
