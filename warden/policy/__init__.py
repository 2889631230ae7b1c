# Policies
# Immutable policy model and the enforcer that evaluates requests against it

from warden.policy.model import (
    Policy,
    PolicyEffect,
    PolicyOptions,
    PolicyOption,
    new_policy,
    must_new_policy,
    new_policy_options,
    set_policy_options,
    policy_name,
    policy_description,
    policy_allow,
    policy_deny,
    set_resources,
    set_actions,
    set_scopes,
    with_condition,
    with_role,
)
from warden.policy.engine import (
    Decision,
    Allowed,
    ExplicitDenial,
    ImplicitDenial,
    Enforcer,
)

__all__ = [
    "Policy",
    "PolicyEffect",
    "PolicyOptions",
    "PolicyOption",
    "new_policy",
    "must_new_policy",
    "new_policy_options",
    "set_policy_options",
    "policy_name",
    "policy_description",
    "policy_allow",
    "policy_deny",
    "set_resources",
    "set_actions",
    "set_scopes",
    "with_condition",
    "with_role",
    "Decision",
    "Allowed",
    "ExplicitDenial",
    "ImplicitDenial",
    "Enforcer",
]
