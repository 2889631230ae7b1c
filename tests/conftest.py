# Shared fixtures: the two-policy allow/deny scenario and in-memory managers

import pytest

from warden.policy import (
    Enforcer,
    new_policy,
    policy_allow,
    policy_deny,
    policy_name,
    set_actions,
    set_resources,
    with_condition,
    with_role,
)
from warden.request import Subject, new_request
from warden.role import Role
from warden.storage.memory import InMemoryPolicyManager, InMemoryRoleManager


@pytest.fixture
def role_a():
    return Role(id="test.A", name="Test A")


@pytest.fixture
def role_b():
    return Role(id="test.B", name="Test B")


@pytest.fixture
def allow_policy(role_a):
    return new_policy(
        policy_name("P1"),
        with_role(role_a),
        set_resources("test_resource"),
        set_actions("test"),
        with_condition(name="match_me", type="bool", options={"value": True}),
        policy_allow(),
    )


@pytest.fixture
def deny_policy(role_b):
    return new_policy(
        policy_name("P2"),
        with_role(role_b),
        set_resources("test_resource"),
        set_actions("test"),
        with_condition(name="match_me", type="bool", options={"value": True}),
        policy_deny(),
    )


@pytest.fixture
async def policy_manager(allow_policy, deny_policy):
    manager = InMemoryPolicyManager()
    await manager.create(allow_policy)
    await manager.create(deny_policy)
    return manager


@pytest.fixture
def role_manager():
    return InMemoryRoleManager()


@pytest.fixture
def enforcer(policy_manager):
    return Enforcer(policy_manager)


@pytest.fixture
def request_for():
    """Build the scenario request for a subject holding one role."""
    def build(role: Role, **meta):
        subject = Subject(id="user-1", roles=[role])
        return new_request("test_resource", "test", subject, "", meta)
    return build
