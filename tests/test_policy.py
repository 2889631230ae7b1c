# Policy construction, immutability and JSON shape

import json

import pytest

from warden.condition import ConditionOptions
from warden.errors import PolicyError
from warden.policy import (
    Policy,
    PolicyEffect,
    PolicyOptions,
    must_new_policy,
    new_policy,
    new_policy_options,
    policy_allow,
    policy_deny,
    policy_description,
    policy_name,
    set_actions,
    set_policy_options,
    set_resources,
    set_scopes,
    with_condition,
    with_role,
)
from warden.role import Role


EXPECTED_JSON = (
    '{"name":"test_policy","description":"","roles":[],"resources":null,'
    '"actions":null,"scopes":null,'
    '"conditions":[{"name":"let-me-in","type":"bool","options":{"value":true}}],'
    '"effect":"deny"}'
)


def test_round_trip_is_byte_identical():
    policy = new_policy(
        policy_name("test_policy"),
        with_condition(name="let-me-in", type="bool", options={"value": True}),
    )
    encoded = policy.to_json()

    assert encoded == EXPECTED_JSON
    assert Policy.from_json(encoded).to_json() == encoded


def test_full_policy_round_trip():
    policy = new_policy(
        policy_name("reports"),
        policy_description("analysts read reports"),
        with_role(Role(id="analyst", name="Analyst")),
        set_resources("reports/*"),
        set_actions("read", "list"),
        set_scopes("internal"),
        with_condition(name="mfa", type="bool", options={"value": True}),
        policy_allow(),
    )
    data = json.loads(policy.to_json())

    assert list(data) == [
        "name", "description", "roles", "resources", "actions", "scopes", "conditions", "effect",
    ]
    assert data["roles"] == [{"id": "analyst", "name": "Analyst", "description": "", "roles": []}]
    assert data["effect"] == "allow"

    restored = Policy.from_dict(data)
    assert restored.id == "reports"
    assert restored.actions == ("read", "list")
    assert restored.scopes == ("internal",)
    assert restored.effect == PolicyEffect.ALLOW
    assert restored.to_json() == policy.to_json()


def test_none_and_empty_lists_are_distinct():
    open_policy = new_policy(policy_name("open"))
    closed_policy = new_policy(policy_name("closed"), set_resources())

    assert open_policy.resources is None
    assert closed_policy.resources == ()
    assert json.loads(closed_policy.to_json())["resources"] == []


def test_policy_is_immutable():
    policy = new_policy(policy_name("frozen"))
    with pytest.raises(AttributeError):
        policy.effect = PolicyEffect.ALLOW
    with pytest.raises(AttributeError):
        del policy.id


@pytest.mark.parametrize("raw, expected", [
    ("allow", PolicyEffect.ALLOW),
    ("deny", PolicyEffect.DENY),
    ("", PolicyEffect.DENY),
    ("ALLOW!", PolicyEffect.DENY),
    (None, PolicyEffect.DENY),
])
def test_effect_parsing_defaults_to_deny(raw, expected):
    assert PolicyEffect.parse(raw) == expected


def test_last_effect_option_wins():
    policy = new_policy(policy_name("p"), policy_allow(), policy_deny())
    assert policy.effect == PolicyEffect.DENY


def test_set_policy_options_copies_draft():
    draft = PolicyOptions(name="copied", actions=["read"], effect="allow")
    options = new_policy_options(set_policy_options(draft), policy_description("desc"))
    assert options.name == "copied"
    assert options.actions == ["read"]
    assert options.description == "desc"


def test_unregistered_condition_is_dropped_from_policy():
    policy = new_policy(
        policy_name("p"),
        with_condition(ConditionOptions(name="geo", type="geo_fence")),
    )
    assert len(policy.conditions) == 0


def test_must_new_policy_wraps_errors():
    with pytest.raises(PolicyError):
        must_new_policy(
            policy_name("p"),
            with_condition(name="geo", type="geo_fence"),
            strict_conditions=True,
        )


@pytest.mark.parametrize("raw", ["not json", "[]", '{"roles": "admin"}'])
def test_malformed_json_raises_policy_error(raw):
    with pytest.raises(PolicyError):
        Policy.from_json(raw)
