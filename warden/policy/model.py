"""
Policy Model

A Policy is an immutable decision unit:
- id and description
- roles the policy applies to
- resource, action and scope patterns (None matches anything, an explicit
  empty list matches nothing)
- a ConditionSet over request metadata
- an effect: allow or deny

Policies are built from a PolicyOptions draft. The draft is the
serializable form: it accumulates option functions (policy_name(),
with_role(), ...) and keeps raw condition definitions; only construction
resolves those definitions against a ConditionRegistry.

JSON shape (field order is stable):
    {"name", "description", "roles", "resources", "actions", "scopes",
     "conditions", "effect"}
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Callable, Sequence

from pydantic import BaseModel, Field, ValidationError

from warden.condition import (
    ConditionOptions,
    ConditionRegistry,
    ConditionSet,
    new_conditions,
)
from warden.errors import PolicyError, WardenError
from warden.role import Role


class PolicyEffect(str, Enum):
    """Outcome applied when a policy matches."""
    ALLOW = "allow"
    DENY = "deny"

    @classmethod
    def parse(cls, value: str | PolicyEffect | None) -> PolicyEffect:
        """Parse an effect; anything other than "allow" is deny."""
        if isinstance(value, PolicyEffect):
            return value
        if value == cls.ALLOW.value:
            return cls.ALLOW
        return cls.DENY


# =============================================================================
# Options
# =============================================================================

class PolicyOptions(BaseModel):
    """
    Serializable policy draft.
    """
    name: str = Field(
        default="",
        description="Policy id, unique per store"
    )
    description: str = Field(
        default="",
        description="Human-readable description"
    )
    roles: list[Role] = Field(
        default_factory=list,
        description="Roles the policy applies to"
    )
    resources: list[str] | None = Field(
        default=None,
        description="Resource patterns (None matches any resource)"
    )
    actions: list[str] | None = Field(
        default=None,
        description="Action patterns (None matches any action)"
    )
    scopes: list[str] | None = Field(
        default=None,
        description="Scope patterns (None matches any scope)"
    )
    conditions: list[ConditionOptions] = Field(
        default_factory=list,
        description="Condition definitions resolved at construction"
    )
    effect: str = Field(
        default="",
        description="allow or deny; anything else is deny"
    )

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), separators=(",", ":"))


PolicyOption = Callable[[PolicyOptions], None]


def new_policy_options(*opts: PolicyOption) -> PolicyOptions:
    """Build a PolicyOptions draft from option functions."""
    options = PolicyOptions()
    for opt in opts:
        opt(options)
    return options


def set_policy_options(source: PolicyOptions) -> PolicyOption:
    """Replace every draft field with the values of source."""
    def apply(options: PolicyOptions) -> None:
        for name in PolicyOptions.model_fields:
            setattr(options, name, getattr(source, name))
    return apply


def policy_name(name: str) -> PolicyOption:
    def apply(options: PolicyOptions) -> None:
        options.name = name
    return apply


def policy_description(description: str) -> PolicyOption:
    def apply(options: PolicyOptions) -> None:
        options.description = description
    return apply


def policy_allow() -> PolicyOption:
    def apply(options: PolicyOptions) -> None:
        options.effect = PolicyEffect.ALLOW.value
    return apply


def policy_deny() -> PolicyOption:
    def apply(options: PolicyOptions) -> None:
        options.effect = PolicyEffect.DENY.value
    return apply


def set_resources(*resources: str) -> PolicyOption:
    """Replace the resource patterns."""
    def apply(options: PolicyOptions) -> None:
        options.resources = list(resources)
    return apply


def set_actions(*actions: str) -> PolicyOption:
    """Replace the action patterns."""
    def apply(options: PolicyOptions) -> None:
        options.actions = list(actions)
    return apply


def set_scopes(*scopes: str) -> PolicyOption:
    """Replace the scope patterns."""
    def apply(options: PolicyOptions) -> None:
        options.scopes = list(scopes)
    return apply


def with_condition(
    definition: ConditionOptions | None = None,
    /,
    **kwargs: Any,
) -> PolicyOption:
    """
    Append a condition definition.

    Accepts a ConditionOptions or its fields as keywords:
        with_condition(name="internal", type="bool", options={"value": True})
    """
    condition = definition if definition is not None else ConditionOptions(**kwargs)

    def apply(options: PolicyOptions) -> None:
        options.conditions = [*options.conditions, condition]
    return apply


def with_role(role: Role) -> PolicyOption:
    """Append a role."""
    def apply(options: PolicyOptions) -> None:
        options.roles = [*options.roles, role]
    return apply


# =============================================================================
# Policy
# =============================================================================

class Policy:
    """
    Immutable policy.

    Pattern sequences are stored as tuples; None is kept to distinguish the
    open default from an explicit empty list.
    """

    __slots__ = (
        "_id",
        "_description",
        "_roles",
        "_resources",
        "_actions",
        "_scopes",
        "_conditions",
        "_effect",
    )

    def __init__(
        self,
        id: str,
        description: str = "",
        roles: Sequence[Role] = (),
        resources: Sequence[str] | None = None,
        actions: Sequence[str] | None = None,
        scopes: Sequence[str] | None = None,
        conditions: ConditionSet | None = None,
        effect: PolicyEffect | str = PolicyEffect.DENY,
    ):
        object.__setattr__(self, "_id", id)
        object.__setattr__(self, "_description", description)
        object.__setattr__(self, "_roles", tuple(roles))
        object.__setattr__(self, "_resources", _freeze(resources))
        object.__setattr__(self, "_actions", _freeze(actions))
        object.__setattr__(self, "_scopes", _freeze(scopes))
        object.__setattr__(self, "_conditions", conditions if conditions is not None else ConditionSet())
        object.__setattr__(self, "_effect", PolicyEffect.parse(effect))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"Policy is immutable, cannot set {name}")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"Policy is immutable, cannot delete {name}")

    def __repr__(self) -> str:
        return f"Policy(id={self._id!r}, effect={self._effect.value!r})"

    @property
    def id(self) -> str:
        return self._id

    @property
    def description(self) -> str:
        return self._description

    @property
    def roles(self) -> tuple[Role, ...]:
        return self._roles

    @property
    def resources(self) -> tuple[str, ...] | None:
        return self._resources

    @property
    def actions(self) -> tuple[str, ...] | None:
        return self._actions

    @property
    def scopes(self) -> tuple[str, ...] | None:
        return self._scopes

    @property
    def conditions(self) -> ConditionSet:
        return self._conditions

    @property
    def effect(self) -> PolicyEffect:
        return self._effect

    # === Construction ===

    @classmethod
    def from_options(
        cls,
        options: PolicyOptions,
        registry: ConditionRegistry | None = None,
        strict_conditions: bool = False,
    ) -> Policy:
        """
        Construct a policy from a draft, resolving condition definitions.

        Raises:
            ConditionError: If condition resolution fails
        """
        conditions = new_conditions(options.conditions, registry, strict=strict_conditions)
        return cls(
            id=options.name,
            description=options.description,
            roles=options.roles,
            resources=options.resources,
            actions=options.actions,
            scopes=options.scopes,
            conditions=conditions,
            effect=options.effect,
        )

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        registry: ConditionRegistry | None = None,
        strict_conditions: bool = False,
    ) -> Policy:
        """
        Construct a policy from its JSON shape.

        Raises:
            PolicyError: If data does not follow the policy shape
        """
        try:
            options = PolicyOptions.model_validate(data)
        except ValidationError as e:
            raise PolicyError(f"invalid policy document: {e}") from e
        return cls.from_options(options, registry, strict_conditions)

    @classmethod
    def from_json(
        cls,
        raw: str | bytes,
        registry: ConditionRegistry | None = None,
        strict_conditions: bool = False,
    ) -> Policy:
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise PolicyError(f"invalid policy JSON: {e}") from e
        if not isinstance(data, dict):
            raise PolicyError("policy JSON must be an object")
        return cls.from_dict(data, registry, strict_conditions)

    # === Serialization ===

    def to_options(self) -> PolicyOptions:
        return PolicyOptions(
            name=self._id,
            description=self._description,
            roles=list(self._roles),
            resources=_thaw(self._resources),
            actions=_thaw(self._actions),
            scopes=_thaw(self._scopes),
            conditions=self._conditions.to_options(),
            effect=self._effect.value,
        )

    def to_dict(self) -> dict[str, Any]:
        return self.to_options().model_dump(mode="json")

    def to_json(self) -> str:
        """Compact, order-stable JSON."""
        return self.to_options().to_json()


def _freeze(values: Sequence[str] | None) -> tuple[str, ...] | None:
    return None if values is None else tuple(values)


def _thaw(values: tuple[str, ...] | None) -> list[str] | None:
    return None if values is None else list(values)


def new_policy(
    *opts: PolicyOption,
    registry: ConditionRegistry | None = None,
    strict_conditions: bool = False,
) -> Policy:
    """
    Build a Policy from option functions.

    Example:
        policy = new_policy(
            policy_name("read-reports"),
            set_actions("read"),
            set_resources("reports/*"),
            with_role(analyst),
            policy_allow(),
        )
    """
    return Policy.from_options(new_policy_options(*opts), registry, strict_conditions)


def must_new_policy(
    *opts: PolicyOption,
    registry: ConditionRegistry | None = None,
    strict_conditions: bool = False,
) -> Policy:
    """
    Build a Policy, wrapping any construction failure in PolicyError.
    """
    try:
        return new_policy(*opts, registry=registry, strict_conditions=strict_conditions)
    except WardenError as e:
        raise PolicyError(f"failed to create new policy: {e}") from e
