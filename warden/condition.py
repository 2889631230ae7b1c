"""
Condition Framework

Conditions are named predicates evaluated against request metadata. A
policy holds a ConditionSet; the set meets a request only if every
condition meets the metadata value stored under the condition's name.

Condition types are pydantic models: options coming from JSON are
validated against the type's schema (unknown keys are rejected) instead of
being poured into arbitrary attributes.

Resolution of condition definitions is registry-driven:
- ConditionRegistry maps a type name to a zero-argument constructor
- new_conditions() resolves each {name, type, options} definition
- An unregistered type is dropped with a warning, unless strict=True
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from warden.errors import ConditionOptionsError, UnknownConditionError

if TYPE_CHECKING:
    from warden.request import Request

logger = logging.getLogger(__name__)


class Condition(BaseModel, ABC):
    """
    Base class for condition types.

    Subclasses set type_name and implement meets().
    """
    model_config = ConfigDict(extra="forbid")

    type_name: ClassVar[str] = ""

    @property
    def name(self) -> str:
        return self.type_name

    @abstractmethod
    def meets(self, value: Any, request: Request | None) -> bool:
        """
        Evaluate the condition.

        Args:
            value: Request metadata stored under the condition's name
            request: The request being evaluated (None in isolation)
        """
        ...

    def options(self) -> dict[str, Any]:
        """Serializable options that rebuild this condition."""
        return self.model_dump(mode="json")


class BoolCondition(Condition):
    """Meets when the metadata value is a boolean equal to value."""
    type_name: ClassVar[str] = "bool"

    value: bool = False

    def meets(self, value: Any, request: Request | None) -> bool:
        return isinstance(value, bool) and value == self.value


class SubjectEqualsCondition(Condition):
    """
    Meets when the metadata value names the requesting subject.

    The value may be a single subject id or a list of ids.
    """
    type_name: ClassVar[str] = "subject_equals"

    def meets(self, value: Any, request: Request | None) -> bool:
        if request is None:
            return False

        subject_id = request.subject.id
        if isinstance(value, str):
            return value == subject_id
        if isinstance(value, (list, tuple)):
            return any(isinstance(v, str) and v == subject_id for v in value)
        return False


# =============================================================================
# Registry
# =============================================================================

ConditionBuilder = Callable[[], Condition]


class ConditionRegistry(dict[str, ConditionBuilder]):
    """
    Named condition builders.

    Starts with the default conditions; each extra map is applied in
    order, later entries overriding earlier ones.
    """

    def __init__(self, *extra: Mapping[str, ConditionBuilder]):
        super().__init__({
            BoolCondition.type_name: BoolCondition,
            SubjectEqualsCondition.type_name: SubjectEqualsCondition,
            "role_equals": SubjectEqualsCondition,
        })
        for builders in extra:
            self.update(builders)

    def build(self, type_name: str, options: Mapping[str, Any] | None = None) -> Condition | None:
        """
        Instantiate a registered condition type with options.

        Returns:
            The condition, or None if type_name is not registered

        Raises:
            ConditionOptionsError: If options fail validation
        """
        builder = self.get(type_name)
        if builder is None:
            return None

        condition = builder()
        if options:
            try:
                condition = type(condition).model_validate(dict(options))
            except ValidationError as e:
                raise ConditionOptionsError(
                    f"invalid options for condition type {type_name}: {e}"
                ) from e
        return condition


class ConditionOptions(BaseModel):
    """Serializable condition definition: {name, type, options}."""
    name: str = Field(
        ...,
        description="Metadata key the condition reads"
    )
    type: str = Field(
        ...,
        description="Registered condition type"
    )
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Type-specific options"
    )


# =============================================================================
# Condition Set
# =============================================================================

class ConditionSet(Mapping[str, Condition]):
    """
    Named conditions with AND semantics.

    An empty set always meets.
    """

    def __init__(
        self,
        conditions: Mapping[str, Condition] | None = None,
        types: Mapping[str, str] | None = None,
    ):
        self._conditions: dict[str, Condition] = dict(conditions or {})
        # Registered type name per entry, kept so aliases serialize as given
        self._types: dict[str, str] = dict(types or {})

    def __getitem__(self, name: str) -> Condition:
        return self._conditions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._conditions)

    def __len__(self) -> int:
        return len(self._conditions)

    def __repr__(self) -> str:
        return f"ConditionSet({self._conditions!r})"

    def meets(self, request: Request) -> bool:
        metadata = request.metadata
        for name, condition in self._conditions.items():
            if not condition.meets(metadata.get(name), request):
                return False
        return True

    def to_options(self) -> list[ConditionOptions]:
        return [
            ConditionOptions(
                name=name,
                type=self._types.get(name, condition.name),
                options=condition.options(),
            )
            for name, condition in self._conditions.items()
        ]


def new_conditions(
    definitions: Iterable[ConditionOptions | Mapping[str, Any]] | None,
    registry: ConditionRegistry | None = None,
    strict: bool = False,
) -> ConditionSet:
    """
    Resolve condition definitions into a ConditionSet.

    Args:
        definitions: Condition definitions (models or raw dicts)
        registry: Condition registry; defaults to ConditionRegistry()
        strict: Raise on unregistered types instead of dropping them

    Returns:
        ConditionSet keyed by definition name

    Raises:
        UnknownConditionError: If strict and a type is not registered
        ConditionOptionsError: If options fail validation
    """
    if registry is None:
        registry = ConditionRegistry()

    conditions: dict[str, Condition] = {}
    types: dict[str, str] = {}
    for definition in definitions or ():
        if not isinstance(definition, ConditionOptions):
            definition = ConditionOptions.model_validate(definition)

        condition = registry.build(definition.type, definition.options)
        if condition is None:
            if strict:
                raise UnknownConditionError(
                    f"unknown condition type {definition.type}, is it registered?"
                )
            logger.warning(
                f"Dropping condition {definition.name!r}: type {definition.type!r} is not registered"
            )
            continue

        conditions[definition.name] = condition
        types[definition.name] = definition.type

    return ConditionSet(conditions, types)
