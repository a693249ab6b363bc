from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Protocol, Tuple

from tdrs.errors import ConfigurationError, InvalidArgumentError, UnknownFactoryError
from tdrs.world.rules.context import OWNER, SELF, TARGET, EffectContext, check_reference


class Precondition(Protocol):
    """Pure boolean test evaluated against a relationship or event context."""

    @property
    def description(self) -> str:
        ...

    def evaluate(self, ctx: EffectContext) -> bool:
        ...


PreconditionFactory = Callable[[Mapping[str, Any], "PreconditionLibrary"], Precondition]


class PreconditionLibrary:
    """Name -> factory registry used while definitions are loaded."""

    def __init__(self) -> None:
        self._factories: Dict[str, PreconditionFactory] = {}

    def add_factory(self, name: str, factory: PreconditionFactory) -> None:
        if name in self._factories:
            raise ConfigurationError(f"Precondition factory '{name}' is already registered")
        self._factories[name] = factory

    def has_factory(self, name: str) -> bool:
        return name in self._factories

    def names(self) -> Tuple[str, ...]:
        return tuple(self._factories)

    def create(self, node: object) -> Precondition:
        if not isinstance(node, Mapping):
            raise ConfigurationError(f"Precondition node must be a mapping, got {node!r}")
        type_name = node.get("type")
        if not isinstance(type_name, str) or not type_name:
            raise ConfigurationError(f"Precondition node is missing 'type': {dict(node)}")
        factory = self._factories.get(type_name)
        if factory is None:
            raise UnknownFactoryError(f"No precondition factory registered for '{type_name}'")
        return factory(node, self)


def _required_str(node: Mapping[str, Any], key: str) -> str:
    value = node.get(key)
    if value is None or isinstance(value, (list, dict)) or str(value).strip() == "":
        raise InvalidArgumentError(f"{node.get('type')}: expected scalar field '{key}'")
    return str(value).strip()


@dataclass(frozen=True)
class HasTrait:
    subject: str
    trait_id: str

    @property
    def description(self) -> str:
        return f"{self.subject} has trait {self.trait_id}"

    def evaluate(self, ctx: EffectContext) -> bool:
        return ctx.resolve(self.subject).has_trait(self.trait_id)


_COMPARATORS: Dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
    ">=": operator.ge,
    ">": operator.gt,
}


@dataclass(frozen=True)
class StatThreshold:
    subject: str
    stat: str
    op: str
    value: float

    @property
    def description(self) -> str:
        return f"{self.subject}.{self.stat} {self.op} {self.value:g}"

    def evaluate(self, ctx: EffectContext) -> bool:
        current = ctx.resolve(self.subject).get_stat_value(self.stat)
        return _COMPARATORS[self.op](current, self.value)


@dataclass(frozen=True)
class Not:
    inner: Precondition

    @property
    def description(self) -> str:
        return f"not ({self.inner.description})"

    def evaluate(self, ctx: EffectContext) -> bool:
        return not self.inner.evaluate(ctx)


@dataclass(frozen=True)
class AllOf:
    items: Tuple[Precondition, ...]

    @property
    def description(self) -> str:
        return " and ".join(item.description for item in self.items)

    def evaluate(self, ctx: EffectContext) -> bool:
        return all(item.evaluate(ctx) for item in self.items)


@dataclass(frozen=True)
class AnyOf:
    items: Tuple[Precondition, ...]

    @property
    def description(self) -> str:
        return " or ".join(item.description for item in self.items)

    def evaluate(self, ctx: EffectContext) -> bool:
        return any(item.evaluate(ctx) for item in self.items)


def owner_has_trait(node: Mapping[str, Any], _: PreconditionLibrary) -> Precondition:
    return HasTrait(OWNER, _required_str(node, "trait"))


def target_has_trait(node: Mapping[str, Any], _: PreconditionLibrary) -> Precondition:
    return HasTrait(TARGET, _required_str(node, "trait"))


def relationship_has_trait(node: Mapping[str, Any], _: PreconditionLibrary) -> Precondition:
    return HasTrait(SELF, _required_str(node, "trait"))


def entity_has_trait(node: Mapping[str, Any], _: PreconditionLibrary) -> Precondition:
    subject = check_reference(_required_str(node, "entity"), factory="EntityHasTrait")
    return HasTrait(subject, _required_str(node, "trait"))


def stat_threshold(node: Mapping[str, Any], _: PreconditionLibrary) -> Precondition:
    subject = check_reference(str(node.get("subject", SELF)), factory="StatThreshold")
    op = str(node.get("op", ">="))
    if op not in _COMPARATORS:
        raise InvalidArgumentError(f"StatThreshold: unsupported operator '{op}'")
    raw_value = node.get("value")
    try:
        value = float(raw_value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"StatThreshold: expected number for 'value' but was {raw_value!r}") from None
    return StatThreshold(subject, _required_str(node, "stat"), op, value)


def negate(node: Mapping[str, Any], library: PreconditionLibrary) -> Precondition:
    if "precondition" not in node:
        raise InvalidArgumentError("Not: expected nested 'precondition'")
    return Not(library.create(node["precondition"]))


def _nested_list(node: Mapping[str, Any], type_name: str, library: PreconditionLibrary) -> Tuple[Precondition, ...]:
    items = node.get("preconditions")
    if not isinstance(items, list) or not items:
        raise InvalidArgumentError(f"{type_name}: expected non-empty list 'preconditions'")
    return tuple(library.create(item) for item in items)


def all_of(node: Mapping[str, Any], library: PreconditionLibrary) -> Precondition:
    return AllOf(_nested_list(node, "All", library))


def any_of(node: Mapping[str, Any], library: PreconditionLibrary) -> Precondition:
    return AnyOf(_nested_list(node, "Any", library))


DEFAULT_PRECONDITION_FACTORIES: Dict[str, PreconditionFactory] = {
    "OwnerHasTrait": owner_has_trait,
    "TargetHasTrait": target_has_trait,
    "RelationshipHasTrait": relationship_has_trait,
    "EntityHasTrait": entity_has_trait,
    "StatThreshold": stat_threshold,
    "Not": negate,
    "All": all_of,
    "Any": any_of,
}
