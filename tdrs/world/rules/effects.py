from __future__ import annotations

import shlex
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Sequence, Tuple, Union

from tdrs.entities.entity import SocialEntity
from tdrs.entities.stats import StatModifier, StatModifierType
from tdrs.errors import ConfigurationError, InvalidArgumentError, UnknownFactoryError
from tdrs.world.rules.context import EffectContext, check_reference


class Effect(Protocol):
    """Mutation applied when a trait attaches, a rule activates, or an event fires.

    ``remove`` withdraws what ``apply`` did for the same context source.
    """

    @property
    def description(self) -> str:
        ...

    def apply(self, ctx: EffectContext) -> None:
        ...

    def remove(self, ctx: EffectContext) -> None:
        ...


EffectFactory = Callable[[Sequence[str]], Effect]


class EffectLibrary:
    def __init__(self) -> None:
        self._factories: Dict[str, EffectFactory] = {}

    def add_factory(self, name: str, factory: EffectFactory) -> None:
        if name in self._factories:
            raise ConfigurationError(f"Effect factory '{name}' is already registered")
        self._factories[name] = factory

    def has_factory(self, name: str) -> bool:
        return name in self._factories

    def names(self) -> Tuple[str, ...]:
        return tuple(self._factories)

    def create(self, invocation: Union[str, Sequence[str]]) -> Effect:
        """Build an effect from ``"<factory-name> arg1 arg2 ..."``."""
        if isinstance(invocation, str):
            try:
                parts = shlex.split(invocation)
            except ValueError as exc:
                raise ConfigurationError(f"Cannot parse effect '{invocation}': {exc}") from exc
        else:
            parts = [str(part) for part in invocation]
        if not parts:
            raise ConfigurationError("Empty effect invocation")
        name, args = parts[0], parts[1:]
        factory = self._factories.get(name)
        if factory is None:
            raise UnknownFactoryError(f"No effect factory registered for '{name}'")
        return factory(args)


def _expect_args(name: str, args: Sequence[str], minimum: int, maximum: int) -> None:
    if not minimum <= len(args) <= maximum:
        expected = str(minimum) if minimum == maximum else f"{minimum}-{maximum}"
        raise InvalidArgumentError(
            f"Incorrect number of arguments for {name}. Expected {expected} but was {len(args)}."
        )


def _parse_float(name: str, value: str, position: int) -> float:
    try:
        return float(value)
    except ValueError:
        raise InvalidArgumentError(
            f"{name}: expected number as argument {position} but was '{value}'"
        ) from None


def _parse_duration(name: str, args: Sequence[str], index: int) -> int:
    if len(args) <= index:
        return -1
    try:
        duration = int(args[index])
    except ValueError:
        raise InvalidArgumentError(
            f"{name}: expected integer as argument {index + 1} but was '{args[index]}'"
        ) from None
    if duration != -1 and duration <= 0:
        raise InvalidArgumentError(
            f"{name}: duration must be a positive number of ticks or -1 (permanent) but was {duration}"
        )
    return duration


def _grant(ctx: EffectContext, holder: SocialEntity, trait_id: str, duration: int) -> None:
    explicit = duration if duration > 0 else None
    if ctx.revocable:
        ctx.engine.grant_trait(holder, trait_id, ctx.source, explicit)
    else:
        ctx.engine.add_trait(holder, trait_id, explicit)


@dataclass(frozen=True)
class AddTrait:
    who: str
    trait_id: str
    duration: int = -1

    @property
    def description(self) -> str:
        return f"add trait {self.trait_id} to {self.who}"

    def apply(self, ctx: EffectContext) -> None:
        _grant(ctx, ctx.resolve(self.who), self.trait_id, self.duration)

    def remove(self, ctx: EffectContext) -> None:
        ctx.engine.revoke_trait(ctx.resolve(self.who), self.trait_id, ctx.source)


@dataclass(frozen=True)
class RemoveTrait:
    who: str
    trait_id: str

    @property
    def description(self) -> str:
        return f"remove trait {self.trait_id} from {self.who}"

    def apply(self, ctx: EffectContext) -> None:
        ctx.engine.remove_trait(ctx.resolve(self.who), self.trait_id)

    def remove(self, ctx: EffectContext) -> None:
        # A removed trait is not restored when the removal is withdrawn.
        return None


@dataclass(frozen=True)
class ModifyStat:
    who: str
    stat: str
    value: float
    modifier_type: StatModifierType = StatModifierType.FLAT
    duration: int = -1

    @property
    def description(self) -> str:
        if self.modifier_type == StatModifierType.PERCENT:
            return f"scale {self.who}.{self.stat} by {self.value:+.0%}"
        return f"{self.who}.{self.stat} {self.value:+g}"

    def apply(self, ctx: EffectContext) -> None:
        holder = ctx.resolve(self.who)
        holder.stats.add_modifier(
            StatModifier(
                stat=self.stat,
                reason=ctx.reason(self.description),
                value=self.value,
                modifier_type=self.modifier_type,
                duration=self.duration,
                source=ctx.source,
            )
        )

    def remove(self, ctx: EffectContext) -> None:
        if ctx.source is None:
            return
        ctx.resolve(self.who).stats.remove_modifiers_from_source(ctx.source, self.stat)


@dataclass(frozen=True)
class ModifyRelationshipStat:
    owner: str
    target: str
    stat: str
    value: float
    duration: int = -1

    @property
    def description(self) -> str:
        return f"{self.owner}->{self.target}.{self.stat} {self.value:+g}"

    def apply(self, ctx: EffectContext) -> None:
        relationship = ctx.resolve_relationship(self.owner, self.target)
        relationship.stats.add_modifier(
            StatModifier(
                stat=self.stat,
                reason=ctx.reason(self.description),
                value=self.value,
                duration=self.duration,
                source=ctx.source,
            )
        )

    def remove(self, ctx: EffectContext) -> None:
        if ctx.source is None:
            return
        relationship = ctx.find_relationship(self.owner, self.target)
        if relationship is not None:
            relationship.stats.remove_modifiers_from_source(ctx.source, self.stat)


@dataclass(frozen=True)
class AddRelationshipTrait:
    owner: str
    target: str
    trait_id: str
    duration: int = -1

    @property
    def description(self) -> str:
        return f"add trait {self.trait_id} to {self.owner}->{self.target}"

    def apply(self, ctx: EffectContext) -> None:
        _grant(ctx, ctx.resolve_relationship(self.owner, self.target), self.trait_id, self.duration)

    def remove(self, ctx: EffectContext) -> None:
        relationship = ctx.find_relationship(self.owner, self.target)
        if relationship is not None:
            ctx.engine.revoke_trait(relationship, self.trait_id, ctx.source)


def add_trait_factory(args: Sequence[str]) -> Effect:
    _expect_args("AddTrait", args, 2, 3)
    return AddTrait(
        check_reference(args[0], factory="AddTrait"),
        args[1],
        _parse_duration("AddTrait", args, 2),
    )


def remove_trait_factory(args: Sequence[str]) -> Effect:
    _expect_args("RemoveTrait", args, 2, 2)
    return RemoveTrait(check_reference(args[0], factory="RemoveTrait"), args[1])


def _stat_factory(name: str, sign: float, modifier_type: StatModifierType) -> Callable[[Sequence[str]], Effect]:
    def factory(args: Sequence[str]) -> Effect:
        _expect_args(name, args, 3, 4)
        return ModifyStat(
            who=check_reference(args[0], factory=name),
            stat=args[1],
            value=sign * _parse_float(name, args[2], 3),
            modifier_type=modifier_type,
            duration=_parse_duration(name, args, 3),
        )

    return factory


increase_stat_factory = _stat_factory("IncreaseStat", 1.0, StatModifierType.FLAT)
decrease_stat_factory = _stat_factory("DecreaseStat", -1.0, StatModifierType.FLAT)
scale_stat_factory = _stat_factory("ScaleStat", 1.0, StatModifierType.PERCENT)


def increase_relationship_stat_factory(args: Sequence[str]) -> Effect:
    name = "IncreaseRelationshipStat"
    _expect_args(name, args, 4, 5)
    return ModifyRelationshipStat(
        owner=check_reference(args[0], factory=name),
        target=check_reference(args[1], factory=name),
        stat=args[2],
        value=_parse_float(name, args[3], 4),
        duration=_parse_duration(name, args, 4),
    )


def add_relationship_trait_factory(args: Sequence[str]) -> Effect:
    name = "AddRelationshipTrait"
    _expect_args(name, args, 3, 4)
    return AddRelationshipTrait(
        owner=check_reference(args[0], factory=name),
        target=check_reference(args[1], factory=name),
        trait_id=args[2],
        duration=_parse_duration(name, args, 3),
    )


def referenced_trait(effect: Effect) -> Optional[str]:
    """Trait id an effect adds or removes, if any. Used to validate documents after load."""
    if isinstance(effect, (AddTrait, RemoveTrait, AddRelationshipTrait)):
        return effect.trait_id
    return None


DEFAULT_EFFECT_FACTORIES: Dict[str, EffectFactory] = {
    "AddTrait": add_trait_factory,
    "RemoveTrait": remove_trait_factory,
    "IncreaseStat": increase_stat_factory,
    "DecreaseStat": decrease_stat_factory,
    "ScaleStat": scale_stat_factory,
    "IncreaseRelationshipStat": increase_relationship_stat_factory,
    "AddRelationshipTrait": add_relationship_trait_factory,
}
