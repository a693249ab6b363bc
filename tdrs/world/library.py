"""Trait and social-event libraries built from validated definition documents.

A document is built completely into staging maps before anything is
committed, so a document that fails anywhere leaves both libraries exactly as
they were.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from tdrs.entities.stats import StatModifierType
from tdrs.entities.traits import StatEffect, Trait, trait_rule_source
from tdrs.errors import (
    ConfigurationError,
    InvalidArgumentError,
    SocialEventNotFoundError,
    TraitNotFoundError,
)
from tdrs.world.definitions import (
    DefinitionDocument,
    SocialEventDefinition,
    SocialRuleDefinition,
    TraitDefinition,
)
from tdrs.world.rules.context import referenced_variables
from tdrs.world.rules.effects import Effect, EffectLibrary, referenced_trait
from tdrs.world.rules.preconditions import PreconditionLibrary
from tdrs.world.rules.social import SocialRule
from tdrs.world.social_events import SocialEvent


logger = logging.getLogger(__name__)


class TraitLibrary:
    def __init__(self) -> None:
        self._traits: Dict[str, Trait] = {}

    def get_trait(self, trait_id: str) -> Trait:
        try:
            return self._traits[trait_id]
        except KeyError:
            raise TraitNotFoundError(f"Unknown trait '{trait_id}'") from None

    def ids(self) -> List[str]:
        return list(self._traits)

    def _commit(self, traits: Dict[str, Trait]) -> None:
        self._traits.update(traits)

    def __contains__(self, trait_id: object) -> bool:
        return trait_id in self._traits

    def __iter__(self) -> Iterator[Trait]:
        return iter(list(self._traits.values()))

    def __len__(self) -> int:
        return len(self._traits)


class SocialEventLibrary:
    def __init__(self) -> None:
        self._events: Dict[str, SocialEvent] = {}

    def get_event(self, name: str) -> SocialEvent:
        try:
            return self._events[name]
        except KeyError:
            raise SocialEventNotFoundError(f"Unknown social event '{name}'") from None

    def names(self) -> List[str]:
        return list(self._events)

    def _commit(self, events: Dict[str, SocialEvent]) -> None:
        self._events.update(events)

    def __contains__(self, name: object) -> bool:
        return name in self._events

    def __iter__(self) -> Iterator[SocialEvent]:
        return iter(list(self._events.values()))

    def __len__(self) -> int:
        return len(self._events)


def _build_effects(invocations: Iterable[str], effects: EffectLibrary) -> Tuple[Effect, ...]:
    return tuple(effects.create(invocation) for invocation in invocations)


def _reject_variables(items: object, where: str) -> None:
    variables = referenced_variables(items)
    if variables:
        raise InvalidArgumentError(
            f"{where} cannot use variables ({', '.join(sorted(variables))}); only social events bind them"
        )


def build_social_rule(
    definition: SocialRuleDefinition,
    preconditions: PreconditionLibrary,
    effects: EffectLibrary,
    *,
    source: Optional[str] = None,
) -> SocialRule:
    built_preconditions = tuple(preconditions.create(node) for node in definition.preconditions)
    built_effects = _build_effects(definition.effects, effects)
    _reject_variables(list(built_preconditions) + list(built_effects), "Social rules")
    return SocialRule(
        preconditions=built_preconditions,
        effects=built_effects,
        is_outgoing=definition.outgoing,
        source=source if source is not None else definition.source,
        description=definition.description,
    )


def build_trait(
    definition: TraitDefinition,
    preconditions: PreconditionLibrary,
    effects: EffectLibrary,
) -> Trait:
    attach = _build_effects(definition.effects, effects)
    detach = None
    if definition.remove_effects is not None:
        detach = _build_effects(definition.remove_effects, effects)
    _reject_variables(list(attach) + list(detach or ()), "Trait effects")
    stat_effects = tuple(
        StatEffect(
            stat=item.stat,
            value=item.value,
            modifier_type=StatModifierType.PERCENT if item.type == "percent" else StatModifierType.FLAT,
            duration=item.duration,
        )
        for item in definition.stats_effects
    )
    rules = tuple(
        build_social_rule(rule, preconditions, effects, source=trait_rule_source(definition.id))
        for rule in definition.social_rules
    )
    return Trait(
        trait_id=definition.id,
        display_name=definition.display_name or definition.id,
        description=definition.description,
        effects=attach,
        remove_effects=detach,
        stat_effects=stat_effects,
        social_rules=rules,
        conflicts_with=frozenset(definition.conflicts_with),
        duration=definition.duration,
    )


def build_social_event(
    definition: SocialEventDefinition,
    preconditions: PreconditionLibrary,
    effects: EffectLibrary,
) -> SocialEvent:
    built_preconditions = tuple(preconditions.create(node) for node in definition.preconditions)
    built_effects = _build_effects(definition.effects, effects)
    undeclared = referenced_variables(list(built_preconditions) + list(built_effects)) - set(definition.roles)
    if undeclared:
        raise InvalidArgumentError(
            f"uses undeclared variables {', '.join(sorted(undeclared))}; declared roles are {', '.join(definition.roles)}"
        )
    return SocialEvent(
        name=definition.name,
        roles=tuple(definition.roles),
        description=definition.description,
        preconditions=built_preconditions,
        effects=built_effects,
    )


def _rewrap(exc: ConfigurationError, prefix: str) -> ConfigurationError:
    return type(exc)(f"{prefix}: {exc}")


def _trait_references(trait: Trait) -> List[str]:
    found: List[str] = []
    effect_lists = [trait.effects, trait.remove_effects or ()]
    effect_lists.extend(rule.effects for rule in trait.social_rules)
    for effect_list in effect_lists:
        for effect in effect_list:
            trait_id = referenced_trait(effect)
            if trait_id is not None:
                found.append(trait_id)
    return found


def load_document(
    document: DefinitionDocument,
    *,
    traits: TraitLibrary,
    social_events: SocialEventLibrary,
    preconditions: PreconditionLibrary,
    effects: EffectLibrary,
    origin: str = "<document>",
) -> Tuple[List[str], List[str]]:
    """Build and commit every trait and social event in ``document``.

    Returns the ids of the loaded traits and the names of the loaded events.
    Raises ``ConfigurationError`` (or a subclass) without committing anything
    if any node is invalid or references a trait that does not exist.
    """
    staged_traits: Dict[str, Trait] = {}
    for definition in document.traits:
        prefix = f"{origin}: trait '{definition.id}'"
        if definition.id in staged_traits or definition.id in traits:
            raise ConfigurationError(f"{prefix} is defined more than once")
        try:
            staged_traits[definition.id] = build_trait(definition, preconditions, effects)
        except ConfigurationError as exc:
            raise _rewrap(exc, prefix) from exc

    staged_events: Dict[str, SocialEvent] = {}
    for event_definition in document.social_events:
        prefix = f"{origin}: social event '{event_definition.name}'"
        if event_definition.name in staged_events or event_definition.name in social_events:
            raise ConfigurationError(f"{prefix} is defined more than once")
        try:
            staged_events[event_definition.name] = build_social_event(event_definition, preconditions, effects)
        except ConfigurationError as exc:
            raise _rewrap(exc, prefix) from exc

    def known(trait_id: str) -> bool:
        return trait_id in staged_traits or trait_id in traits

    for trait in staged_traits.values():
        for trait_id in _trait_references(trait):
            if not known(trait_id):
                raise ConfigurationError(f"{origin}: trait '{trait.trait_id}' references unknown trait '{trait_id}'")
    for event in staged_events.values():
        for effect in event.effects:
            trait_id = referenced_trait(effect)
            if trait_id is not None and not known(trait_id):
                raise ConfigurationError(f"{origin}: social event '{event.name}' references unknown trait '{trait_id}'")

    traits._commit(staged_traits)
    social_events._commit(staged_events)
    logger.info(
        "tdrs.definitions.loaded",
        extra={"origin": origin, "traits": len(staged_traits), "social_events": len(staged_events)},
    )
    return list(staged_traits), list(staged_events)


__all__ = [
    "TraitLibrary",
    "SocialEventLibrary",
    "build_social_rule",
    "build_trait",
    "build_social_event",
    "load_document",
]
