"""Social rules, preconditions and effects."""

from .context import EffectContext
from .effects import DEFAULT_EFFECT_FACTORIES, Effect, EffectLibrary
from .preconditions import DEFAULT_PRECONDITION_FACTORIES, Precondition, PreconditionLibrary
from .social import (
    SocialRule,
    add_social_rule,
    evaluate_rule,
    refresh_entity,
    refresh_relationship,
    remove_all_rules_from_source,
    remove_social_rule,
)


def register_default_factories(preconditions: PreconditionLibrary, effects: EffectLibrary) -> None:
    for name, factory in DEFAULT_PRECONDITION_FACTORIES.items():
        preconditions.add_factory(name, factory)
    for name, factory in DEFAULT_EFFECT_FACTORIES.items():
        effects.add_factory(name, factory)


__all__ = [
    "EffectContext",
    "Effect",
    "EffectLibrary",
    "Precondition",
    "PreconditionLibrary",
    "SocialRule",
    "add_social_rule",
    "evaluate_rule",
    "refresh_entity",
    "refresh_relationship",
    "remove_all_rules_from_source",
    "remove_social_rule",
    "register_default_factories",
]
