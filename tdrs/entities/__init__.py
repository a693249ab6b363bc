"""Graph nodes, edges and the stat/trait value types they carry."""

from .stats import Stat, StatCollection, StatModifier, StatModifierType
from .traits import StatEffect, Trait, TraitCollection, TraitInstance, trait_rule_source
from .entity import Entity, SocialEntity
from .relationship import Relationship

__all__ = [
    "Stat",
    "StatCollection",
    "StatModifier",
    "StatModifierType",
    "StatEffect",
    "Trait",
    "TraitCollection",
    "TraitInstance",
    "trait_rule_source",
    "Entity",
    "SocialEntity",
    "Relationship",
]
