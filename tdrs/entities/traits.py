from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterator, List, Optional, Tuple

from tdrs.entities.stats import StatModifierType

if TYPE_CHECKING:
    from tdrs.world.rules.effects import Effect
    from tdrs.world.rules.social import SocialRule


@dataclass(frozen=True)
class StatEffect:
    stat: str
    value: float
    modifier_type: StatModifierType = StatModifierType.FLAT
    duration: int = -1


@dataclass(frozen=True)
class Trait:
    """Library-defined template shared by every holder of the trait."""

    trait_id: str
    display_name: str
    description: str = ""
    effects: Tuple["Effect", ...] = ()
    remove_effects: Optional[Tuple["Effect", ...]] = None
    stat_effects: Tuple[StatEffect, ...] = ()
    social_rules: Tuple["SocialRule", ...] = ()
    conflicts_with: FrozenSet[str] = frozenset()
    duration: int = -1

    @property
    def rule_source(self) -> str:
        return trait_rule_source(self.trait_id)

    def conflicts(self, other_id: str) -> bool:
        return other_id in self.conflicts_with


def trait_rule_source(trait_id: str) -> str:
    return f"trait:{trait_id}"


@dataclass(eq=False)
class TraitInstance:
    """A trait attached to one holder, with its own remaining duration."""

    trait: Trait
    duration: int = -1
    description: str = field(default="")

    @property
    def trait_id(self) -> str:
        return self.trait.trait_id

    @property
    def is_permanent(self) -> bool:
        return self.duration < 0


class TraitCollection:
    def __init__(self) -> None:
        self._traits: Dict[str, TraitInstance] = {}

    def has_trait(self, trait_id: str) -> bool:
        return trait_id in self._traits

    def get(self, trait_id: str) -> Optional[TraitInstance]:
        return self._traits.get(trait_id)

    def add(self, instance: TraitInstance) -> None:
        self._traits[instance.trait_id] = instance

    def remove(self, trait_id: str) -> Optional[TraitInstance]:
        return self._traits.pop(trait_id, None)

    def conflicts_with(self, trait: Trait) -> List[str]:
        return [
            held_id
            for held_id, instance in self._traits.items()
            if trait.conflicts(held_id) or instance.trait.conflicts(trait.trait_id)
        ]

    def ids(self) -> List[str]:
        return list(self._traits)

    def tick(self) -> List[str]:
        """Decay timed traits and return the ids that reached zero."""
        expired: List[str] = []
        for trait_id, instance in self._traits.items():
            if instance.duration > 0:
                instance.duration -= 1
                if instance.duration == 0:
                    expired.append(trait_id)
        return expired

    def __contains__(self, trait_id: object) -> bool:
        return trait_id in self._traits

    def __iter__(self) -> Iterator[TraitInstance]:
        return iter(list(self._traits.values()))

    def __len__(self) -> int:
        return len(self._traits)
