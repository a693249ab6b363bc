from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from tdrs.entities.stats import StatChangeHandler, StatCollection
from tdrs.entities.traits import TraitCollection

if TYPE_CHECKING:
    from tdrs.world.rules.social import SocialRule


class SocialEntity:
    """Shared state of graph nodes and edges: stats and traits."""

    def __init__(self, uid: str, *, on_stat_change: Optional[StatChangeHandler] = None) -> None:
        self.uid = uid
        self.stats = StatCollection(on_change=on_stat_change)
        self.traits = TraitCollection()

    def has_trait(self, trait_id: str) -> bool:
        return self.traits.has_trait(trait_id)

    def get_stat_value(self, stat_name: str) -> float:
        return self.stats.get_value(stat_name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.uid!r}, traits={self.traits.ids()})"


class Entity(SocialEntity):
    """A node in the social graph (character, faction, concept).

    Adjacency is held as entity identifiers; the graph store resolves them to
    relationship objects.
    """

    def __init__(self, entity_id: str, *, on_stat_change: Optional[StatChangeHandler] = None) -> None:
        super().__init__(entity_id, on_stat_change=on_stat_change)
        self.social_rules: List["SocialRule"] = []
        self.outgoing_ids: List[str] = []
        self.incoming_ids: List[str] = []

    @property
    def entity_id(self) -> str:
        return self.uid

    def has_social_rule(self, rule: "SocialRule") -> bool:
        return any(existing is rule for existing in self.social_rules)

    def rules_from_source(self, source: object) -> List["SocialRule"]:
        return [rule for rule in self.social_rules if rule.source == source]

    def find_social_rule(self, rule_id: str) -> Optional["SocialRule"]:
        for rule in self.social_rules:
            if rule.rule_id == rule_id:
                return rule
        return None
