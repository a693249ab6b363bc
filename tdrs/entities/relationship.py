from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from tdrs.entities.entity import SocialEntity
from tdrs.entities.stats import StatChangeHandler
from tdrs.ids import relationship_uid

if TYPE_CHECKING:
    from tdrs.world.rules.social import SocialRule


class Relationship(SocialEntity):
    """Directed edge owner -> target with its own stats, traits and active rules."""

    def __init__(
        self,
        owner_id: str,
        target_id: str,
        *,
        on_stat_change: Optional[StatChangeHandler] = None,
    ) -> None:
        super().__init__(relationship_uid(owner_id, target_id), on_stat_change=on_stat_change)
        self.owner_id = owner_id
        self.target_id = target_id
        self.active_rules: List["SocialRule"] = []
        # Rules whose effects are being applied or withdrawn on this edge right now.
        self.pending_rules: List["SocialRule"] = []

    def is_rule_active(self, rule: "SocialRule") -> bool:
        return any(active is rule for active in self.active_rules)

    def mark_active(self, rule: "SocialRule") -> None:
        if not self.is_rule_active(rule):
            self.active_rules.append(rule)

    def mark_inactive(self, rule: "SocialRule") -> None:
        self.active_rules = [active for active in self.active_rules if active is not rule]
