from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from tdrs.entities import Entity, Relationship, SocialEntity
from tdrs.world.rules import SocialRule


class TraitAttachRequest(BaseModel):
    trait_id: str = Field(min_length=1)
    duration: Optional[int] = Field(default=None, description="Ticks the trait lasts; omitted uses the trait default")

    @field_validator("duration")
    @classmethod
    def _check_duration(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and (value == 0 or value < -1):
            raise ValueError("duration must be -1 (permanent) or a positive number of ticks")
        return value


class SocialRuleRequest(BaseModel):
    """Declarative rule node, the same shape a definition document uses."""

    description: str = ""
    outgoing: bool = True
    preconditions: List[Dict[str, Any]] = Field(default_factory=list)
    effects: List[str] = Field(min_length=1)
    source: Optional[str] = None


class SocialEventRequest(BaseModel):
    entities: List[str] = Field(min_length=1, description="Entity ids bound to the event roles in order")


class MutationResult(BaseModel):
    changed: bool
    subject: str


class RuleSummary(BaseModel):
    rule_id: str
    direction: Literal["outgoing", "incoming"]
    source: Optional[str] = None
    summary: str

    @classmethod
    def from_rule(cls, rule: SocialRule) -> "RuleSummary":
        return cls(
            rule_id=rule.rule_id,
            direction="outgoing" if rule.is_outgoing else "incoming",
            source=rule.source if isinstance(rule.source, str) else None,
            summary=rule.summary(),
        )


class TraitState(BaseModel):
    trait_id: str
    display_name: str
    remaining: int


def _traits(holder: SocialEntity) -> List[TraitState]:
    return [
        TraitState(trait_id=instance.trait_id, display_name=instance.trait.display_name, remaining=instance.duration)
        for instance in holder.traits
    ]


class EntityState(BaseModel):
    entity_id: str
    stats: Dict[str, float]
    traits: List[TraitState]
    rules: List[RuleSummary]
    outgoing: List[str]
    incoming: List[str]

    @classmethod
    def from_entity(cls, entity: Entity) -> "EntityState":
        return cls(
            entity_id=entity.uid,
            stats=entity.stats.values(),
            traits=_traits(entity),
            rules=[RuleSummary.from_rule(rule) for rule in entity.social_rules],
            outgoing=list(entity.outgoing_ids),
            incoming=list(entity.incoming_ids),
        )


class RelationshipState(BaseModel):
    owner_id: str
    target_id: str
    stats: Dict[str, float]
    traits: List[TraitState]
    active_rules: List[str]

    @classmethod
    def from_relationship(cls, relationship: Relationship) -> "RelationshipState":
        return cls(
            owner_id=relationship.owner_id,
            target_id=relationship.target_id,
            stats=relationship.stats.values(),
            traits=_traits(relationship),
            active_rules=[rule.rule_id for rule in relationship.active_rules],
        )


class RulesRemoved(BaseModel):
    entity_id: str
    source: str
    removed: int


class EventResult(BaseModel):
    event: str
    fired: bool
    bindings: Dict[str, str]


class TickResult(BaseModel):
    tick: int
    entities: int
    relationships: int


class LibrarySummary(BaseModel):
    traits: List[str]
    social_events: List[str]
    precondition_factories: Tuple[str, ...]
    effect_factories: Tuple[str, ...]


__all__ = [
    "TraitAttachRequest",
    "SocialRuleRequest",
    "SocialEventRequest",
    "MutationResult",
    "RuleSummary",
    "TraitState",
    "EntityState",
    "RelationshipState",
    "RulesRemoved",
    "EventResult",
    "TickResult",
    "LibrarySummary",
]
