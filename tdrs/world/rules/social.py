"""Social rules and their reactive propagation over the graph.

A rule registered on an entity applies to that entity's outgoing (or
incoming) relationships. For every relationship the set of active rules is
kept equal to the rules whose preconditions currently hold: rules are
(re)evaluated when a relationship is created, when a rule is added or
removed, and whenever a trait changes on the relationship or either endpoint.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, List, Tuple

from tdrs.entities.entity import Entity
from tdrs.entities.relationship import Relationship
from tdrs.events import NotificationKind
from tdrs.ids import new_rule_id
from tdrs.world.rules.context import EffectContext
from tdrs.world.rules.effects import Effect
from tdrs.world.rules.preconditions import Precondition

if TYPE_CHECKING:
    from tdrs.engines.engine import SocialEngine


logger = logging.getLogger(__name__)


@dataclass(eq=False)
class SocialRule:
    preconditions: Tuple[Precondition, ...] = ()
    effects: Tuple[Effect, ...] = ()
    is_outgoing: bool = True
    source: object = None
    description: str = ""
    rule_id: str = field(default_factory=new_rule_id)

    def check_preconditions(self, ctx: EffectContext) -> bool:
        return all(precondition.evaluate(ctx) for precondition in self.preconditions)

    def on_add(self, ctx: EffectContext) -> None:
        for effect in self.effects:
            effect.apply(ctx)

    def on_remove(self, ctx: EffectContext) -> None:
        for effect in reversed(self.effects):
            effect.remove(ctx)

    def summary(self) -> str:
        if self.description:
            return self.description
        direction = "outgoing" if self.is_outgoing else "incoming"
        conditions = " and ".join(p.description for p in self.preconditions) or "always"
        effects = ", ".join(e.description for e in self.effects)
        return f"[{direction}] if {conditions}: {effects}"


@dataclass(frozen=True)
class RuleActivation:
    """Source tag for the effects of one rule on one relationship."""

    rule: SocialRule
    relationship_uid: str


def rule_context(engine: "SocialEngine", rule: SocialRule, relationship: Relationship) -> EffectContext:
    return EffectContext(
        engine=engine,
        target=relationship,
        source=RuleActivation(rule, relationship.uid),
        description=rule.description,
    )


@contextmanager
def _transition(relationship: Relationship, rule: SocialRule) -> Iterator[None]:
    relationship.pending_rules.append(rule)
    try:
        yield
    finally:
        relationship.pending_rules = [pending for pending in relationship.pending_rules if pending is not rule]


def _in_transition(relationship: Relationship, rule: SocialRule) -> bool:
    return any(pending is rule for pending in relationship.pending_rules)


def activate_rule(engine: "SocialEngine", rule: SocialRule, relationship: Relationship) -> None:
    with _transition(relationship, rule):
        relationship.mark_active(rule)
        rule.on_add(rule_context(engine, rule, relationship))
    logger.debug(
        "tdrs.rule.activated",
        extra={"rule_id": rule.rule_id, "relationship": relationship.uid},
    )


def deactivate_rule(engine: "SocialEngine", rule: SocialRule, relationship: Relationship) -> None:
    with _transition(relationship, rule):
        rule.on_remove(rule_context(engine, rule, relationship))
        relationship.mark_inactive(rule)
    logger.debug(
        "tdrs.rule.deactivated",
        extra={"rule_id": rule.rule_id, "relationship": relationship.uid},
    )


def evaluate_rule(engine: "SocialEngine", rule: SocialRule, relationship: Relationship) -> bool:
    """Bring one (relationship, rule) pair in line with its preconditions.

    Returns whether the rule is active afterwards.
    """
    if _in_transition(relationship, rule):
        return relationship.is_rule_active(rule)
    holds = rule.check_preconditions(rule_context(engine, rule, relationship))
    active = relationship.is_rule_active(rule)
    if holds and not active:
        activate_rule(engine, rule, relationship)
    elif not holds and active:
        deactivate_rule(engine, rule, relationship)
    return holds


def candidate_rules(engine: "SocialEngine", relationship: Relationship) -> List[SocialRule]:
    owner = engine.get_entity(relationship.owner_id)
    target = engine.get_entity(relationship.target_id)
    outgoing = [rule for rule in owner.social_rules if rule.is_outgoing]
    incoming = [rule for rule in target.social_rules if not rule.is_outgoing]
    return outgoing + incoming


def refresh_relationship(engine: "SocialEngine", relationship: Relationship) -> None:
    candidates = candidate_rules(engine, relationship)
    for rule in candidates:
        evaluate_rule(engine, rule, relationship)
    for rule in list(relationship.active_rules):
        if not any(candidate is rule for candidate in candidates) and not _in_transition(relationship, rule):
            deactivate_rule(engine, rule, relationship)


def refresh_entity(engine: "SocialEngine", entity: Entity) -> None:
    """Re-run rule evaluation across every relationship touching ``entity``."""
    seen = set()
    for relationship in engine.graph.outgoing(entity.uid) + engine.graph.incoming(entity.uid):
        if relationship.uid in seen:
            continue
        seen.add(relationship.uid)
        refresh_relationship(engine, relationship)


def _adjacent(engine: "SocialEngine", entity: Entity, rule: SocialRule) -> List[Relationship]:
    if rule.is_outgoing:
        return engine.graph.outgoing(entity.uid)
    return engine.graph.incoming(entity.uid)


def add_social_rule(engine: "SocialEngine", entity: Entity, rule: SocialRule) -> bool:
    if entity.has_social_rule(rule):
        logger.debug("tdrs.rule.duplicate", extra={"entity": entity.uid, "rule_id": rule.rule_id})
        return False
    entity.social_rules.append(rule)
    for relationship in _adjacent(engine, entity, rule):
        evaluate_rule(engine, rule, relationship)
    logger.info(
        "tdrs.rule.added",
        extra={"entity": entity.uid, "rule_id": rule.rule_id, "outgoing": rule.is_outgoing},
    )
    engine.bus.emit(NotificationKind.SOCIAL_RULE_ADDED, entity.uid, rule.rule_id)
    return True


def remove_social_rule(engine: "SocialEngine", entity: Entity, rule: SocialRule) -> bool:
    if not entity.has_social_rule(rule):
        return False
    for relationship in _adjacent(engine, entity, rule):
        if relationship.is_rule_active(rule):
            deactivate_rule(engine, rule, relationship)
    entity.social_rules = [existing for existing in entity.social_rules if existing is not rule]
    logger.info("tdrs.rule.removed", extra={"entity": entity.uid, "rule_id": rule.rule_id})
    engine.bus.emit(NotificationKind.SOCIAL_RULE_REMOVED, entity.uid, rule.rule_id)
    return True


def remove_all_rules_from_source(engine: "SocialEngine", entity: Entity, source: object) -> int:
    removed = 0
    for rule in list(entity.social_rules):
        if rule.source == source and remove_social_rule(engine, entity, rule):
            removed += 1
    return removed
