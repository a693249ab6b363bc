"""The host-facing social engine.

One ``SocialEngine`` owns a graph store, a notification bus, the factory
registries and the trait and social-event libraries. Every mutation runs to
completion, including the rule re-scan it triggers, before the call returns.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from pydantic import ValidationError

from tdrs.config import EngineConfig
from tdrs.entities import Entity, Relationship, SocialEntity, StatModifier, TraitInstance
from tdrs.errors import ConfigurationError, NotFoundError
from tdrs.events import Notification, NotificationBus, NotificationHandler, NotificationKind
from tdrs.ids import new_rule_id, validate_entity_id
from tdrs.world.definitions import SocialRuleDefinition, parse_document
from tdrs.world.graph import SocialGraph
from tdrs.world.library import SocialEventLibrary, TraitLibrary, build_social_rule, load_document
from tdrs.world.loaders import expand_paths, read_definitions
from tdrs.world.rules import (
    EffectContext,
    EffectLibrary,
    PreconditionLibrary,
    SocialRule,
    refresh_entity,
    refresh_relationship,
    register_default_factories,
)
from tdrs.world.rules import social as social_rules
from tdrs.world.rules.effects import referenced_trait


logger = logging.getLogger(__name__)

EntityRef = Union[str, Entity]


class SocialEngine:
    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()
        self.bus = NotificationBus()
        self.graph = SocialGraph(
            entity_stats=self.config.entity_stats,
            relationship_stats=self.config.relationship_stats,
            on_stat_change=self._on_stat_change,
        )
        self.preconditions = PreconditionLibrary()
        self.effects = EffectLibrary()
        register_default_factories(self.preconditions, self.effects)
        self.traits = TraitLibrary()
        self.social_events = SocialEventLibrary()
        self.tick_count = 0
        # (holder uid, trait id) pairs whose attach or detach is running.
        self._in_flight: Set[Tuple[str, str]] = set()
        # (holder uid, trait id) -> sources whose effects granted the trait.
        self._trait_grants: Dict[Tuple[str, str], List[object]] = {}
        # Holders whose stats moved and whose rules still need re-evaluating.
        self._stale: List[str] = []
        self._draining = False

    @classmethod
    def from_config(cls, config: EngineConfig) -> "SocialEngine":
        """Build an engine and load every definition document named by ``config``."""
        engine = cls(config)
        engine.load_definition_files(config.definitions)
        return engine

    # ------------------------------------------------------------------
    # Graph store
    # ------------------------------------------------------------------
    def get_entity(self, entity_id: str) -> Entity:
        return self.graph.get_entity(entity_id)

    def get_relationship(self, owner_id: str, target_id: str) -> Relationship:
        return self.graph.get_relationship(owner_id, target_id)

    def get_or_create_entity(self, entity_id: str) -> Entity:
        return self.graph.create_entity(validate_entity_id(entity_id))

    def get_or_create_relationship(self, owner_id: str, target_id: str) -> Relationship:
        owner_id = validate_entity_id(owner_id)
        target_id = validate_entity_id(target_id)
        if self.graph.has_relationship(owner_id, target_id):
            return self.graph.get_relationship(owner_id, target_id)
        relationship = self.graph.create_relationship(owner_id, target_id)
        refresh_relationship(self, relationship)
        return relationship

    # ------------------------------------------------------------------
    # Traits
    # ------------------------------------------------------------------
    def add_trait(self, holder: SocialEntity, trait_id: str, duration: Optional[int] = None) -> bool:
        """Attach ``trait_id`` to an entity or relationship.

        Returns ``False`` when the holder already has the trait or holds a
        conflicting one. Unknown trait ids raise ``TraitNotFoundError``.
        """
        trait = self.traits.get_trait(trait_id)
        key = (holder.uid, trait_id)
        if holder.has_trait(trait_id) or key in self._in_flight:
            return False
        conflicts = holder.traits.conflicts_with(trait)
        if conflicts:
            logger.warning(
                "tdrs.trait.refused",
                extra={"holder": holder.uid, "trait": trait_id, "conflicts": conflicts},
            )
            return False

        instance = TraitInstance(trait, duration=trait.duration if duration is None else duration)
        ctx = self._trait_context(holder, instance)
        self._in_flight.add(key)
        try:
            for effect in trait.effects:
                effect.apply(ctx)
            for stat_effect in trait.stat_effects:
                holder.stats.add_modifier(
                    StatModifier(
                        stat=stat_effect.stat,
                        reason=ctx.description,
                        value=stat_effect.value,
                        modifier_type=stat_effect.modifier_type,
                        duration=stat_effect.duration,
                        source=instance,
                    )
                )
            holder.traits.add(instance)
        finally:
            self._in_flight.discard(key)

        logger.info("tdrs.trait.added", extra={"holder": holder.uid, "trait": trait_id, "duration": instance.duration})
        self.bus.emit(NotificationKind.TRAIT_ADDED, holder.uid, trait_id)
        if isinstance(holder, Relationship) and trait.social_rules:
            logger.warning(
                "tdrs.trait.rules_ignored",
                extra={"holder": holder.uid, "trait": trait_id, "rules": len(trait.social_rules)},
            )
        elif isinstance(holder, Entity):
            for template in trait.social_rules:
                social_rules.add_social_rule(self, holder, replace(template, rule_id=new_rule_id(trait_id)))
        self._refresh(holder)
        self._drain_stale()
        return True

    def remove_trait(self, holder: SocialEntity, trait_id: str) -> bool:
        """Detach ``trait_id``. Returns ``False`` when the holder does not have it."""
        instance = holder.traits.get(trait_id)
        key = (holder.uid, trait_id)
        if instance is None or key in self._in_flight:
            return False
        trait = instance.trait

        self.bus.emit(NotificationKind.TRAIT_REMOVED, holder.uid, trait_id)
        ctx = self._trait_context(holder, instance)
        self._in_flight.add(key)
        try:
            if trait.remove_effects is not None:
                for effect in trait.remove_effects:
                    effect.apply(ctx)
            else:
                for effect in reversed(trait.effects):
                    effect.remove(ctx)
            holder.stats.remove_modifiers_from_source(instance)
            holder.traits.remove(trait_id)
        finally:
            self._in_flight.discard(key)
        self._trait_grants.pop(key, None)

        logger.info("tdrs.trait.removed", extra={"holder": holder.uid, "trait": trait_id})
        if isinstance(holder, Entity):
            social_rules.remove_all_rules_from_source(self, holder, trait.rule_source)
        self._refresh(holder)
        self._drain_stale()
        return True

    def grant_trait(
        self, holder: SocialEntity, trait_id: str, source: object, duration: Optional[int] = None
    ) -> bool:
        """Add ``trait_id`` on behalf of ``source``.

        Several sources may grant the same trait; it is removed only once the
        last of them revokes it. A trait the holder already had from elsewhere
        is left alone and is not recorded as granted.
        """
        key = (holder.uid, trait_id)
        granted = self._trait_grants.get(key)
        if granted and holder.has_trait(trait_id):
            granted.append(source)
            return False
        if not self.add_trait(holder, trait_id, duration) or not holder.has_trait(trait_id):
            return False
        self._trait_grants.setdefault(key, []).append(source)
        return True

    def revoke_trait(self, holder: SocialEntity, trait_id: str, source: object) -> bool:
        """Withdraw the grant made by ``source``. Returns True if the trait was removed."""
        key = (holder.uid, trait_id)
        granted = self._trait_grants.get(key)
        if not granted or source not in granted:
            return False
        granted.remove(source)
        if granted:
            return False
        del self._trait_grants[key]
        return self.remove_trait(holder, trait_id)

    def add_trait_to_entity(self, entity_id: str, trait_id: str, duration: Optional[int] = None) -> bool:
        return self.add_trait(self.get_or_create_entity(entity_id), trait_id, duration)

    def remove_trait_from_entity(self, entity_id: str, trait_id: str) -> bool:
        return self.remove_trait(self.get_entity(entity_id), trait_id)

    def add_trait_to_relationship(
        self, owner_id: str, target_id: str, trait_id: str, duration: Optional[int] = None
    ) -> bool:
        return self.add_trait(self.get_or_create_relationship(owner_id, target_id), trait_id, duration)

    def remove_trait_from_relationship(self, owner_id: str, target_id: str, trait_id: str) -> bool:
        return self.remove_trait(self.get_relationship(owner_id, target_id), trait_id)

    def _trait_context(self, holder: SocialEntity, instance: TraitInstance) -> EffectContext:
        return EffectContext(
            engine=self,
            target=holder,
            source=instance,
            description=instance.description or f"trait {instance.trait.display_name}",
        )

    def _refresh(self, holder: SocialEntity) -> None:
        if isinstance(holder, Relationship):
            refresh_relationship(self, holder)
        elif isinstance(holder, Entity):
            refresh_entity(self, holder)

    # ------------------------------------------------------------------
    # Social rules
    # ------------------------------------------------------------------
    def _resolve_entity(self, entity: EntityRef) -> Entity:
        if isinstance(entity, Entity):
            return entity
        return self.get_or_create_entity(entity)

    def build_social_rule(self, node: Union[Mapping[str, object], SocialRuleDefinition], source: Optional[str] = None) -> SocialRule:
        """Build a rule from a declarative rule node against the registered factories."""
        if isinstance(node, SocialRuleDefinition):
            definition = node
        else:
            try:
                definition = SocialRuleDefinition.model_validate(node)
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid social rule definition\n{exc}") from exc
        rule = build_social_rule(definition, self.preconditions, self.effects, source=source)
        for effect in rule.effects:
            trait_id = referenced_trait(effect)
            if trait_id is not None and trait_id not in self.traits:
                raise ConfigurationError(f"Social rule references unknown trait '{trait_id}'")
        return rule

    def add_social_rule(self, entity: EntityRef, rule: SocialRule) -> bool:
        return social_rules.add_social_rule(self, self._resolve_entity(entity), rule)

    def remove_social_rule(self, entity: EntityRef, rule: Union[SocialRule, str]) -> bool:
        """Unregister ``rule`` (or the rule with that id) from ``entity``."""
        holder = self._resolve_entity(entity)
        if isinstance(rule, str):
            found = holder.find_social_rule(rule)
            if found is None:
                raise NotFoundError(f"Entity '{holder.uid}' has no social rule '{rule}'")
            rule = found
        return social_rules.remove_social_rule(self, holder, rule)

    def remove_all_rules_from_source(self, entity: EntityRef, source: object) -> int:
        return social_rules.remove_all_rules_from_source(self, self._resolve_entity(entity), source)

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------
    def load_definitions(self, tree: object, *, origin: str = "<document>") -> Tuple[List[str], List[str]]:
        """Load an already-parsed definition tree. Nothing is committed if any node fails."""
        document = parse_document(tree, origin=origin)
        return load_document(
            document,
            traits=self.traits,
            social_events=self.social_events,
            preconditions=self.preconditions,
            effects=self.effects,
            origin=origin,
        )

    def load_definition_files(self, paths: Iterable[Union[str, Path]]) -> None:
        for path in expand_paths(list(paths)):
            self.load_definitions(read_definitions(path), origin=str(path))

    # ------------------------------------------------------------------
    # Social events
    # ------------------------------------------------------------------
    def dispatch_event(self, name: str, *entity_ids: str) -> bool:
        """Fire social event ``name`` with its roles bound to ``entity_ids`` in order.

        Returns ``False`` without applying anything if a precondition fails.
        """
        event = self.social_events.get_event(name)
        ids = [validate_entity_id(entity_id) for entity_id in entity_ids]
        bindings = event.bind(ids)
        for entity_id in ids:
            self.get_or_create_entity(entity_id)
        ctx = EffectContext(
            engine=self,
            source=event,
            bindings=bindings,
            description=event.describe(bindings),
            revocable=False,
        )
        if not all(precondition.evaluate(ctx) for precondition in event.preconditions):
            logger.debug("tdrs.event.skipped", extra={"event": name, "bindings": bindings})
            return False
        for effect in event.effects:
            effect.apply(ctx)
        logger.info("tdrs.event.dispatched", extra={"event": name, "bindings": bindings})
        self.bus.emit(
            NotificationKind.SOCIAL_EVENT_DISPATCHED,
            ids[0] if ids else name,
            {"event": name, "bindings": dict(bindings), "description": ctx.description},
        )
        return True

    # ------------------------------------------------------------------
    # Time and notifications
    # ------------------------------------------------------------------
    def subscribe(self, kind: Optional[NotificationKind], handler: NotificationHandler):
        return self.bus.subscribe(kind, handler)

    def tick(self) -> int:
        """Advance one time-step and return its index."""
        self.tick_count += 1
        holders: List[SocialEntity] = list(self.graph.entities())
        holders.extend(self.graph.relationships())
        for holder in holders:
            holder.stats.tick()
        for holder in holders:
            for trait_id in holder.traits.tick():
                self.remove_trait(holder, trait_id)
        for holder in holders:
            self.bus.emit(NotificationKind.TICK_COMPLETED, holder.uid, self.tick_count)
        logger.info("tdrs.tick.completed", extra={"tick": self.tick_count, "holders": len(holders)})
        return self.tick_count

    def _on_stat_change(self, subject: str, stat_name: str, value: float) -> None:
        self.bus.publish(Notification(NotificationKind.STAT_CHANGED, subject, (stat_name, value)))
        if subject not in self._stale:
            self._stale.append(subject)
        self._drain_stale()

    def _drain_stale(self) -> None:
        """Re-evaluate rules around holders whose stats changed.

        Deferred while a trait attach or detach is running. Each holder is
        refreshed at most once per drain, so a rule whose own effects flip its
        preconditions keeps the state its last evaluation produced.
        """
        if self._draining or self._in_flight:
            return
        self._draining = True
        refreshed: Set[str] = set()
        try:
            while self._stale:
                uid = self._stale.pop(0)
                if uid in refreshed:
                    continue
                refreshed.add(uid)
                holder = self.graph.find_holder(uid)
                if holder is not None:
                    self._refresh(holder)
        finally:
            self._draining = False


__all__ = ["SocialEngine"]
