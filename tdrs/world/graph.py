from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from tdrs.config import StatConfig
from tdrs.entities import Entity, Relationship, SocialEntity
from tdrs.errors import EntityNotFoundError, RelationshipNotFoundError
from tdrs.ids import RELATIONSHIP_SEPARATOR, relationship_uid


logger = logging.getLogger(__name__)

StatChangeSink = Callable[[str, str, float], None]


class SocialGraph:
    """Single owner of every entity and relationship.

    Entities keep adjacency as identifier lists; relationships are looked up
    here by ``(owner_id, target_id)``.
    """

    def __init__(
        self,
        entity_stats: Sequence[StatConfig] = (),
        relationship_stats: Sequence[StatConfig] = (),
        on_stat_change: Optional[StatChangeSink] = None,
    ) -> None:
        self.entity_stats = list(entity_stats)
        self.relationship_stats = list(relationship_stats)
        self.on_stat_change = on_stat_change
        self._entities: Dict[str, Entity] = {}
        self._relationships: Dict[Tuple[str, str], Relationship] = {}

    def has_entity(self, entity_id: str) -> bool:
        return entity_id in self._entities

    def has_relationship(self, owner_id: str, target_id: str) -> bool:
        return (owner_id, target_id) in self._relationships

    def get_entity(self, entity_id: str) -> Entity:
        try:
            return self._entities[entity_id]
        except KeyError:
            raise EntityNotFoundError(f"Unknown entity '{entity_id}'") from None

    def get_relationship(self, owner_id: str, target_id: str) -> Relationship:
        try:
            return self._relationships[(owner_id, target_id)]
        except KeyError:
            raise RelationshipNotFoundError(f"No relationship from '{owner_id}' to '{target_id}'") from None

    def find_holder(self, uid: str) -> Optional[SocialEntity]:
        """Entity or relationship with this uid, or None."""
        if uid in self._entities:
            return self._entities[uid]
        owner_id, separator, target_id = uid.partition(RELATIONSHIP_SEPARATOR)
        if not separator:
            return None
        return self._relationships.get((owner_id, target_id))

    def create_entity(self, entity_id: str) -> Entity:
        if entity_id in self._entities:
            return self._entities[entity_id]
        entity = Entity(entity_id, on_stat_change=self._stat_sink(entity_id))
        for stat_config in self.entity_stats:
            entity.stats.add_stat(stat_config.name, stat_config.build())
        self._entities[entity_id] = entity
        logger.debug("tdrs.graph.entity_created", extra={"entity": entity_id})
        return entity

    def create_relationship(self, owner_id: str, target_id: str) -> Relationship:
        """Create the owner -> target edge (and both endpoints) without evaluating rules."""
        key = (owner_id, target_id)
        if key in self._relationships:
            return self._relationships[key]
        owner = self.create_entity(owner_id)
        target = self.create_entity(target_id)
        relationship = Relationship(
            owner_id, target_id, on_stat_change=self._stat_sink(relationship_uid(owner_id, target_id))
        )
        for stat_config in self.relationship_stats:
            relationship.stats.add_stat(stat_config.name, stat_config.build())
        self._relationships[key] = relationship
        owner.outgoing_ids.append(target_id)
        target.incoming_ids.append(owner_id)
        logger.debug("tdrs.graph.relationship_created", extra={"relationship": relationship.uid})
        return relationship

    def outgoing(self, entity_id: str) -> List[Relationship]:
        entity = self.get_entity(entity_id)
        return [self._relationships[(entity_id, target_id)] for target_id in entity.outgoing_ids]

    def incoming(self, entity_id: str) -> List[Relationship]:
        entity = self.get_entity(entity_id)
        return [self._relationships[(owner_id, entity_id)] for owner_id in entity.incoming_ids]

    def entities(self) -> Iterator[Entity]:
        return iter(list(self._entities.values()))

    def relationships(self) -> Iterator[Relationship]:
        return iter(list(self._relationships.values()))

    def entity_count(self) -> int:
        return len(self._entities)

    def relationship_count(self) -> int:
        return len(self._relationships)

    def _stat_sink(self, subject: str) -> Callable[[str, float], None]:
        def handler(stat_name: str, value: float) -> None:
            if self.on_stat_change is not None:
                self.on_stat_change(subject, stat_name, value)

        return handler
