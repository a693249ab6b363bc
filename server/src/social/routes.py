from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import APIRouter, HTTPException, Query, status

from tdrs.engines import SocialEngine
from tdrs.errors import ConfigurationError, InvalidIdentifierError, NotFoundError
from tdrs.ids import validate_entity_id

from .schema import (
    EntityState,
    EventResult,
    LibrarySummary,
    MutationResult,
    RelationshipState,
    RuleSummary,
    RulesRemoved,
    SocialEventRequest,
    SocialRuleRequest,
    TickResult,
    TraitAttachRequest,
)


logger = logging.getLogger(__name__)


@contextmanager
def _engine_errors() -> Iterator[None]:
    try:
        yield
    except InvalidIdentifierError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


def build_social_router(engine: Optional[SocialEngine] = None) -> APIRouter:
    social = engine or SocialEngine()
    router = APIRouter(prefix="/api/social", tags=["social"])

    @router.get("/library", response_model=LibrarySummary)
    def library() -> LibrarySummary:
        return LibrarySummary(
            traits=social.traits.ids(),
            social_events=social.social_events.names(),
            precondition_factories=social.preconditions.names(),
            effect_factories=social.effects.names(),
        )

    @router.put("/entities/{entity_id}", response_model=EntityState)
    def ensure_entity(entity_id: str) -> EntityState:
        with _engine_errors():
            return EntityState.from_entity(social.get_or_create_entity(entity_id))

    @router.get("/entities/{entity_id}", response_model=EntityState)
    def get_entity(entity_id: str) -> EntityState:
        with _engine_errors():
            return EntityState.from_entity(social.get_entity(validate_entity_id(entity_id)))

    @router.post("/entities/{entity_id}/traits", response_model=MutationResult)
    def add_entity_trait(entity_id: str, payload: TraitAttachRequest) -> MutationResult:
        with _engine_errors():
            changed = social.add_trait_to_entity(entity_id, payload.trait_id, payload.duration)
        return MutationResult(changed=changed, subject=entity_id)

    @router.delete("/entities/{entity_id}/traits/{trait_id}", response_model=MutationResult)
    def remove_entity_trait(entity_id: str, trait_id: str) -> MutationResult:
        with _engine_errors():
            changed = social.remove_trait_from_entity(validate_entity_id(entity_id), trait_id)
        return MutationResult(changed=changed, subject=entity_id)

    @router.post("/entities/{entity_id}/rules", response_model=RuleSummary, status_code=status.HTTP_201_CREATED)
    def add_rule(entity_id: str, payload: SocialRuleRequest) -> RuleSummary:
        with _engine_errors():
            entity = social.get_or_create_entity(entity_id)
            rule = social.build_social_rule(payload.model_dump(), source=payload.source)
            social.add_social_rule(entity, rule)
        return RuleSummary.from_rule(rule)

    @router.delete("/entities/{entity_id}/rules/{rule_id}", response_model=MutationResult)
    def remove_rule(entity_id: str, rule_id: str) -> MutationResult:
        with _engine_errors():
            entity = social.get_entity(validate_entity_id(entity_id))
            changed = social.remove_social_rule(entity, rule_id)
        return MutationResult(changed=changed, subject=entity_id)

    @router.delete("/entities/{entity_id}/rules", response_model=RulesRemoved)
    def remove_rules_from_source(entity_id: str, source: str = Query(..., min_length=1)) -> RulesRemoved:
        with _engine_errors():
            entity = social.get_entity(validate_entity_id(entity_id))
            removed = social.remove_all_rules_from_source(entity, source)
        return RulesRemoved(entity_id=entity_id, source=source, removed=removed)

    @router.put("/relationships/{owner_id}/{target_id}", response_model=RelationshipState)
    def ensure_relationship(owner_id: str, target_id: str) -> RelationshipState:
        with _engine_errors():
            return RelationshipState.from_relationship(social.get_or_create_relationship(owner_id, target_id))

    @router.get("/relationships/{owner_id}/{target_id}", response_model=RelationshipState)
    def get_relationship(owner_id: str, target_id: str) -> RelationshipState:
        with _engine_errors():
            relationship = social.get_relationship(validate_entity_id(owner_id), validate_entity_id(target_id))
            return RelationshipState.from_relationship(relationship)

    @router.post("/relationships/{owner_id}/{target_id}/traits", response_model=MutationResult)
    def add_relationship_trait(owner_id: str, target_id: str, payload: TraitAttachRequest) -> MutationResult:
        with _engine_errors():
            changed = social.add_trait_to_relationship(owner_id, target_id, payload.trait_id, payload.duration)
        return MutationResult(changed=changed, subject=f"{owner_id}->{target_id}")

    @router.delete("/relationships/{owner_id}/{target_id}/traits/{trait_id}", response_model=MutationResult)
    def remove_relationship_trait(owner_id: str, target_id: str, trait_id: str) -> MutationResult:
        with _engine_errors():
            changed = social.remove_trait_from_relationship(
                validate_entity_id(owner_id), validate_entity_id(target_id), trait_id
            )
        return MutationResult(changed=changed, subject=f"{owner_id}->{target_id}")

    @router.post("/events/{name}", response_model=EventResult)
    def dispatch_event(name: str, payload: SocialEventRequest) -> EventResult:
        with _engine_errors():
            fired = social.dispatch_event(name, *payload.entities)
            bindings = social.social_events.get_event(name).bind(payload.entities)
        return EventResult(event=name, fired=fired, bindings=bindings)

    @router.post("/tick", response_model=TickResult)
    def tick() -> TickResult:
        index = social.tick()
        logger.debug("tdrs.api.tick", extra={"tick": index})
        return TickResult(
            tick=index,
            entities=social.graph.entity_count(),
            relationships=social.graph.relationship_count(),
        )

    return router


__all__ = ["build_social_router"]
