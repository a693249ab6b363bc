"""Scripted host actions applied to an engine at given ticks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping

from tdrs.errors import ConfigurationError

if TYPE_CHECKING:
    from tdrs.engines.engine import SocialEngine


@dataclass(frozen=True)
class ScenarioStep:
    tick: int
    action: str
    args: Dict[str, Any] = field(default_factory=dict)

    def require(self, key: str) -> Any:
        if key not in self.args:
            raise ConfigurationError(f"Scenario step '{self.action}' at tick {self.tick} is missing '{key}'")
        return self.args[key]


@dataclass
class Scenario:
    name: str
    ticks: int
    steps: List[ScenarioStep]

    def steps_at(self, tick: int) -> List[ScenarioStep]:
        return [step for step in self.steps if step.tick == tick]


def _duration(step: ScenarioStep):
    raw = step.args.get("duration")
    return None if raw is None else int(raw)


def _add_trait(engine: "SocialEngine", step: ScenarioStep) -> str:
    entity, trait = step.require("entity"), step.require("trait")
    added = engine.add_trait_to_entity(entity, trait, _duration(step))
    return f"{entity} gains {trait}" if added else f"{entity} already has {trait} (or it conflicts)"


def _remove_trait(engine: "SocialEngine", step: ScenarioStep) -> str:
    entity, trait = step.require("entity"), step.require("trait")
    removed = engine.remove_trait_from_entity(entity, trait)
    return f"{entity} loses {trait}" if removed else f"{entity} does not have {trait}"


def _add_relationship_trait(engine: "SocialEngine", step: ScenarioStep) -> str:
    owner, target, trait = step.require("owner"), step.require("target"), step.require("trait")
    added = engine.add_trait_to_relationship(owner, target, trait, _duration(step))
    return f"{owner}->{target} gains {trait}" if added else f"{owner}->{target} already has {trait}"


def _remove_relationship_trait(engine: "SocialEngine", step: ScenarioStep) -> str:
    owner, target, trait = step.require("owner"), step.require("target"), step.require("trait")
    removed = engine.remove_trait_from_relationship(owner, target, trait)
    return f"{owner}->{target} loses {trait}" if removed else f"{owner}->{target} does not have {trait}"


def _relationship(engine: "SocialEngine", step: ScenarioStep) -> str:
    relationship = engine.get_or_create_relationship(step.require("owner"), step.require("target"))
    return f"{relationship.uid} is known ({len(relationship.active_rules)} active rules)"


def _add_social_rule(engine: "SocialEngine", step: ScenarioStep) -> str:
    entity = step.require("entity")
    rule = engine.build_social_rule(step.require("rule"), source=step.args.get("source"))
    engine.add_social_rule(entity, rule)
    return f"{entity} follows rule {rule.rule_id}: {rule.summary()}"


def _remove_rules_from_source(engine: "SocialEngine", step: ScenarioStep) -> str:
    entity, source = step.require("entity"), step.require("source")
    removed = engine.remove_all_rules_from_source(entity, source)
    return f"{entity} drops {removed} rule(s) from {source}"


def _dispatch_event(engine: "SocialEngine", step: ScenarioStep) -> str:
    name = step.require("event")
    entities = step.require("entities")
    if not isinstance(entities, list):
        raise ConfigurationError(f"Scenario step 'dispatch_event' at tick {step.tick}: 'entities' must be a list")
    fired = engine.dispatch_event(name, *[str(item) for item in entities])
    event = engine.social_events.get_event(name)
    bindings = event.bind([str(item) for item in entities])
    return event.describe(bindings) if fired else f"{name} did not happen ({', '.join(map(str, entities))})"


ACTIONS: Dict[str, Callable[["SocialEngine", ScenarioStep], str]] = {
    "add_trait": _add_trait,
    "remove_trait": _remove_trait,
    "add_relationship_trait": _add_relationship_trait,
    "remove_relationship_trait": _remove_relationship_trait,
    "relationship": _relationship,
    "add_social_rule": _add_social_rule,
    "remove_rules_from_source": _remove_rules_from_source,
    "dispatch_event": _dispatch_event,
}


def apply_step(engine: "SocialEngine", step: ScenarioStep) -> str:
    return ACTIONS[step.action](engine, step)


def parse_scenario(payload: Mapping[str, Any]) -> Scenario:
    ticks = payload.get("ticks", 1)
    if not isinstance(ticks, int) or ticks < 0:
        raise ConfigurationError(f"Scenario 'ticks' must be a non-negative integer, got {ticks!r}")
    raw_steps = payload.get("steps") or []
    if not isinstance(raw_steps, list):
        raise ConfigurationError("Scenario 'steps' must be a list")
    steps: List[ScenarioStep] = []
    for raw in raw_steps:
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"Scenario step must be a mapping, got {raw!r}")
        action = raw.get("action")
        if action not in ACTIONS:
            raise ConfigurationError(f"Unknown scenario action {action!r}; expected one of {', '.join(ACTIONS)}")
        tick = raw.get("tick", 0)
        if not isinstance(tick, int) or tick < 0:
            raise ConfigurationError(f"Scenario step '{action}' has invalid tick {tick!r}")
        args = {key: value for key, value in raw.items() if key not in ("tick", "action")}
        steps.append(ScenarioStep(tick=tick, action=action, args=args))
    return Scenario(name=str(payload.get("name", "scenario")), ticks=ticks, steps=steps)
