from __future__ import annotations

from typing import Dict, List

import pytest

from tdrs.config import EngineConfig
from tdrs.engines import SocialEngine
from tdrs.events import Notification


TEST_DEFINITIONS: Dict[str, list] = {
    "traits": [
        {"id": "friendly", "display_name": "Friendly", "effects": ["AddTrait self kind"],
         "stats_effects": [{"stat": "Reputation", "value": 5}]},
        {"id": "kind", "display_name": "Kind"},
        {"id": "happy"},
        {"id": "student"},
        {
            "id": "mentor",
            "social_rules": [
                {
                    "description": "mentors look after their students",
                    "preconditions": [{"type": "TargetHasTrait", "trait": "student"}],
                    "effects": ["IncreaseStat self Affection 5"],
                }
            ],
        },
        {"id": "friends", "conflicts_with": ["rival"], "stats_effects": [{"stat": "Affection", "value": 10}]},
        {"id": "rival", "stats_effects": [{"stat": "Affection", "value": -10}]},
        {"id": "embarrassed", "duration": 2, "stats_effects": [{"stat": "Reputation", "value": -10}]},
        {"id": "charismatic"},
        {
            "id": "celebrity",
            "stats_effects": [{"stat": "Reputation", "value": 0.5, "type": "percent"}],
            "effects": ["AddTrait self charismatic"],
            "remove_effects": ["RemoveTrait self charismatic"],
        },
    ],
    "social_events": [
        {
            "name": "insult",
            "roles": ["?a", "?b"],
            "description": "?a insulted ?b",
            "preconditions": [
                {"type": "Not", "precondition": {"type": "EntityHasTrait", "entity": "?a", "trait": "kind"}}
            ],
            "effects": ["IncreaseRelationshipStat ?b ?a Affection -20 3", "AddTrait ?b embarrassed"],
        }
    ],
}


@pytest.fixture()
def engine() -> SocialEngine:
    """Engine with default stats and no definitions loaded."""
    return SocialEngine(EngineConfig(definitions=[]))


@pytest.fixture()
def loaded_engine(engine: SocialEngine) -> SocialEngine:
    engine.load_definitions(TEST_DEFINITIONS, origin="test")
    return engine


@pytest.fixture()
def notifications(loaded_engine: SocialEngine) -> List[Notification]:
    received: List[Notification] = []
    loaded_engine.subscribe(None, received.append)
    return received
