from fastapi import FastAPI
from fastapi.testclient import TestClient

from server.index import create_app
from server.src.social.routes import build_social_router
from tdrs.config import DEFAULT_DEFINITIONS, EngineConfig
from tdrs.engines import SocialEngine


def build_client() -> TestClient:
    engine = SocialEngine.from_config(EngineConfig(definitions=[DEFAULT_DEFINITIONS]))
    app = FastAPI()
    app.include_router(build_social_router(engine))
    return TestClient(app)


def test_health_reports_engine_state():
    engine = SocialEngine.from_config(EngineConfig(definitions=[DEFAULT_DEFINITIONS]))
    client = TestClient(create_app(engine))
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["traits"] == len(engine.traits)


def test_social_routes_flow():
    client = build_client()

    library = client.get("/api/social/library").json()
    assert "friendly" in library["traits"]
    assert "IncreaseStat" in library["effect_factories"]

    assert client.put("/api/social/entities/alice").status_code == 200
    added = client.post("/api/social/entities/alice/traits", json={"trait_id": "friendly"})
    assert added.status_code == 200
    assert added.json() == {"changed": True, "subject": "alice"}

    relationship = client.put("/api/social/relationships/alice/bob")
    assert relationship.status_code == 200
    assert relationship.json()["stats"]["Affection"] == 10
    assert len(relationship.json()["active_rules"]) == 1

    alice = client.get("/api/social/entities/alice").json()
    assert {trait["trait_id"] for trait in alice["traits"]} == {"friendly", "kind"}
    assert alice["outgoing"] == ["bob"]
    assert alice["rules"][0]["source"] == "trait:kind"

    removed = client.delete("/api/social/entities/alice/traits/friendly")
    assert removed.json()["changed"] is True
    after = client.get("/api/social/relationships/alice/bob").json()
    assert after["stats"]["Affection"] == 0
    assert after["active_rules"] == []


def test_rule_routes_add_and_remove():
    client = build_client()
    client.put("/api/social/relationships/alice/bob")
    created = client.post(
        "/api/social/entities/alice/rules",
        json={"effects": ["IncreaseStat self Interaction 3"], "source": "api", "description": "chatty"},
    )
    assert created.status_code == 201
    rule = created.json()
    assert rule["direction"] == "outgoing"
    assert rule["summary"] == "chatty"
    assert client.get("/api/social/relationships/alice/bob").json()["stats"]["Interaction"] == 3

    second = client.post("/api/social/entities/alice/rules", json={"effects": ["IncreaseStat self Interaction 1"], "source": "api"})
    assert second.status_code == 201
    bulk = client.delete("/api/social/entities/alice/rules", params={"source": "api"})
    assert bulk.json() == {"entity_id": "alice", "source": "api", "removed": 2}
    assert client.get("/api/social/relationships/alice/bob").json()["stats"]["Interaction"] == 0

    missing = client.delete(f"/api/social/entities/alice/rules/{rule['rule_id']}")
    assert missing.status_code == 404


def test_relationship_traits_events_and_tick():
    client = build_client()
    assert client.post("/api/social/relationships/alice/bob/traits", json={"trait_id": "friends"}).json()["changed"]
    refused = client.post("/api/social/relationships/alice/bob/traits", json={"trait_id": "rival"})
    assert refused.json()["changed"] is False

    event = client.post("/api/social/events/insult", json={"entities": ["bob", "alice"]})
    assert event.status_code == 200
    assert event.json() == {"event": "insult", "fired": True, "bindings": {"?a": "bob", "?b": "alice"}}
    assert client.get("/api/social/relationships/alice/bob").json()["stats"]["Affection"] == -10

    tick = client.post("/api/social/tick").json()
    assert tick == {"tick": 1, "entities": 2, "relationships": 1}
    traits = client.get("/api/social/entities/alice").json()["traits"]
    assert traits == [{"trait_id": "embarrassed", "display_name": "Embarrassed", "remaining": 2}]

    dropped = client.delete("/api/social/relationships/alice/bob/traits/friends")
    assert dropped.json()["changed"] is True


def test_errors_map_to_status_codes():
    client = build_client()
    assert client.get("/api/social/entities/ghost").status_code == 404
    assert client.get("/api/social/relationships/alice/ghost").status_code == 404
    assert client.put("/api/social/entities/bad%20id").status_code == 400
    unknown_trait = client.post("/api/social/entities/alice/traits", json={"trait_id": "brave"})
    assert unknown_trait.status_code == 404
    unknown_event = client.post("/api/social/events/hug", json={"entities": ["a", "b"]})
    assert unknown_event.status_code == 404
    arity = client.post("/api/social/events/insult", json={"entities": ["a"]})
    assert arity.status_code == 422
    bad_rule = client.post("/api/social/entities/alice/rules", json={"effects": ["Teleport self"]})
    assert bad_rule.status_code == 422
    bad_duration = client.post("/api/social/entities/alice/traits", json={"trait_id": "kind", "duration": 0})
    assert bad_duration.status_code == 422
