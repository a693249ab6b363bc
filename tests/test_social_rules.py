from __future__ import annotations

import pytest

from tdrs.errors import ConfigurationError, InvalidArgumentError, NotFoundError
from tdrs.events import NotificationKind
from tdrs.world.rules.social import candidate_rules, rule_context


def assert_rules_consistent(engine):
    for relationship in engine.graph.relationships():
        candidates = candidate_rules(engine, relationship)
        for rule in candidates:
            holds = rule.check_preconditions(rule_context(engine, rule, relationship))
            assert relationship.is_rule_active(rule) == holds, (relationship.uid, rule.summary())
        for rule in relationship.active_rules:
            assert any(candidate is rule for candidate in candidates)


def _affection_rule(engine, amount=10, trait="kind", source=None):
    return engine.build_social_rule(
        {
            "description": f"+{amount} affection when owner is {trait}",
            "preconditions": [{"type": "OwnerHasTrait", "trait": trait}],
            "effects": [f"IncreaseStat self Affection {amount}"],
        },
        source=source,
    )


def test_friendly_kind_scenario(loaded_engine):
    loaded_engine.get_or_create_entity("A")
    loaded_engine.get_or_create_entity("B")
    loaded_engine.add_trait_to_entity("A", "friendly")
    loaded_engine.add_social_rule("A", _affection_rule(loaded_engine))

    relationship = loaded_engine.get_or_create_relationship("A", "B")
    assert relationship.get_stat_value("Affection") == 10
    assert len(relationship.active_rules) == 1
    assert_rules_consistent(loaded_engine)


def test_rule_registration_evaluates_existing_relationships(loaded_engine):
    relationship = loaded_engine.get_or_create_relationship("alice", "bob")
    loaded_engine.add_trait_to_entity("alice", "kind")
    rule = _affection_rule(loaded_engine)
    assert loaded_engine.add_social_rule("alice", rule) is True
    assert relationship.is_rule_active(rule)
    assert relationship.get_stat_value("Affection") == 10


def test_trait_changes_rescan_rules(loaded_engine):
    relationship = loaded_engine.get_or_create_relationship("alice", "bob")
    rule = _affection_rule(loaded_engine)
    loaded_engine.add_social_rule("alice", rule)
    assert not relationship.is_rule_active(rule)

    loaded_engine.add_trait_to_entity("alice", "kind")
    assert relationship.is_rule_active(rule)
    assert relationship.get_stat_value("Affection") == 10
    assert_rules_consistent(loaded_engine)

    loaded_engine.remove_trait_from_entity("alice", "kind")
    assert not relationship.is_rule_active(rule)
    assert relationship.get_stat_value("Affection") == 0
    assert_rules_consistent(loaded_engine)


def test_duplicate_registration_is_a_noop(loaded_engine):
    loaded_engine.get_or_create_relationship("alice", "bob")
    loaded_engine.add_trait_to_entity("alice", "kind")
    rule = _affection_rule(loaded_engine)
    assert loaded_engine.add_social_rule("alice", rule) is True
    assert loaded_engine.add_social_rule("alice", rule) is False
    assert loaded_engine.get_relationship("alice", "bob").get_stat_value("Affection") == 10


def test_incoming_rule_applies_to_edges_pointing_at_entity(loaded_engine):
    rule = loaded_engine.build_social_rule(
        {"outgoing": False, "effects": ["IncreaseStat self Attraction 4"]}
    )
    loaded_engine.add_social_rule("bob", rule)
    towards_bob = loaded_engine.get_or_create_relationship("alice", "bob")
    from_bob = loaded_engine.get_or_create_relationship("bob", "alice")
    assert towards_bob.get_stat_value("Attraction") == 4
    assert from_bob.get_stat_value("Attraction") == 0
    assert_rules_consistent(loaded_engine)


def test_remove_social_rule_withdraws_effects(loaded_engine, notifications):
    relationship = loaded_engine.get_or_create_relationship("alice", "bob")
    loaded_engine.add_trait_to_entity("alice", "kind")
    rule = _affection_rule(loaded_engine)
    loaded_engine.add_social_rule("alice", rule)

    assert loaded_engine.remove_social_rule("alice", rule.rule_id) is True
    assert relationship.active_rules == []
    assert relationship.get_stat_value("Affection") == 0
    assert loaded_engine.get_entity("alice").social_rules == []
    kinds = [n.kind for n in notifications if n.payload == rule.rule_id]
    assert kinds == [NotificationKind.SOCIAL_RULE_ADDED, NotificationKind.SOCIAL_RULE_REMOVED]

    with pytest.raises(NotFoundError):
        loaded_engine.remove_social_rule("alice", rule.rule_id)


def test_bulk_removal_by_source(loaded_engine):
    loaded_engine.add_trait_to_entity("E", "kind")
    first_source = [_affection_rule(loaded_engine, amount, source="S1") for amount in (1, 2, 4)]
    second_source = [_affection_rule(loaded_engine, amount, source="S2") for amount in (10, 20)]
    for rule in first_source + second_source:
        loaded_engine.add_social_rule("E", rule)
    relationship = loaded_engine.get_or_create_relationship("E", "F")
    other = loaded_engine.get_or_create_relationship("E", "G")
    assert relationship.get_stat_value("Affection") == 37

    assert loaded_engine.remove_all_rules_from_source("E", "S1") == 3
    entity = loaded_engine.get_entity("E")
    assert [rule.source for rule in entity.social_rules] == ["S2", "S2"]
    for edge in (relationship, other):
        assert edge.get_stat_value("Affection") == 30
        assert len(edge.active_rules) == 2
    assert loaded_engine.remove_all_rules_from_source("E", "S1") == 0
    assert_rules_consistent(loaded_engine)


def test_trait_granted_rules_follow_the_trait(loaded_engine):
    loaded_engine.add_trait_to_entity("bob", "student")
    relationship = loaded_engine.get_or_create_relationship("alice", "bob")
    loaded_engine.add_trait_to_entity("alice", "mentor")
    alice = loaded_engine.get_entity("alice")
    assert [rule.source for rule in alice.social_rules] == ["trait:mentor"]
    assert relationship.get_stat_value("Affection") == 5

    loaded_engine.remove_trait_from_entity("bob", "student")
    assert relationship.get_stat_value("Affection") == 0
    loaded_engine.add_trait_to_entity("bob", "student")
    assert relationship.get_stat_value("Affection") == 5

    loaded_engine.remove_trait_from_entity("alice", "mentor")
    assert alice.social_rules == []
    assert relationship.active_rules == []
    assert relationship.get_stat_value("Affection") == 0


def test_each_holder_gets_its_own_rule_from_a_trait(loaded_engine):
    loaded_engine.add_trait_to_entity("alice", "mentor")
    loaded_engine.add_trait_to_entity("carol", "mentor")
    alice_rule = loaded_engine.get_entity("alice").social_rules[0]
    carol_rule = loaded_engine.get_entity("carol").social_rules[0]
    assert alice_rule is not carol_rule
    assert alice_rule.rule_id != carol_rule.rule_id


def test_rule_effects_may_trigger_other_rules(loaded_engine):
    relationship = loaded_engine.get_or_create_relationship("alice", "bob")
    cheer = loaded_engine.build_social_rule({"effects": ["AddTrait owner happy"]})
    warmth = _affection_rule(loaded_engine, 3, trait="happy")
    loaded_engine.add_social_rule("alice", warmth)
    loaded_engine.add_social_rule("alice", cheer)

    assert loaded_engine.get_entity("alice").has_trait("happy")
    assert relationship.is_rule_active(cheer)
    assert relationship.is_rule_active(warmth)
    assert relationship.get_stat_value("Affection") == 3
    assert_rules_consistent(loaded_engine)

    loaded_engine.remove_social_rule("alice", cheer)
    assert not loaded_engine.get_entity("alice").has_trait("happy")
    assert relationship.active_rules == []
    assert relationship.get_stat_value("Affection") == 0


def test_rule_referencing_unknown_trait_is_rejected(loaded_engine):
    with pytest.raises(ConfigurationError):
        loaded_engine.build_social_rule({"effects": ["AddTrait self brave"]})


def test_rule_cannot_use_event_variables(loaded_engine):
    with pytest.raises(InvalidArgumentError):
        loaded_engine.build_social_rule({"effects": ["IncreaseStat ?a Affection 1"]})


def test_rule_without_effects_is_rejected(loaded_engine):
    with pytest.raises(ConfigurationError):
        loaded_engine.build_social_rule({"description": "does nothing", "effects": []})


def _owner_reputation_rule(engine):
    return engine.build_social_rule(
        {
            "description": "owner gains standing from happy targets",
            "preconditions": [{"type": "TargetHasTrait", "trait": "happy"}],
            "effects": ["IncreaseStat owner Reputation 5"],
        }
    )


def test_endpoint_effects_are_withdrawn_per_relationship(loaded_engine):
    rule = _owner_reputation_rule(loaded_engine)
    loaded_engine.add_social_rule("alice", rule)
    loaded_engine.add_trait_to_entity("bob", "happy")
    loaded_engine.add_trait_to_entity("carol", "happy")
    to_bob = loaded_engine.get_or_create_relationship("alice", "bob")
    to_carol = loaded_engine.get_or_create_relationship("alice", "carol")
    alice = loaded_engine.get_entity("alice")
    assert alice.get_stat_value("Reputation") == 10

    loaded_engine.remove_trait_from_entity("bob", "happy")
    assert not to_bob.is_rule_active(rule)
    assert to_carol.is_rule_active(rule)
    assert alice.get_stat_value("Reputation") == 5
    assert_rules_consistent(loaded_engine)

    loaded_engine.remove_trait_from_entity("carol", "happy")
    assert alice.get_stat_value("Reputation") == 0


def test_endpoint_trait_stays_while_another_relationship_grants_it(loaded_engine):
    rule = loaded_engine.build_social_rule(
        {
            "preconditions": [{"type": "TargetHasTrait", "trait": "happy"}],
            "effects": ["AddTrait owner kind"],
        }
    )
    loaded_engine.add_social_rule("alice", rule)
    loaded_engine.add_trait_to_entity("bob", "happy")
    loaded_engine.add_trait_to_entity("carol", "happy")
    loaded_engine.get_or_create_relationship("alice", "bob")
    loaded_engine.get_or_create_relationship("alice", "carol")
    alice = loaded_engine.get_entity("alice")
    assert alice.has_trait("kind")

    loaded_engine.remove_trait_from_entity("bob", "happy")
    assert alice.has_trait("kind")
    assert_rules_consistent(loaded_engine)

    loaded_engine.remove_trait_from_entity("carol", "happy")
    assert not alice.has_trait("kind")
    assert_rules_consistent(loaded_engine)


def test_stat_changes_reevaluate_threshold_rules(loaded_engine):
    rule = loaded_engine.build_social_rule(
        {
            "preconditions": [
                {"type": "StatThreshold", "subject": "self", "stat": "Affection", "op": ">=", "value": 10}
            ],
            "effects": ["IncreaseStat self Attraction 7"],
        }
    )
    loaded_engine.add_social_rule("alice", rule)
    relationship = loaded_engine.get_or_create_relationship("alice", "bob")
    loaded_engine.add_trait_to_relationship("alice", "bob", "friends")
    assert relationship.is_rule_active(rule)
    assert relationship.get_stat_value("Attraction") == 7

    # insult(bob, alice) lowers alice->bob Affection by 20 for three ticks
    assert loaded_engine.dispatch_event("insult", "bob", "alice") is True
    assert relationship.get_stat_value("Affection") == -10
    assert not relationship.is_rule_active(rule)
    assert relationship.get_stat_value("Attraction") == 0
    assert_rules_consistent(loaded_engine)

    for _ in range(3):
        loaded_engine.tick()
    assert relationship.get_stat_value("Affection") == 10
    assert relationship.is_rule_active(rule)
    assert relationship.get_stat_value("Attraction") == 7
    assert_rules_consistent(loaded_engine)
