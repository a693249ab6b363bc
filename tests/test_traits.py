from __future__ import annotations

import logging

import pytest

from tdrs.errors import EntityNotFoundError, TraitNotFoundError
from tdrs.events import NotificationKind


def test_unknown_trait_raises(loaded_engine):
    with pytest.raises(TraitNotFoundError):
        loaded_engine.add_trait_to_entity("alice", "brave")


def test_adding_held_trait_is_a_noop(loaded_engine):
    assert loaded_engine.add_trait_to_entity("alice", "happy") is True
    assert loaded_engine.add_trait_to_entity("alice", "happy") is False
    assert loaded_engine.get_entity("alice").traits.ids() == ["happy"]


def test_attach_effects_and_stat_effects_are_withdrawn_on_remove(loaded_engine):
    loaded_engine.add_trait_to_entity("alice", "friendly")
    alice = loaded_engine.get_entity("alice")
    assert alice.has_trait("kind")
    assert alice.get_stat_value("Reputation") == 5

    assert loaded_engine.remove_trait_from_entity("alice", "friendly") is True
    assert not alice.has_trait("friendly")
    assert not alice.has_trait("kind")
    assert alice.get_stat_value("Reputation") == 0


def test_removing_missing_trait_returns_false(loaded_engine):
    loaded_engine.get_or_create_entity("alice")
    assert loaded_engine.remove_trait_from_entity("alice", "happy") is False
    with pytest.raises(EntityNotFoundError):
        loaded_engine.remove_trait_from_entity("nobody", "happy")


def test_holder_has_trait_while_notifications_are_delivered(loaded_engine):
    seen = []

    def record(notification):
        holder = loaded_engine.get_entity(notification.subject)
        seen.append((notification.kind, notification.payload, holder.has_trait(notification.payload)))

    loaded_engine.subscribe(NotificationKind.TRAIT_ADDED, record)
    loaded_engine.subscribe(NotificationKind.TRAIT_REMOVED, record)
    loaded_engine.add_trait_to_entity("alice", "happy")
    loaded_engine.remove_trait_from_entity("alice", "happy")
    assert seen == [
        (NotificationKind.TRAIT_ADDED, "happy", True),
        (NotificationKind.TRAIT_REMOVED, "happy", True),
    ]
    assert not loaded_engine.get_entity("alice").has_trait("happy")


def test_percent_stat_effect_scales_flat_total(loaded_engine):
    loaded_engine.add_trait_to_entity("carol", "friendly")
    loaded_engine.add_trait_to_entity("carol", "celebrity")
    carol = loaded_engine.get_entity("carol")
    # (0 + 5) * 1.5 = 7.5, rounded away from zero
    assert carol.get_stat_value("Reputation") == 8
    assert carol.has_trait("charismatic")

    loaded_engine.remove_trait_from_entity("carol", "celebrity")
    assert not carol.has_trait("charismatic")
    assert carol.get_stat_value("Reputation") == 5


def test_timed_trait_expires_through_tick(loaded_engine, notifications):
    loaded_engine.add_trait_to_entity("bob", "embarrassed")
    bob = loaded_engine.get_entity("bob")
    assert bob.get_stat_value("Reputation") == -10

    loaded_engine.tick()
    assert bob.has_trait("embarrassed")
    loaded_engine.tick()
    assert not bob.has_trait("embarrassed")
    assert bob.get_stat_value("Reputation") == 0
    removed = [n for n in notifications if n.kind == NotificationKind.TRAIT_REMOVED]
    assert [n.payload for n in removed] == ["embarrassed"]


def test_explicit_duration_overrides_trait_default(loaded_engine):
    loaded_engine.add_trait_to_entity("bob", "embarrassed", 1)
    loaded_engine.add_trait_to_entity("carol", "embarrassed", -1)
    loaded_engine.tick()
    assert not loaded_engine.get_entity("bob").has_trait("embarrassed")
    for _ in range(5):
        loaded_engine.tick()
    assert loaded_engine.get_entity("carol").has_trait("embarrassed")


def test_conflicting_relationship_trait_is_refused(loaded_engine):
    assert loaded_engine.add_trait_to_relationship("alice", "bob", "friends") is True
    assert loaded_engine.add_trait_to_relationship("alice", "bob", "rival") is False
    relationship = loaded_engine.get_relationship("alice", "bob")
    assert relationship.traits.ids() == ["friends"]
    assert relationship.get_stat_value("Affection") == 10

    assert loaded_engine.remove_trait_from_relationship("alice", "bob", "friends") is True
    assert relationship.get_stat_value("Affection") == 0
    assert loaded_engine.add_trait_to_relationship("alice", "bob", "rival") is True


def test_trait_notifications_carry_holder_uid(loaded_engine, notifications):
    loaded_engine.add_trait_to_relationship("alice", "bob", "friends")
    added = [n for n in notifications if n.kind == NotificationKind.TRAIT_ADDED]
    assert added[-1].subject == "alice->bob"
    stat_changes = [n for n in notifications if n.kind == NotificationKind.STAT_CHANGED]
    assert stat_changes[-1].payload == ("Affection", 10)


def test_relationship_trait_with_rules_logs_that_they_are_ignored(loaded_engine, caplog):
    with caplog.at_level(logging.WARNING, logger="tdrs.engines.engine"):
        assert loaded_engine.add_trait_to_relationship("alice", "bob", "mentor") is True
    assert [record.getMessage() for record in caplog.records] == ["tdrs.trait.rules_ignored"]
    assert loaded_engine.get_entity("alice").social_rules == []


def test_trait_held_before_an_effect_granted_it_survives_withdrawal(loaded_engine):
    loaded_engine.add_trait_to_entity("alice", "kind")
    loaded_engine.add_trait_to_entity("alice", "friendly")
    loaded_engine.remove_trait_from_entity("alice", "friendly")
    assert loaded_engine.get_entity("alice").has_trait("kind")
