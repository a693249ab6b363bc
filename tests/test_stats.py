from __future__ import annotations

import pytest

from tdrs.entities import Stat, StatCollection, StatModifier, StatModifierType
from tdrs.errors import StatNotFoundError


def _flat(value, duration=-1, source=None, stat="Affection"):
    return StatModifier(stat=stat, reason="test", value=value, duration=duration, source=source)


def test_timed_modifier_expires_on_third_tick():
    stat = Stat(base_value=10)
    stat.add_modifier(_flat(5, duration=3))
    assert stat.value == 15
    stat.tick()
    stat.tick()
    assert stat.value == 15
    assert stat.tick() is True
    assert stat.value == 10
    assert stat.modifiers == []


def test_permanent_modifier_never_decays():
    stat = Stat(base_value=0)
    modifier = _flat(2)
    stat.add_modifier(modifier)
    for _ in range(50):
        assert stat.tick() is False
    assert modifier.duration == -1
    assert stat.value == 2


def test_value_is_clamped_to_bounds():
    stat = Stat(base_value=8, min_value=0, max_value=10)
    stat.add_modifier(_flat(5))
    assert stat.value == 10
    stat.add_modifier(_flat(-30))
    assert stat.value == 0


def test_percent_modifiers_apply_after_flat_sum():
    stat = Stat(base_value=10)
    stat.add_modifier(StatModifier("Affection", "scale", 0.5, StatModifierType.PERCENT))
    stat.add_modifier(_flat(10))
    assert stat.value == pytest.approx(30)


def test_discrete_stats_round_half_away_from_zero():
    up = Stat(base_value=0, is_discrete=True)
    up.add_modifier(_flat(2.5))
    down = Stat(base_value=0, is_discrete=True)
    down.add_modifier(_flat(-2.5))
    assert up.value == 3
    assert down.value == -3


def test_base_value_change_recomputes():
    stat = Stat(base_value=1)
    stat.add_modifier(_flat(1))
    stat.base_value = 5
    assert stat.value == 6


def test_collection_notifies_only_when_value_moves():
    changes = []
    stats = StatCollection(on_change=lambda name, value: changes.append((name, value)))
    stats.add_stat("Affection", Stat(base_value=10, min_value=0, max_value=10))
    stats.add_modifier(_flat(5))
    assert changes == []
    stats.add_modifier(_flat(-8))
    assert changes == [("Affection", 7)]


def test_collection_reports_expired_stats_on_tick():
    changes = []
    stats = StatCollection(on_change=lambda name, value: changes.append((name, value)))
    stats.add_stat("Affection", Stat())
    stats.add_stat("Attraction", Stat())
    stats.add_modifier(_flat(3, duration=1))
    stats.add_modifier(_flat(1, stat="Attraction"))
    assert stats.tick() == ["Affection"]
    assert changes[-1] == ("Affection", 0)
    assert stats.values() == {"Affection": 0, "Attraction": 1}


def test_remove_modifiers_from_source_leaves_others():
    stats = StatCollection()
    stats.add_stat("Affection", Stat())
    owner = object()
    stats.add_modifier(_flat(3, source=owner))
    stats.add_modifier(_flat(4, source=owner))
    stats.add_modifier(_flat(1, source="other"))
    assert stats.remove_modifiers_from_source(owner) is True
    assert stats.get_value("Affection") == 1
    assert stats.remove_modifiers_from_source(owner) is False


def test_unknown_stat_lookup_fails():
    stats = StatCollection()
    with pytest.raises(StatNotFoundError):
        stats.get_value("Missing")
    with pytest.raises(StatNotFoundError):
        stats.add_modifier(_flat(1, stat="Missing"))
