from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional

from tdrs.errors import StatNotFoundError


StatChangeHandler = Callable[[str, float], None]


class StatModifierType(str, Enum):
    FLAT = "flat"
    PERCENT = "percent"


@dataclass(eq=False)
class StatModifier:
    """A timed or permanent contribution to a single stat.

    ``duration`` of -1 marks a permanent modifier. PERCENT modifiers scale the
    flat total by ``1 + value``.
    """

    stat: str
    reason: str
    value: float
    modifier_type: StatModifierType = StatModifierType.FLAT
    duration: int = -1
    source: object = field(default=None, repr=False)

    @property
    def is_permanent(self) -> bool:
        return self.duration < 0


def _round_half_away(value: float) -> float:
    return float(math.floor(abs(value) + 0.5) * (1 if value >= 0 else -1))


class Stat:
    """Bounded numeric value with a cached effective value."""

    def __init__(
        self,
        base_value: float = 0.0,
        min_value: float = -math.inf,
        max_value: float = math.inf,
        is_discrete: bool = False,
    ) -> None:
        self._base_value = float(base_value)
        self.min_value = float(min_value)
        self.max_value = float(max_value)
        self.is_discrete = is_discrete
        self.modifiers: List[StatModifier] = []
        self._value = 0.0
        self.recalculate()

    @property
    def base_value(self) -> float:
        return self._base_value

    @base_value.setter
    def base_value(self, value: float) -> None:
        self._base_value = float(value)
        self.recalculate()

    @property
    def value(self) -> float:
        return self._value

    def add_modifier(self, modifier: StatModifier) -> None:
        self.modifiers.append(modifier)
        self.recalculate()

    def remove_modifier(self, modifier: StatModifier) -> bool:
        for index, existing in enumerate(self.modifiers):
            if existing is modifier:
                del self.modifiers[index]
                self.recalculate()
                return True
        return False

    def remove_modifiers_from_source(self, source: object) -> bool:
        remaining = [modifier for modifier in self.modifiers if modifier.source != source]
        if len(remaining) == len(self.modifiers):
            return False
        self.modifiers = remaining
        self.recalculate()
        return True

    def tick(self) -> bool:
        """Decay timed modifiers by one step. Returns True when any expired."""
        expired = False
        remaining: List[StatModifier] = []
        for modifier in self.modifiers:
            if modifier.duration > 0:
                modifier.duration -= 1
                if modifier.duration == 0:
                    expired = True
                    continue
            remaining.append(modifier)
        if expired:
            self.modifiers = remaining
            self.recalculate()
        return expired

    def recalculate(self) -> float:
        total = self._base_value
        for modifier in self.modifiers:
            if modifier.modifier_type == StatModifierType.FLAT:
                total += modifier.value
        for modifier in self.modifiers:
            if modifier.modifier_type == StatModifierType.PERCENT:
                total *= 1.0 + modifier.value
        total = max(self.min_value, min(self.max_value, total))
        if self.is_discrete:
            total = _round_half_away(total)
        self._value = total
        return total

    def __repr__(self) -> str:
        return (
            f"Stat(value={self._value}, base={self._base_value}, "
            f"range=[{self.min_value}, {self.max_value}], modifiers={len(self.modifiers)})"
        )


class StatCollection:
    """Named stats of one entity or relationship.

    ``on_change`` receives ``(stat_name, new_value)`` only when a stat's
    effective value actually moves.
    """

    def __init__(self, on_change: Optional[StatChangeHandler] = None) -> None:
        self._stats: Dict[str, Stat] = {}
        self.on_change = on_change

    def add_stat(self, name: str, stat: Stat) -> None:
        self._stats[name] = stat

    def __getitem__(self, name: str) -> Stat:
        try:
            return self._stats[name]
        except KeyError:
            raise StatNotFoundError(f"Unknown stat '{name}'") from None

    def __contains__(self, name: object) -> bool:
        return name in self._stats

    def __iter__(self) -> Iterator[str]:
        return iter(self._stats)

    def __len__(self) -> int:
        return len(self._stats)

    def items(self):
        return self._stats.items()

    def get_value(self, name: str) -> float:
        return self[name].value

    def values(self) -> Dict[str, float]:
        return {name: stat.value for name, stat in self._stats.items()}

    def set_base_value(self, name: str, value: float) -> None:
        stat = self[name]
        previous = stat.value
        stat.base_value = value
        self._notify(name, previous, stat.value)

    def add_modifier(self, modifier: StatModifier) -> None:
        stat = self[modifier.stat]
        previous = stat.value
        stat.add_modifier(modifier)
        self._notify(modifier.stat, previous, stat.value)

    def remove_modifier(self, modifier: StatModifier) -> bool:
        stat = self[modifier.stat]
        previous = stat.value
        removed = stat.remove_modifier(modifier)
        self._notify(modifier.stat, previous, stat.value)
        return removed

    def remove_modifiers_from_source(self, source: object, stat_name: Optional[str] = None) -> bool:
        names = [stat_name] if stat_name is not None else list(self._stats)
        removed_any = False
        for name in names:
            stat = self[name]
            previous = stat.value
            if stat.remove_modifiers_from_source(source):
                removed_any = True
                self._notify(name, previous, stat.value)
        return removed_any

    def tick(self) -> List[str]:
        expired: List[str] = []
        for name, stat in self._stats.items():
            previous = stat.value
            if stat.tick():
                expired.append(name)
                self._notify(name, previous, stat.value)
        return expired

    def _notify(self, name: str, previous: float, current: float) -> None:
        if previous != current and self.on_change is not None:
            self.on_change(name, current)
