from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List

from tdrs.events import Notification, NotificationKind

if TYPE_CHECKING:
    from tdrs.engines.engine import SocialEngine


@dataclass
class SectionLine:
    text: str
    priority: int


class GraphRenderer:
    """Plain-text per-tick report of scenario actions and engine notifications."""

    def __init__(self, *, fast: bool = False, verbosity: str = "normal", max_lines: int = 80) -> None:
        self.fast = fast
        self.verbosity = verbosity
        self.max_lines = max_lines
        self._quiet_mode = verbosity == "quiet"
        self._detail_mode = verbosity == "detailed"
        self._unsubscribe = None
        self._history: List[List[str]] = []
        self._reset_tick_state()

    # ------------------------------------------------------------------
    # Public API used by the scheduler
    # ------------------------------------------------------------------
    def attach(self, engine: "SocialEngine") -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = engine.subscribe(None, self.on_notification)

    def start_tick(self, index: int) -> None:
        self._reset_tick_state()
        self._index = index

    def add_action_line(self, text: str, *, priority: int = 1) -> None:
        self._sections.setdefault("actions", []).append(SectionLine(text=text, priority=priority))

    def on_notification(self, notification: Notification) -> None:
        kind = notification.kind
        if kind == NotificationKind.TICK_COMPLETED:
            return
        if kind == NotificationKind.STAT_CHANGED:
            if self._quiet_mode:
                return
            stat_name, value = notification.payload
            text = f"{notification.subject}.{stat_name} = {value:g}"
            priority = 3
        elif kind == NotificationKind.SOCIAL_EVENT_DISPATCHED:
            text = f"event: {notification.payload['description']}"
            priority = 2
        else:
            text = f"{kind.value}: {notification.subject} {notification.payload}"
            priority = 2 if kind in (NotificationKind.TRAIT_ADDED, NotificationKind.TRAIT_REMOVED) else 4
        if self._detail_mode or priority < 4:
            self._sections.setdefault("changes", []).append(SectionLine(text=text, priority=priority))

    def present_tick(self) -> List[str]:
        lines = [SectionLine(text=f"=== Tick {self._index} ===", priority=0)]
        for section, heading in (("actions", "[ACTIONS]"), ("changes", "[CHANGES]")):
            entries = self._sections.get(section, [])
            if not entries:
                continue
            lines.append(SectionLine(text=heading, priority=0))
            lines.extend(SectionLine(text=f"- {entry.text}", priority=entry.priority) for entry in entries)
        if len(lines) == 1:
            lines.append(SectionLine(text="(nothing happened)", priority=5))
        layout = [entry.text for entry in self._apply_trimming(lines)]
        self._history.append(layout)
        if not self.fast:
            for line in layout:
                print(line)
        else:
            print(layout[0])
        return layout

    def render_graph(self, engine: "SocialEngine") -> List[str]:
        lines = ["[ENTITIES]"]
        for entity in engine.graph.entities():
            lines.append(f"{entity.uid}: {_format_stats(entity.stats.values())} traits={_format_traits(entity.traits.ids())}")
            for rule in entity.social_rules:
                lines.append(f"    rule {rule.rule_id}: {rule.summary()}")
        lines.append("[RELATIONSHIPS]")
        for relationship in engine.graph.relationships():
            active = ", ".join(rule.rule_id for rule in relationship.active_rules) or "-"
            lines.append(
                f"{relationship.uid}: {_format_stats(relationship.stats.values())} "
                f"traits={_format_traits(relationship.traits.ids())} active_rules={active}"
            )
        for line in lines:
            print(line)
        return lines

    @property
    def history(self) -> List[List[str]]:
        return self._history

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _reset_tick_state(self) -> None:
        self._index: int = 0
        self._sections: Dict[str, List[SectionLine]] = {}

    def _apply_trimming(self, lines: List[SectionLine]) -> List[SectionLine]:
        if len(lines) <= self.max_lines:
            return lines
        # Drop the highest priority numbers first, keeping original order for ties.
        indexed = list(enumerate(lines))
        removable = [item for item in indexed if item[1].priority > 0]
        removable.sort(key=lambda item: (-item[1].priority, item[0]))
        to_remove = len(lines) - self.max_lines
        remove_set = {index for index, _ in removable[:to_remove]}
        return [entry for idx, entry in indexed if idx not in remove_set]


def _format_stats(values: Dict[str, float]) -> str:
    return " ".join(f"{name}={value:g}" for name, value in values.items()) or "-"


def _format_traits(trait_ids: List[str]) -> str:
    return ",".join(trait_ids) if trait_ids else "-"
