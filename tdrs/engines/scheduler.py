from __future__ import annotations

import logging
from dataclasses import dataclass

from tdrs.engines.engine import SocialEngine
from tdrs.output.render import GraphRenderer
from tdrs.world.scenario import Scenario, apply_step


logger = logging.getLogger(__name__)


@dataclass
class SimulationScheduler:
    engine: SocialEngine
    scenario: Scenario
    renderer: GraphRenderer

    def run(self) -> None:
        self.renderer.attach(self.engine)
        late = [step for step in self.scenario.steps if step.tick >= self.scenario.ticks]
        if late:
            logger.warning(
                "tdrs.scenario.unreachable_steps",
                extra={"scenario": self.scenario.name, "count": len(late)},
            )
        for index in range(self.scenario.ticks):
            self._run_single_tick(index)
        self.renderer.render_graph(self.engine)

    def _run_single_tick(self, index: int) -> None:
        self.renderer.start_tick(index)
        for step in self.scenario.steps_at(index):
            self.renderer.add_action_line(apply_step(self.engine, step))
        self.engine.tick()
        self.renderer.present_tick()
