"""Social engine and scenario scheduler."""

from .engine import SocialEngine
from .scheduler import SimulationScheduler

__all__ = ["SocialEngine", "SimulationScheduler"]
