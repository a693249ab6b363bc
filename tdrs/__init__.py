"""Trait-driven relationship system: social graph, stats, traits and social rules."""

__version__ = "0.1.0"
