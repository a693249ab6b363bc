"""Engine configuration.

Default stats seeded on every new entity and relationship, plus the
definition documents to load at start-up. Values come from (lowest to highest
precedence) the defaults below, an optional YAML file named by
``TDRS_CONFIG_FILE``, and the ``TDRS_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml

from tdrs.entities.stats import Stat
from tdrs.errors import ConfigurationError


DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_DEFINITIONS = DATA_DIR / "definitions.yaml"
DEFAULT_SCENARIO = DATA_DIR / "scenario.yaml"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@dataclass
class StatConfig:
    name: str
    base_value: float = 0.0
    min_value: float = -100.0
    max_value: float = 100.0
    is_discrete: bool = True

    def __post_init__(self) -> None:
        if self.min_value > self.max_value:
            raise ConfigurationError(
                f"Stat '{self.name}': min_value {self.min_value} exceeds max_value {self.max_value}"
            )
        if not self.min_value <= self.base_value <= self.max_value:
            raise ConfigurationError(
                f"Stat '{self.name}': base_value {self.base_value} outside [{self.min_value}, {self.max_value}]"
            )

    def build(self) -> Stat:
        return Stat(self.base_value, self.min_value, self.max_value, self.is_discrete)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> "StatConfig":
        if "name" not in payload:
            raise ConfigurationError(f"Stat configuration is missing 'name': {dict(payload)}")
        try:
            return cls(
                name=str(payload["name"]),
                base_value=float(payload.get("base_value", 0.0)),
                min_value=float(payload.get("min_value", -100.0)),
                max_value=float(payload.get("max_value", 100.0)),
                is_discrete=bool(payload.get("is_discrete", True)),
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid stat configuration {dict(payload)}: {exc}") from exc


def _default_entity_stats() -> List[StatConfig]:
    return [StatConfig("Reputation")]


def _default_relationship_stats() -> List[StatConfig]:
    return [
        StatConfig("Affection"),
        StatConfig("Attraction"),
        StatConfig("Interaction", min_value=0.0, max_value=100.0),
    ]


@dataclass
class EngineConfig:
    entity_stats: List[StatConfig] = field(default_factory=_default_entity_stats)
    relationship_stats: List[StatConfig] = field(default_factory=_default_relationship_stats)
    definitions: List[Path] = field(default_factory=lambda: [DEFAULT_DEFINITIONS])
    scenario: Path = DEFAULT_SCENARIO
    log_level: str = "INFO"


def _read_config_file(path: Path) -> Dict[str, object]:
    if not path.exists():
        raise FileNotFoundError(f"Expected YAML config file at {path}")
    with path.open("r", encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Expected mapping at {path}, got {type(payload).__name__}")
    return payload


def _stat_list(raw: object, key: str) -> List[StatConfig]:
    if not isinstance(raw, list):
        raise ConfigurationError(f"'{key}' must be a list of stat mappings")
    stats = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise ConfigurationError(f"'{key}' entries must be mappings, got {item!r}")
        stats.append(StatConfig.from_mapping(item))
    return stats


def load_engine_config(env: Mapping[str, str] | None = None) -> EngineConfig:
    env = env if env is not None else os.environ
    config = EngineConfig()

    config_file = env.get("TDRS_CONFIG_FILE")
    if config_file:
        config_path = Path(config_file)
        payload = _read_config_file(config_path)
        if "entity_stats" in payload:
            config.entity_stats = _stat_list(payload["entity_stats"], "entity_stats")
        if "relationship_stats" in payload:
            config.relationship_stats = _stat_list(payload["relationship_stats"], "relationship_stats")
        if "definitions" in payload:
            raw_definitions = payload["definitions"] or []
            if isinstance(raw_definitions, str):
                raw_definitions = [raw_definitions]
            config.definitions = [config_path.parent / str(item) for item in raw_definitions]
        if "scenario" in payload:
            config.scenario = config_path.parent / str(payload["scenario"])
        if "log_level" in payload:
            config.log_level = str(payload["log_level"]).upper()

    definitions_raw = env.get("TDRS_DEFINITIONS")
    if definitions_raw:
        config.definitions = [Path(item) for item in definitions_raw.split(os.pathsep) if item.strip()]
    if env.get("TDRS_SCENARIO"):
        config.scenario = Path(env["TDRS_SCENARIO"])
    if env.get("TDRS_LOG_LEVEL"):
        config.log_level = env["TDRS_LOG_LEVEL"].strip().upper()
    return config


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(level=(level or "INFO").upper(), format=LOG_FORMAT)


__all__ = [
    "DATA_DIR",
    "DEFAULT_DEFINITIONS",
    "DEFAULT_SCENARIO",
    "StatConfig",
    "EngineConfig",
    "load_engine_config",
    "configure_logging",
]
