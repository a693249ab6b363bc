from __future__ import annotations

from pathlib import Path
from typing import List, Union

import yaml

from tdrs.errors import ConfigurationError


def _read_yaml(path: Path) -> object:
    if not path.exists():
        raise FileNotFoundError(f"Expected YAML data file at {path}")
    with path.open("r", encoding="utf-8") as handle:
        try:
            return yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse YAML at {path}: {exc}") from exc


def read_definitions(path: Union[str, Path]) -> Union[dict, list]:
    """Parse a definition document into the tree the engine consumes."""
    path = Path(path)
    payload = _read_yaml(path)
    if payload is None:
        return {}
    if not isinstance(payload, (dict, list)):
        raise ConfigurationError(f"Expected mapping or list at {path}, got {type(payload).__name__}")
    return payload


def read_scenario(path: Union[str, Path]) -> dict:
    path = Path(path)
    payload = _read_yaml(path) or {}
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Expected mapping at {path}, got {type(payload).__name__}")
    return payload


def expand_paths(paths: List[Union[str, Path]]) -> List[Path]:
    """Expand directories into their ``*.yaml`` / ``*.yml`` files, sorted by name."""
    expanded: List[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            expanded.extend(sorted(p for p in path.iterdir() if p.suffix in (".yaml", ".yml")))
        else:
            expanded.append(path)
    return expanded
