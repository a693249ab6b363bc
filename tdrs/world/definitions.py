"""Structural models for declarative trait, rule and social-event definitions.

The engine receives an already-parsed tree of mappings, sequences and
scalars. These models check its shape before any factory is invoked.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tdrs.errors import ConfigurationError


class StatEffectDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    stat: str = Field(min_length=1)
    value: float
    type: Literal["flat", "percent"] = "flat"
    duration: int = Field(default=-1, ge=-1)


class SocialRuleDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str = ""
    outgoing: bool = True
    preconditions: List[Dict[str, Any]] = Field(default_factory=list)
    effects: List[str] = Field(min_length=1)
    source: Optional[str] = None


class TraitDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    display_name: Optional[str] = None
    description: str = ""
    duration: int = Field(default=-1, ge=-1)
    stats_effects: List[StatEffectDefinition] = Field(default_factory=list)
    effects: List[str] = Field(default_factory=list)
    remove_effects: Optional[List[str]] = None
    social_rules: List[SocialRuleDefinition] = Field(default_factory=list)
    conflicts_with: List[str] = Field(default_factory=list)

    @field_validator("duration")
    @classmethod
    def _no_zero_duration(cls, value: int) -> int:
        if value == 0:
            raise ValueError("duration must be -1 (permanent) or a positive number of ticks")
        return value


class SocialEventDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    roles: List[str] = Field(min_length=1)
    description: str = ""
    preconditions: List[Dict[str, Any]] = Field(default_factory=list)
    effects: List[str] = Field(min_length=1)

    @field_validator("roles")
    @classmethod
    def _roles_are_variables(cls, value: List[str]) -> List[str]:
        for role in value:
            if not role.startswith("?") or len(role) < 2:
                raise ValueError(f"role '{role}' must be a ?variable")
        if len(set(value)) != len(value):
            raise ValueError("roles must be unique")
        return value


class DefinitionDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    traits: List[TraitDefinition] = Field(default_factory=list)
    social_events: List[SocialEventDefinition] = Field(default_factory=list)


def parse_document(tree: object, *, origin: str = "<document>") -> DefinitionDocument:
    """Validate a parsed definition tree.

    A bare list is read as a list of trait definitions.
    """
    if tree is None:
        return DefinitionDocument()
    if isinstance(tree, list):
        tree = {"traits": tree}
    if not isinstance(tree, dict):
        raise ConfigurationError(
            f"{origin}: expected a mapping or a list of traits, got {type(tree).__name__}"
        )
    try:
        return DefinitionDocument.model_validate(tree)
    except ValidationError as exc:
        raise ConfigurationError(f"{origin}: invalid definition document\n{exc}") from exc


__all__ = [
    "StatEffectDefinition",
    "SocialRuleDefinition",
    "TraitDefinition",
    "SocialEventDefinition",
    "DefinitionDocument",
    "parse_document",
]
