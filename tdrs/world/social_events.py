from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

from tdrs.errors import InvalidArgumentError
from tdrs.world.rules.effects import Effect
from tdrs.world.rules.preconditions import Precondition


@dataclass(frozen=True)
class SocialEvent:
    """Something that happens between entities, e.g. ``?a insulted ?b``.

    Roles are bound positionally to entity ids when the event is dispatched.
    """

    name: str
    roles: Tuple[str, ...]
    description: str = ""
    preconditions: Tuple[Precondition, ...] = ()
    effects: Tuple[Effect, ...] = ()

    def bind(self, entity_ids: Sequence[str]) -> Dict[str, str]:
        if len(entity_ids) != len(self.roles):
            raise InvalidArgumentError(
                f"Social event '{self.name}' expects {len(self.roles)} entities "
                f"({', '.join(self.roles)}) but was given {len(entity_ids)}"
            )
        return dict(zip(self.roles, entity_ids))

    def describe(self, bindings: Dict[str, str]) -> str:
        text = self.description or f"{self.name} " + " ".join(self.roles)
        # Longest names first so ?ab is not clobbered by ?a.
        for role in sorted(bindings, key=len, reverse=True):
            text = text.replace(role, bindings[role])
        return text
