from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from typing import TYPE_CHECKING, Dict, Optional, Set

from tdrs.entities.entity import Entity, SocialEntity
from tdrs.entities.relationship import Relationship
from tdrs.errors import BindingNotFoundError, InvalidArgumentError

if TYPE_CHECKING:
    from tdrs.engines.engine import SocialEngine


SELF = "self"
OWNER = "owner"
TARGET = "target"
KEYWORDS = (SELF, OWNER, TARGET)


def is_variable(ref: str) -> bool:
    return ref.startswith("?") and len(ref) > 1


def check_reference(ref: str, *, factory: str) -> str:
    """Validate a holder reference at construction time."""
    if ref in KEYWORDS or is_variable(ref):
        return ref
    raise InvalidArgumentError(
        f"{factory}: expected one of {', '.join(KEYWORDS)} or a ?variable but was '{ref}'"
    )


def referenced_variables(item: object) -> Set[str]:
    """Collect ``?variable`` references held by a dataclass effect or precondition."""
    found: Set[str] = set()
    if isinstance(item, (list, tuple)):
        for element in item:
            found |= referenced_variables(element)
    elif is_dataclass(item) and not isinstance(item, type):
        for item_field in fields(item):
            value = getattr(item, item_field.name)
            if isinstance(value, str):
                if is_variable(value):
                    found.add(value)
            else:
                found |= referenced_variables(value)
    return found


@dataclass
class EffectContext:
    """What an effect or precondition runs against.

    For rule and trait effects ``target`` is the holder (a relationship for
    social rules). Social events leave ``target`` empty and resolve entities
    through ``bindings`` (variable name -> entity id). Traits added by a
    ``revocable`` context are recorded as grants of ``source`` so that
    withdrawing one source does not strip a trait another source still grants.
    """

    engine: "SocialEngine"
    target: Optional[SocialEntity] = None
    source: object = None
    bindings: Dict[str, str] = field(default_factory=dict)
    description: str = ""
    revocable: bool = True

    @property
    def relationship(self) -> Relationship:
        if not isinstance(self.target, Relationship):
            raise BindingNotFoundError("This context is not bound to a relationship")
        return self.target

    def resolve(self, ref: str) -> SocialEntity:
        if is_variable(ref):
            try:
                entity_id = self.bindings[ref]
            except KeyError:
                raise BindingNotFoundError(f"Variable '{ref}' is not bound in this context") from None
            return self.engine.get_entity(entity_id)
        if ref == SELF:
            if self.target is None:
                raise BindingNotFoundError("'self' used in a context without a target")
            return self.target
        if ref == OWNER:
            return self.engine.get_entity(self.relationship.owner_id)
        if ref == TARGET:
            return self.engine.get_entity(self.relationship.target_id)
        raise BindingNotFoundError(f"Unknown reference '{ref}'")

    def resolve_entity(self, ref: str) -> Entity:
        resolved = self.resolve(ref)
        if not isinstance(resolved, Entity):
            raise BindingNotFoundError(f"Reference '{ref}' does not name an entity")
        return resolved

    def resolve_relationship(self, owner_ref: str, target_ref: str) -> Relationship:
        owner = self.resolve_entity(owner_ref)
        target = self.resolve_entity(target_ref)
        return self.engine.get_or_create_relationship(owner.uid, target.uid)

    def find_relationship(self, owner_ref: str, target_ref: str) -> Optional[Relationship]:
        """Existing relationship between two resolved entities, without creating it."""
        owner = self.resolve_entity(owner_ref)
        target = self.resolve_entity(target_ref)
        if not self.engine.graph.has_relationship(owner.uid, target.uid):
            return None
        return self.engine.graph.get_relationship(owner.uid, target.uid)

    def reason(self, fallback: str) -> str:
        return self.description or fallback
