from __future__ import annotations

import hashlib
import itertools
import re

from tdrs.errors import InvalidIdentifierError


_SLUG_RE = re.compile(r"[^a-z0-9]+")
_ENTITY_ID_RE = re.compile(r"^[A-Za-z0-9_.:\-]+$")
_RULE_COUNTER = itertools.count(1)

RELATIONSHIP_SEPARATOR = "->"


def slugify(value: str) -> str:
    slug = _SLUG_RE.sub("_", value.lower()).strip("_")
    return slug or "item"


def validate_entity_id(value: object) -> str:
    if not isinstance(value, str):
        raise InvalidIdentifierError(f"Entity identifier must be a string, got {type(value).__name__}")
    candidate = value.strip()
    if not candidate:
        raise InvalidIdentifierError("Entity identifier must not be empty")
    if RELATIONSHIP_SEPARATOR in candidate or not _ENTITY_ID_RE.match(candidate):
        raise InvalidIdentifierError(f"Malformed entity identifier '{value}'")
    return candidate


def relationship_uid(owner_id: str, target_id: str) -> str:
    return f"{owner_id}{RELATIONSHIP_SEPARATOR}{target_id}"


def new_rule_id(label: str = "rule") -> str:
    number = next(_RULE_COUNTER)
    digest = hashlib.sha1(f"{label}:{number}".encode("utf-8")).hexdigest()[:6]
    return f"{slugify(label)[:24]}_{number:03d}_{digest}"


__all__ = [
    "RELATIONSHIP_SEPARATOR",
    "slugify",
    "validate_entity_id",
    "relationship_uid",
    "new_rule_id",
]
