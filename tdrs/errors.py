"""Exception types raised by the social engine.

Configuration errors surface while definitions are loaded or effects and
preconditions are constructed. Lookup errors surface at the call site and are
never replaced by a default value.
"""

from __future__ import annotations


class TDRSError(Exception):
    """Base class for every error raised by the engine."""


class ConfigurationError(TDRSError, ValueError):
    """Malformed definition document or engine configuration."""


class UnknownFactoryError(ConfigurationError):
    """A definition names a precondition or effect factory that is not registered."""


class InvalidArgumentError(ConfigurationError):
    """Wrong argument count or an argument that does not parse to the expected type."""


class InvalidIdentifierError(TDRSError, ValueError):
    """Identifier rejected before it reaches the graph store."""


class NotFoundError(TDRSError, LookupError):
    """Lookup of something that does not exist."""


class StatNotFoundError(NotFoundError):
    pass


class TraitNotFoundError(NotFoundError):
    pass


class EntityNotFoundError(NotFoundError):
    pass


class RelationshipNotFoundError(NotFoundError):
    pass


class SocialEventNotFoundError(NotFoundError):
    pass


class BindingNotFoundError(NotFoundError):
    """An effect or precondition references a variable missing from its binding context."""


__all__ = [
    "TDRSError",
    "ConfigurationError",
    "UnknownFactoryError",
    "InvalidArgumentError",
    "InvalidIdentifierError",
    "NotFoundError",
    "StatNotFoundError",
    "TraitNotFoundError",
    "EntityNotFoundError",
    "RelationshipNotFoundError",
    "SocialEventNotFoundError",
    "BindingNotFoundError",
]
