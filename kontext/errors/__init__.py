"""
Kontext errors.

Two families live here:
- Tagged error variants (declared domain errors, routable by tag)
- Usage errors (fatal programmer errors, never routed)
"""

from .core import (
    BaseError,
    ErrorMap,
    RESERVED_KEYS,
    tag_of,
    tagged_error,
)

from .usage import (
    KontextError,
    ContextNotInitializedError,
    MissingTagError,
    TagCollisionError,
    MissingDeclarationError,
    ServiceContractError,
)

__all__ = [
    # Tagged variants
    "BaseError",
    "ErrorMap",
    "RESERVED_KEYS",
    "tag_of",
    "tagged_error",

    # Usage errors
    "KontextError",
    "ContextNotInitializedError",
    "MissingTagError",
    "TagCollisionError",
    "MissingDeclarationError",
    "ServiceContractError",
]
