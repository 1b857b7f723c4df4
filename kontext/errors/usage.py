"""
Usage errors with rich diagnostics.

These are programmer errors. They are raised immediately and never enter
the dispatch routing algorithm.
"""

from typing import Any, Iterable, List, Optional


class KontextError(Exception):
    """Base exception for kontext usage errors."""
    pass


class ContextNotInitializedError(KontextError):
    """Dispatch attempted on a context that was never initialized."""

    def __init__(self, context_name: str):
        self.context_name = context_name

        msg = (
            f"Context '{context_name}' must be initialized before running catch."
            f"\n\nSuggested fixes:"
            f"\n  - Call ctx.init() and dispatch on the returned context"
            f"\n  - Use ctx.run(fn) which initializes for you"
        )
        super().__init__(msg)


class MissingTagError(KontextError):
    """Declared error class does not expose a tag."""

    def __init__(self, error_class: Any):
        self.error_class = error_class
        name = getattr(error_class, "__name__", repr(error_class))

        msg = (
            f"Error constructor {name} does not have a tag."
            f"\n\nSuggested fixes:"
            f"\n  - Derive it from tagged_error('{name}')"
            f"\n  - Declare it as: class {name}(BaseError, tag='{name}')"
        )
        super().__init__(msg)


class TagCollisionError(KontextError):
    """Two different error variants declared under the same tag."""

    def __init__(self, tag: str, existing: Any, incoming: Any, where: Optional[str] = None):
        self.tag = tag
        self.existing = existing
        self.incoming = incoming
        self.where = where

        msg = (
            f"Tag collision for '{tag}': "
            f"{getattr(existing, '__qualname__', existing)} and "
            f"{getattr(incoming, '__qualname__', incoming)}"
        )
        if where:
            msg += f" (in {where})"
        msg += (
            f"\n\nSuggested fixes:"
            f"\n  - Give one of the variants a distinct tag"
            f"\n  - Declare the same variant class in both contexts"
        )
        super().__init__(msg)


class MissingDeclarationError(KontextError):
    """A declared feature, service or error was not supplied at construction."""

    def __init__(self, context_name: str, kind: str, missing: Iterable[str]):
        self.context_name = context_name
        self.kind = kind
        self.missing: List[str] = sorted(missing)

        msg = f"{context_name} declares {kind} that were not supplied:"
        for key in self.missing:
            msg += f"\n  - {key}"
        super().__init__(msg)


class ServiceContractError(KontextError):
    """An object supplied as a service does not honor the service contract."""

    def __init__(self, context_name: str, key: str, reason: str):
        self.context_name = context_name
        self.key = key
        self.reason = reason
        super().__init__(f"Service '{key}' of {context_name}: {reason}")
