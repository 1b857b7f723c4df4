"""
Kontext services - Capability objects bound to one context.

A service exposes its context's features, services and errors through one
surface (``use``), so consumer code calls capabilities and raises declared
errors without caring where they come from:

    class FetchService(Service.create(FetchContext)):
        async def fetch(self, url):
            try:
                return await self.use.fetch(url)
            except httpx.HTTPError as e:
                raise self.use.FetchNetworkError(parent=e) from e

Services may define ``dispose()`` and/or ``adispose()`` teardown hooks;
``with`` / ``async with`` blocks run them on every exit path.
"""

from __future__ import annotations

import copy
import inspect
from typing import TYPE_CHECKING, Any, ClassVar, Optional, Type, TypeVar

if TYPE_CHECKING:
    from .context import Context
    from .scopes import CancellationScope, CancellationSignal

S = TypeVar("S", bound="Service")


class Service:
    """
    Thin wrapper around exactly one context.

    Attributes:
        context_class: Context type this service requires (None accepts any)
    """

    context_class: ClassVar[Optional[type]] = None

    def __init__(self, context: "Context"):
        expected = type(self).context_class
        if expected is not None and not isinstance(context, expected):
            raise TypeError(
                f"{type(self).__name__} requires a {expected.__name__}, "
                f"got {type(context).__name__}"
            )
        self._ctx = context

    # ========================================================================
    # Views
    # ========================================================================

    @property
    def context(self) -> "Context":
        return self._ctx

    @property
    def errors(self):
        return self._ctx.errors

    @property
    def features(self):
        return self._ctx.features

    @property
    def services(self):
        return self._ctx.services

    @property
    def use(self):
        return self._ctx.use

    @property
    def signal(self) -> Optional["CancellationSignal"]:
        return self._ctx.signal

    # ========================================================================
    # Initialization & dispatch
    # ========================================================================

    def init(self: S, *, parent: Optional["CancellationScope"] = None) -> S:
        """
        Return a service bound to an initialized copy of the context.

        Idempotent once the bound context is initialized.
        """
        if self._ctx.initialized:
            return self
        bound = copy.copy(self)
        bound._ctx = self._ctx.init(parent=parent)
        return bound

    def catch(self, fn, handlers=None):
        """Dispatch ``fn`` under this service's context."""
        return self._ctx.catch(fn, handlers)

    # ========================================================================
    # Scoped acquisition
    # ========================================================================

    def __enter__(self: S) -> S:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        dispose = getattr(self, "dispose", None)
        if dispose is not None:
            dispose()
        return False

    async def __aenter__(self: S) -> S:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        dispose = getattr(self, "dispose", None)
        try:
            if dispose is not None:
                dispose()
        finally:
            adispose = getattr(self, "adispose", None)
            if adispose is not None:
                result = adispose()
                if inspect.isawaitable(result):
                    await result
        return False

    @classmethod
    def create(cls, context_class: Optional[type] = None) -> Type["Service"]:
        """
        Create a Service base bound to ``context_class``.

        Usage:
            class HelloService(Service.create(HelloContext)):
                def greet(self, name):
                    return self.use.format(name)
        """
        name = f"{context_class.__name__}Service" if context_class is not None else "GeneratedService"
        return type(name, (cls,), {
            "__module__": cls.__module__,
            "context_class": context_class,
        })

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._ctx!r})"
