"""
Kontext dispatch - Tag-based error routing.

The router decides which handler, if any, receives an error raised inside
``Context.catch``:

1. The context's own error map
2. Each nested service's error map, in services order
3. The ``Any`` fallback

At most one handler runs per failed dispatch. Handler failures are never
routed again by the same dispatch.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

logger = logging.getLogger("kontext.dispatch")

# Fallback handler key
ANY = "Any"

Handler = Callable[[BaseException], Union[Any, Awaitable[Any]]]
HandlerSet = Mapping[str, Handler]


@dataclass(frozen=True)
class Route:
    """
    Result of matching an error against a handler set.

    Attributes:
        tag: Matched tag (``ANY`` for the fallback)
        handler: Handler to invoke
        origin: Where the tag was declared ("context", "service:<key>", "any")
    """
    tag: str
    handler: Handler
    origin: str


class ErrorRouter:
    """
    Matches raised errors to handlers.

    Built from an error map and a services mapping; each service is expected
    to expose its own ``errors`` mapping.
    """

    __slots__ = ("errors", "services")

    def __init__(
        self,
        errors: Mapping[str, type],
        services: Mapping[str, Any],
    ):
        self.errors = errors
        self.services = services

    def match(self, error: BaseException, handlers: Optional[HandlerSet]) -> Optional[Route]:
        """
        Find the route for ``error``.

        Args:
            error: Raised value
            handlers: Handler set passed to ``catch``

        Returns:
            Route, or None if nothing handles the error
        """
        if not handlers:
            return None

        route = self._scan(self.errors, error, handlers, "context")
        if route is not None:
            return route

        for key, service in self.services.items():
            service_errors = getattr(service, "errors", None)
            if not service_errors:
                continue
            route = self._scan(service_errors, error, handlers, f"service:{key}")
            if route is not None:
                return route

        fallback = handlers.get(ANY)
        if fallback is not None:
            return Route(tag=ANY, handler=fallback, origin="any")

        return None

    @staticmethod
    def _scan(
        errors: Mapping[str, type],
        error: BaseException,
        handlers: HandlerSet,
        origin: str,
    ) -> Optional[Route]:
        for tag, variant in errors.items():
            if not isinstance(variant, type):
                continue
            if isinstance(error, variant) and handlers.get(tag) is not None:
                return Route(tag=tag, handler=handlers[tag], origin=origin)
        return None


def invoke(route: Route, error: BaseException) -> Any:
    """Invoke a handler synchronously."""
    logger.debug(f"Routing {type(error).__name__} to '{route.tag}' handler ({route.origin})")
    return route.handler(error)


async def invoke_async(route: Route, error: BaseException) -> Any:
    """Invoke a handler, awaiting its result if needed."""
    result = invoke(route, error)
    if inspect.isawaitable(result):
        result = await result
    return result
