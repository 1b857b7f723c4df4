"""
Cancellation scopes.

A scope is a cooperative, one-way abort signal. Scopes form a tree along
the context initialization walk; aborting a child aborts the parent it was
linked to, never the other way around.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional

logger = logging.getLogger("kontext.scopes")

AbortListener = Callable[[Any], None]


class ScopeAbortedError(Exception):
    """
    Raised by cooperative consumers when their cancellation scope is aborted.

    Unlike usage errors this is a runtime condition: ``catch`` routes it
    like any other foreign error (``Any`` handler or re-raise).
    """

    def __init__(self, scope_name: str, reason: Any = None):
        self.scope_name = scope_name
        self.reason = reason

        msg = f"Scope '{scope_name}' was aborted"
        if reason is not None:
            msg += f": {reason!r}"
        super().__init__(msg)


class CancellationScope:
    """
    Owner side of a cancellation scope.

    Only the context that allocated the scope during ``init`` aborts it.
    Everybody else observes it through ``signal``.
    """

    __slots__ = (
        "name",
        "_aborted",
        "_reason",
        "_listeners",
        "_event",
        "_signal",
    )

    def __init__(self, name: str = "scope"):
        self.name = name
        self._aborted = False
        self._reason: Any = None
        self._listeners: List[AbortListener] = []
        self._event: Optional[asyncio.Event] = None
        self._signal = CancellationSignal(self)

    @property
    def signal(self) -> "CancellationSignal":
        """Read-only view of this scope."""
        return self._signal

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Any:
        return self._reason

    def abort(self, reason: Any = None) -> bool:
        """
        Abort the scope.

        Idempotent: only the first call records a reason and notifies
        listeners.

        Returns:
            True if this call performed the abort
        """
        if self._aborted:
            return False

        self._aborted = True
        self._reason = reason
        logger.debug(f"Scope '{self.name}' aborted (reason={reason!r})")

        if self._event is not None:
            self._event.set()

        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener(reason)
            except Exception as e:
                logger.error(f"Abort listener of scope '{self.name}' raised exception: {e}")
        return True

    def on_abort(self, listener: AbortListener) -> Callable[[], None]:
        """
        Subscribe to the abort signal.

        A listener registered on an already aborted scope runs immediately.

        Returns:
            Callable that removes the listener
        """
        if self._aborted:
            listener(self._reason)
            return lambda: None

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def link_parent(self, parent: "CancellationScope") -> None:
        """Propagate this scope's abort to ``parent``."""
        self.on_abort(parent.abort)

    async def wait(self) -> Any:
        """Wait until the scope is aborted and return the reason."""
        if not self._aborted:
            if self._event is None:
                self._event = asyncio.Event()
            await self._event.wait()
        return self._reason

    def __repr__(self) -> str:
        state = "aborted" if self._aborted else "active"
        return f"CancellationScope(name={self.name!r}, {state})"


class CancellationSignal:
    """Queryable, read-only side of a CancellationScope."""

    __slots__ = ("_scope",)

    def __init__(self, scope: CancellationScope):
        self._scope = scope

    @property
    def name(self) -> str:
        return self._scope.name

    @property
    def aborted(self) -> bool:
        return self._scope.aborted

    @property
    def reason(self) -> Any:
        return self._scope.reason

    def on_abort(self, listener: AbortListener) -> Callable[[], None]:
        return self._scope.on_abort(listener)

    async def wait(self) -> Any:
        return await self._scope.wait()

    def raise_if_aborted(self) -> None:
        """Raise ScopeAbortedError if the scope has been aborted."""
        if self._scope.aborted:
            raise ScopeAbortedError(self._scope.name, self._scope.reason)

    def __repr__(self) -> str:
        return f"CancellationSignal({self._scope!r})"
