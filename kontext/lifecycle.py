"""
Lifecycle management for disposable services.

A ServiceGroup owns a named set of services. Teardown is best effort:
every member's synchronous ``dispose()`` runs immediately, then every
member's asynchronous ``adispose()`` is gathered into one batch. A failing
member never prevents the others from being released; each outcome is
recorded independently.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .config import get_config

logger = logging.getLogger("kontext.lifecycle")


@dataclass(frozen=True)
class DisposalOutcome:
    """Result of one member's teardown hook."""

    name: str
    phase: str  # "sync" or "async"
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DisposalReport:
    """Aggregated teardown outcomes of a group."""

    outcomes: List[DisposalOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def failures(self) -> List[DisposalOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def extend(self, other: "DisposalReport") -> None:
        self.outcomes.extend(other.outcomes)


class ServiceGroup(Mapping[str, Any]):
    """
    Named group of services with grouped teardown.

    The group is a read-only mapping, so it can be passed directly as the
    ``services`` of a context:

        async with ServiceGroup(foo=FooService.default()) as group:
            ctx = AppContext(services=group).init()
            await ctx.catch(main, handlers)
    """

    __slots__ = ("_members", "_disposed", "_adisposed", "_timeout")

    def __init__(
        self,
        members: Optional[Mapping[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
        **named: Any,
    ):
        self._members: Dict[str, Any] = {**(members or {}), **named}
        self._disposed = False
        self._adisposed = False
        self._timeout = timeout if timeout is not None else get_config().dispose_timeout

    def __getitem__(self, key: str) -> Any:
        return self._members[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._members)

    def __len__(self) -> int:
        return len(self._members)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> DisposalReport:
        """
        Run every member's synchronous teardown.

        Runs once; later calls return an empty report.
        """
        report = DisposalReport()
        if self._disposed:
            return report

        for name, member in self._members.items():
            hook = getattr(member, "dispose", None)
            if hook is None:
                continue
            try:
                hook()
            except Exception as e:
                logger.warning(f"Synchronous teardown of '{name}' failed: {e}")
                report.outcomes.append(DisposalOutcome(name, "sync", e))
            else:
                report.outcomes.append(DisposalOutcome(name, "sync"))
        self._disposed = True
        return report

    async def adispose(self) -> DisposalReport:
        """
        Run synchronous teardowns, then gather asynchronous ones.

        Waits for every asynchronous teardown to settle; never fails fast.
        Each phase runs once, so an explicit ``dispose()`` followed by
        ``async with`` exit only runs the asynchronous phase.
        """
        report = self.dispose()
        if self._adisposed:
            return report
        self._adisposed = True

        names: List[str] = []
        pending = []
        for name, member in self._members.items():
            hook = getattr(member, "adispose", None)
            if hook is None:
                continue
            names.append(name)
            pending.append(self._run_async(hook))

        results = await asyncio.gather(*pending, return_exceptions=True)
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.warning(f"Asynchronous teardown of '{name}' failed: {result}")
                report.outcomes.append(DisposalOutcome(name, "async", result))
            else:
                report.outcomes.append(DisposalOutcome(name, "async"))

        return report

    async def _run_async(self, hook: Any) -> None:
        result = hook()
        if not inspect.isawaitable(result):
            return
        if self._timeout is not None:
            await asyncio.wait_for(result, timeout=self._timeout)
        else:
            await result

    def __enter__(self) -> "ServiceGroup":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.dispose()
        return False

    async def __aenter__(self) -> "ServiceGroup":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.adispose()
        return False

    def __repr__(self) -> str:
        return f"ServiceGroup({list(self._members)})"
