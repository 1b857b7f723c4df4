"""
Grouped teardown (lifecycle.py).

Tests ServiceGroup, DisposalReport and DisposalOutcome.
"""

import asyncio
import logging

import pytest

from kontext import (
    Context,
    DisposalOutcome,
    DisposalReport,
    KontextConfig,
    Service,
    ServiceGroup,
    set_config,
)


# ============================================================================
# Helpers
# ============================================================================

class Recorder(Service):
    def __init__(self, log, name, *, fail_sync=False, fail_async=False, delay=0):
        super().__init__(Context())
        self.log = log
        self.name = name
        self.fail_sync = fail_sync
        self.fail_async = fail_async
        self.delay = delay

    def dispose(self):
        self.log.append(f"{self.name}:sync")
        if self.fail_sync:
            raise RuntimeError(f"{self.name} sync failed")

    async def adispose(self):
        await asyncio.sleep(self.delay)
        self.log.append(f"{self.name}:async")
        if self.fail_async:
            raise RuntimeError(f"{self.name} async failed")


class SyncOnly:
    errors = {}

    def __init__(self):
        self.disposed = False

    def dispose(self):
        self.disposed = True


# ============================================================================
# DisposalReport
# ============================================================================

class TestDisposalReport:

    def test_empty_is_ok(self):
        assert DisposalReport().ok is True

    def test_failures(self):
        error = RuntimeError("x")
        report = DisposalReport([DisposalOutcome("a", "sync"), DisposalOutcome("b", "async", error)])
        assert report.ok is False
        assert [o.name for o in report.failures] == ["b"]

    def test_extend(self):
        report = DisposalReport([DisposalOutcome("a", "sync")])
        report.extend(DisposalReport([DisposalOutcome("b", "sync")]))
        assert [o.name for o in report.outcomes] == ["a", "b"]


# ============================================================================
# ServiceGroup as mapping
# ============================================================================

class TestServiceGroupMapping:

    def test_members_from_mapping_and_keywords(self):
        one, two = SyncOnly(), SyncOnly()
        group = ServiceGroup({"one": one}, two=two)
        assert dict(group) == {"one": one, "two": two}
        assert len(group) == 2

    def test_usable_as_context_services(self):
        log = []
        group = ServiceGroup(rec=Recorder(log, "rec"))
        ctx = Context(services=group).init()
        assert ctx.services.rec.context.initialized is True

    def test_timeout_from_config(self):
        set_config(KontextConfig(dispose_timeout=2.5))
        assert ServiceGroup()._timeout == 2.5

    def test_repr(self):
        assert "one" in repr(ServiceGroup(one=SyncOnly()))


# ============================================================================
# Synchronous teardown
# ============================================================================

class TestSyncDispose:

    def test_disposes_every_member(self):
        log = []
        group = ServiceGroup(a=Recorder(log, "a"), b=Recorder(log, "b"))
        report = group.dispose()
        assert log == ["a:sync", "b:sync"]
        assert report.ok is True
        assert group.disposed is True

    def test_failure_does_not_stop_others(self, caplog):
        log = []
        group = ServiceGroup(a=Recorder(log, "a", fail_sync=True), b=Recorder(log, "b"))

        with caplog.at_level(logging.WARNING, logger="kontext.lifecycle"):
            report = group.dispose()

        assert log == ["a:sync", "b:sync"]
        assert [o.name for o in report.failures] == ["a"]
        assert "a" in caplog.text

    def test_members_without_hooks_skipped(self):
        group = ServiceGroup(plain=object())
        assert group.dispose().outcomes == []

    def test_with_block(self):
        member = SyncOnly()
        with ServiceGroup(member=member) as group:
            assert group["member"] is member
        assert member.disposed is True

    def test_dispose_runs_once(self):
        log = []
        group = ServiceGroup(a=Recorder(log, "a"))
        group.dispose()
        assert group.dispose().outcomes == []
        assert log == ["a:sync"]

    def test_explicit_dispose_then_with_exit(self):
        log = []
        with ServiceGroup(a=Recorder(log, "a")) as group:
            group.dispose()
        assert log == ["a:sync"]

    def test_with_block_disposes_on_error(self):
        member = SyncOnly()
        with pytest.raises(KeyError):
            with ServiceGroup(member=member):
                raise KeyError("body")
        assert member.disposed is True


# ============================================================================
# Asynchronous teardown
# ============================================================================

class TestAsyncDispose:

    @pytest.mark.asyncio
    async def test_sync_then_async(self):
        log = []
        group = ServiceGroup(a=Recorder(log, "a"), b=Recorder(log, "b"))
        report = await group.adispose()
        assert log[:2] == ["a:sync", "b:sync"]
        assert sorted(log[2:]) == ["a:async", "b:async"]
        assert [(o.name, o.phase) for o in report.outcomes] == [
            ("a", "sync"), ("b", "sync"), ("a", "async"), ("b", "async"),
        ]

    @pytest.mark.asyncio
    async def test_runs_concurrently(self):
        log = []
        group = ServiceGroup(slow=Recorder(log, "slow", delay=0.05), fast=Recorder(log, "fast"))
        await group.adispose()
        assert log.index("fast:async") < log.index("slow:async")

    @pytest.mark.asyncio
    async def test_failure_does_not_fail_fast(self):
        log = []
        group = ServiceGroup(
            bad=Recorder(log, "bad", fail_async=True),
            good=Recorder(log, "good", delay=0.01),
        )
        report = await group.adispose()
        assert "good:async" in log
        assert len(report.failures) == 1
        assert report.failures[0].name == "bad"
        assert report.failures[0].phase == "async"
        assert isinstance(report.failures[0].error, RuntimeError)

    @pytest.mark.asyncio
    async def test_timeout_recorded_as_failure(self):
        log = []
        group = ServiceGroup(
            {"stuck": Recorder(log, "stuck", delay=1), "quick": Recorder(log, "quick")},
            timeout=0.01,
        )
        report = await group.adispose()
        assert [o.name for o in report.failures] == ["stuck"]
        assert isinstance(report.failures[0].error, asyncio.TimeoutError)
        assert "quick:async" in log

    @pytest.mark.asyncio
    async def test_sync_only_members(self):
        member = SyncOnly()
        report = await ServiceGroup(member=member).adispose()
        assert member.disposed is True
        assert report.ok is True

    @pytest.mark.asyncio
    async def test_async_with_block(self):
        log = []
        async with ServiceGroup(a=Recorder(log, "a")):
            log.append("body")
        assert log == ["body", "a:sync", "a:async"]

    @pytest.mark.asyncio
    async def test_adispose_runs_once(self):
        log = []
        group = ServiceGroup(a=Recorder(log, "a"))
        await group.adispose()
        assert (await group.adispose()).outcomes == []
        assert log == ["a:sync", "a:async"]

    @pytest.mark.asyncio
    async def test_explicit_dispose_then_async_exit(self):
        log = []
        async with ServiceGroup(a=Recorder(log, "a")) as group:
            group.dispose()
        assert log == ["a:sync", "a:async"]

    @pytest.mark.asyncio
    async def test_async_with_block_disposes_on_error(self):
        log = []
        with pytest.raises(ValueError):
            async with ServiceGroup(a=Recorder(log, "a")):
                raise ValueError("body")
        assert log == ["a:sync", "a:async"]
