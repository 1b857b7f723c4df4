"""
Services (service.py).
"""

import pytest

from kontext import Context, ContextNotInitializedError, Service

from tests.conftest import (
    HelloContext,
    ItchError,
    NetContext,
    NetService,
    NetworkError,
    make_hello,
)


class HelloService(Service.create(HelloContext)):
    def greet(self, name):
        if not name:
            raise self.use.Itch()
        return self.use.format(name)


class Disposable(Service):
    def __init__(self, context):
        super().__init__(context)
        self.calls = []

    def dispose(self):
        self.calls.append("dispose")

    async def adispose(self):
        self.calls.append("adispose")


# ============================================================================
# Service.create
# ============================================================================

class TestCreate:

    def test_bound_context_class(self):
        assert HelloService.context_class is HelloContext
        assert issubclass(HelloService, Service)

    def test_generated_name(self):
        assert Service.create(HelloContext).__name__ == "HelloContextService"

    def test_wrong_context_rejected(self):
        with pytest.raises(TypeError):
            HelloService(NetContext())

    def test_unbound_accepts_any_context(self):
        service = Service(NetContext())
        assert service.errors.NetworkError is NetworkError


# ============================================================================
# Views
# ============================================================================

class TestViews:

    def test_views_follow_context(self):
        ctx = make_hello()
        service = HelloService(ctx)
        assert service.context is ctx
        assert service.errors is ctx.errors
        assert service.features is ctx.features
        assert service.services is ctx.services

    def test_use(self):
        service = HelloService(make_hello())
        assert service.greet("World") == "Hello, World!"
        with pytest.raises(ItchError):
            service.greet("")

    def test_signal_before_init(self):
        assert HelloService(make_hello()).signal is None

    def test_repr(self):
        assert "HelloService" in repr(HelloService(make_hello()))


# ============================================================================
# init & catch
# ============================================================================

class TestInitAndCatch:

    def test_init_returns_bound_copy(self):
        service = HelloService(make_hello())
        bound = service.init()
        assert bound is not service
        assert isinstance(bound, HelloService)
        assert bound.context.initialized is True
        assert service.context.initialized is False

    def test_init_idempotent(self):
        bound = HelloService(make_hello()).init()
        assert bound.init() is bound

    def test_catch_delegates_to_context(self):
        service = HelloService(make_hello()).init()
        assert service.catch(lambda: service.greet(""), {"Itch": lambda e: "no name"}) == "no name"
        assert service.signal.aborted is True

    def test_catch_requires_init(self):
        with pytest.raises(ContextNotInitializedError):
            HelloService(make_hello()).catch(lambda: None)

    def test_service_inside_context(self):
        outer = Context(services={"net": NetService(NetContext())}).init()
        assert outer.services.net.context.initialized is True
        assert outer.use.net.errors.NetworkError is NetworkError


# ============================================================================
# Scoped acquisition
# ============================================================================

class TestScopedAcquisition:

    def test_with_disposes(self):
        service = Disposable(Context())
        with service as acquired:
            assert acquired is service
        assert service.calls == ["dispose"]

    def test_with_disposes_on_error(self):
        service = Disposable(Context())
        with pytest.raises(RuntimeError):
            with service:
                raise RuntimeError("body failed")
        assert service.calls == ["dispose"]

    def test_with_without_hooks(self):
        with Service(Context()) as service:
            pass
        assert isinstance(service, Service)

    @pytest.mark.asyncio
    async def test_async_with_runs_both_hooks(self):
        service = Disposable(Context())
        async with service:
            pass
        assert service.calls == ["dispose", "adispose"]

    @pytest.mark.asyncio
    async def test_async_teardown_runs_when_sync_teardown_fails(self):
        class FailingDispose(Disposable):
            def dispose(self):
                super().dispose()
                raise RuntimeError("sync teardown failed")

        service = FailingDispose(Context())
        with pytest.raises(RuntimeError, match="sync teardown failed"):
            async with service:
                pass
        assert service.calls == ["dispose", "adispose"]

    @pytest.mark.asyncio
    async def test_async_with_disposes_on_error(self):
        service = Disposable(Context())
        with pytest.raises(ValueError):
            async with service:
                raise ValueError("body failed")
        assert service.calls == ["dispose", "adispose"]
