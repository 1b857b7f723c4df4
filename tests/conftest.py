"""
Shared test fixtures and helpers for the Kontext test suite.
"""

from typing import Callable

import pytest

from kontext import BaseError, Context, KontextConfig, Service, set_config, tagged_error


# ============================================================================
# Error variants
# ============================================================================


class ItchError(tagged_error("Itch")):
    pass


class DamnError(tagged_error("Damn")):
    pass


class NetworkError(BaseError, tag="NetworkError"):
    message = "Network request failed"


# ============================================================================
# Declared contexts
# ============================================================================


class HelloContext(Context.create(
    features={"format": Callable[[str], str]},
    errors=[ItchError],
)):
    pass


class NetContext(Context.create(errors=[NetworkError])):
    pass


class NetService(Service.create(NetContext)):
    def boom(self):
        raise self.use.NetworkError(host="example.com")


class MainContext(Context.create(
    errors=[DamnError],
    services={"net": NetService},
)):
    pass


def make_hello(fmt=None) -> HelloContext:
    return HelloContext(features={"format": fmt or (lambda name: f"Hello, {name}!")})


def make_net_service() -> NetService:
    return NetService(NetContext())


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def default_config():
    """Every test starts from the default config."""
    set_config(KontextConfig())
    yield
    set_config(None)


@pytest.fixture
def hello():
    return make_hello()


@pytest.fixture
def net_service():
    return make_net_service()


@pytest.fixture
def main_context(net_service):
    return MainContext(services={"net": net_service})
