"""
Kontext - Typed effect contexts for Python.

Contexts bundle injectable features, nested services and a closed set of
tagged error variants, and run work under a cooperative cancellation scope
with tag-based error routing.

Core exports:
- Context: Composite container (create, merge, init, catch)
- Service: Capability object bound to one context
- BaseError / tagged_error: Tagged error variants
- CancellationScope / CancellationSignal: Cooperative cancellation
- ServiceGroup: Grouped teardown of disposable services
"""

__version__ = "0.3.0"

from .config import (
    ConfigError,
    ConfigLoader,
    KontextConfig,
    configure_logging,
    get_config,
    set_config,
)

from .errors import (
    BaseError,
    ErrorMap,
    tag_of,
    tagged_error,
    KontextError,
    ContextNotInitializedError,
    MissingTagError,
    TagCollisionError,
    MissingDeclarationError,
    ServiceContractError,
)

from .scopes import CancellationScope, CancellationSignal, ScopeAbortedError
from .dispatch import ANY, ErrorRouter, Route
from .service import Service
from .context import Context
from .lifecycle import DisposalOutcome, DisposalReport, ServiceGroup

__all__ = [
    # Config
    "ConfigError",
    "ConfigLoader",
    "KontextConfig",
    "configure_logging",
    "get_config",
    "set_config",

    # Errors
    "BaseError",
    "ErrorMap",
    "tag_of",
    "tagged_error",
    "KontextError",
    "ContextNotInitializedError",
    "MissingTagError",
    "TagCollisionError",
    "MissingDeclarationError",
    "ServiceContractError",

    # Runtime
    "CancellationScope",
    "CancellationSignal",
    "ScopeAbortedError",
    "ANY",
    "ErrorRouter",
    "Route",
    "Service",
    "Context",

    # Lifecycle
    "DisposalOutcome",
    "DisposalReport",
    "ServiceGroup",
]
