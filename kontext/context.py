"""
Kontext contexts - Features, services and a closed error map.

A Context bundles:
- features: plain injected capabilities (values, functions)
- services: nested capability objects, each bound to its own context
- errors: closed map of tag -> error variant

Declaration and execution are two phases:

    class HelloContext(Context.create(
        features={"format": Callable[[str], str]},
        errors=[ItchError],
    )):
        pass

    template = HelloContext(features={"format": lambda name: f"Hello, {name}!"})
    ctx = template.init()          # clone + fresh cancellation scope
    ctx.catch(lambda: ..., {"Itch": on_itch})

The template is never mutated; every ``init()`` returns an independent
session with its own scope.
"""

from __future__ import annotations

import inspect
import logging
from types import MappingProxyType
from typing import (
    Any,
    Awaitable,
    Callable,
    ClassVar,
    Dict,
    Iterable,
    Mapping,
    Optional,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from ._datastructures import Namespace, UseView
from .config import get_config
from .dispatch import ErrorRouter, HandlerSet, invoke, invoke_async
from .errors import (
    ContextNotInitializedError,
    KontextError,
    ErrorMap,
    MissingDeclarationError,
    MissingTagError,
    ServiceContractError,
    TagCollisionError,
    tag_of,
)
from .scopes import CancellationScope, CancellationSignal
from .service import Service

logger = logging.getLogger("kontext.context")

C = TypeVar("C", bound="Context")
T = TypeVar("T")

Declaration = Union[Mapping[str, Any], Iterable[str], None]

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _normalize(declaration: Declaration) -> Dict[str, Any]:
    """Turn a declaration (mapping or iterable of names) into a dict."""
    if declaration is None:
        return {}
    if isinstance(declaration, Mapping):
        return dict(declaration)
    if isinstance(declaration, str):
        return {declaration: Any}
    return {name: Any for name in declaration}


def _build_error_table(
    variants: Iterable[type],
    *,
    where: str,
    strict: bool = True,
) -> Dict[str, type]:
    """
    Index error variants by tag.

    Each variant is instantiated once, without arguments, to read its tag.

    Raises:
        MissingTagError: A variant has no resolvable tag
        TagCollisionError: Two different variants share a tag (strict only)
    """
    table: Dict[str, type] = {}
    for variant in variants:
        tag = tag_of(variant)
        if tag is None:
            raise MissingTagError(variant)

        existing = table.get(tag)
        if existing is not None and existing is not variant:
            if strict:
                raise TagCollisionError(tag, existing, variant, where=where)
            logger.warning(
                f"Tag '{tag}' declared by both {existing.__qualname__} and "
                f"{variant.__qualname__} in {where}; keeping {variant.__qualname__}"
            )
        table[tag] = variant
    return table


def _expects_type(expected: Any) -> bool:
    return expected is not Any and isinstance(expected, type)


# ============================================================================
# Context
# ============================================================================

class Context:
    """
    Composite container of features, services and errors.

    Declared shape lives on the class (see ``create`` and ``merge``);
    concrete values are supplied at construction. A context is usable for
    ``catch`` only once initialized.
    """

    declared_features: ClassVar[Mapping[str, Any]] = _EMPTY
    declared_services: ClassVar[Mapping[str, Any]] = _EMPTY
    declared_errors: ClassVar[Tuple[type, ...]] = ()
    _error_table: ClassVar[Mapping[str, type]] = _EMPTY

    __slots__ = (
        "_features",
        "_services",
        "_errors",
        "_scope",
        "_initialized",
    )

    def __init__(
        self,
        *,
        features: Optional[Mapping[str, Any]] = None,
        errors: Optional[Mapping[str, type]] = None,
        services: Optional[Mapping[str, Any]] = None,
    ):
        features = dict(features or {})
        services = dict(services or {})

        self._check_declared("features", self.declared_features, features)
        self._check_services(services)

        self._features = Namespace(features)
        self._services = Namespace(services)
        self._errors = self._build_errors(errors)
        self._scope: Optional[CancellationScope] = None
        self._initialized = False

    # ========================================================================
    # Construction checks
    # ========================================================================

    def _check_declared(
        self,
        kind: str,
        declared: Mapping[str, Any],
        supplied: Mapping[str, Any],
    ) -> None:
        missing = [key for key in declared if key not in supplied]
        if missing:
            raise MissingDeclarationError(type(self).__name__, kind, missing)

    def _check_services(self, services: Mapping[str, Any]) -> None:
        name = type(self).__name__
        self._check_declared("services", self.declared_services, services)

        for key, expected in self.declared_services.items():
            if _expects_type(expected) and not isinstance(services[key], expected):
                raise ServiceContractError(
                    name, key,
                    f"expected {expected.__name__}, got {type(services[key]).__name__}",
                )

        for key, service in services.items():
            if not isinstance(getattr(service, "errors", None), Mapping):
                raise ServiceContractError(name, key, "does not expose an 'errors' mapping")

    def _build_errors(self, errors: Optional[Mapping[str, type]]) -> ErrorMap:
        if errors is None:
            return ErrorMap(self._error_table)

        missing = [tag for tag in self._error_table if tag not in errors]
        if missing:
            raise MissingDeclarationError(type(self).__name__, "errors", missing)

        for variant in errors.values():
            if tag_of(variant) is None:
                raise MissingTagError(variant)
        return ErrorMap(errors)

    # ========================================================================
    # Views
    # ========================================================================

    @property
    def features(self) -> Namespace:
        return self._features

    @property
    def services(self) -> Namespace:
        return self._services

    @property
    def errors(self) -> ErrorMap:
        return self._errors

    @property
    def use(self) -> UseView:
        """Features, services and errors under one namespace."""
        return UseView(lambda: (self._features, self._services, self._errors))

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def scope(self) -> Optional[CancellationScope]:
        return self._scope

    @property
    def signal(self) -> Optional[CancellationSignal]:
        """Cancellation signal (None until initialized)."""
        return self._scope.signal if self._scope is not None else None

    # ========================================================================
    # Initialization
    # ========================================================================

    def _clone(self: C) -> C:
        clone = object.__new__(type(self))
        clone._features = self._features
        clone._services = self._services
        clone._errors = self._errors
        clone._scope = None
        clone._initialized = False
        if hasattr(self, "__dict__"):
            clone.__dict__.update(self.__dict__)
        return clone

    def init(self: C, *, parent: Optional[CancellationScope] = None) -> C:
        """
        Initialize the context.

        Clones the context, allocates a fresh cancellation scope and
        initializes every nested context or service with this scope as
        parent. Aborting the new scope aborts ``parent``.

        Idempotent: an initialized context returns itself.

        Args:
            parent: Scope to propagate aborts to

        Returns:
            Initialized context
        """
        if self._initialized:
            return self

        session = self._clone()
        session._scope = CancellationScope(name=type(self).__name__)
        session._initialized = True

        session._features = self._init_children(self._features, session._scope)
        session._services = self._init_children(self._services, session._scope)

        if parent is not None:
            session._scope.link_parent(parent)

        logger.debug(
            f"Initialized {type(self).__name__} "
            f"(parent={parent.name if parent is not None else None})"
        )
        return session

    @staticmethod
    def _init_children(table: Namespace, scope: CancellationScope) -> Namespace:
        if not any(isinstance(value, (Context, Service)) for value in table.values()):
            return table
        return Namespace({
            key: value.init(parent=scope) if isinstance(value, (Context, Service)) else value
            for key, value in table.items()
        })

    def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call ``fn`` with an initialized context as first argument."""
        return fn(self.init(), *args, **kwargs)

    # ========================================================================
    # Dispatch
    # ========================================================================

    def catch(
        self,
        fn: Callable[[], Union[T, Awaitable[T]]],
        handlers: Optional[HandlerSet] = None,
    ) -> Any:
        """
        Run ``fn`` and route failures to tag-matched handlers.

        Matching order: this context's errors, then each service's errors in
        services order, then the ``Any`` handler. Unmatched errors are
        re-raised unchanged. A handled error aborts this context's scope and
        the handler's return value becomes the result.

        If ``fn`` returns an awaitable, a coroutine applying the same routing
        is returned instead, and async handlers are awaited. When ``fn``
        raises synchronously the handler runs synchronously too: an async
        handler's coroutine is returned un-awaited for the caller to await
        (a warning is logged).

        Usage errors (KontextError) are never routed, not even to ``Any``.

        Raises:
            ContextNotInitializedError: The context was never initialized
        """
        if not self._initialized:
            raise ContextNotInitializedError(type(self).__name__)

        router = ErrorRouter(self._errors, self._services)

        try:
            result = fn()
        except KontextError:
            raise
        except Exception as error:
            route = router.match(error, handlers)
            if route is None:
                logger.debug(f"{type(self).__name__} re-raising unhandled {type(error).__name__}")
                raise
            value = invoke(route, error)
            if inspect.isawaitable(value):
                logger.warning(
                    f"{type(self).__name__}: '{route.tag}' handler returned an awaitable "
                    f"from a synchronous dispatch; it is returned un-awaited"
                )
            self._settle(route.tag, error)
            return value

        if inspect.isawaitable(result):
            return self._catch_async(result, router, handlers)
        return result

    async def _catch_async(
        self,
        awaitable: Awaitable[T],
        router: ErrorRouter,
        handlers: Optional[HandlerSet],
    ) -> Optional[T]:
        try:
            return await awaitable
        except KontextError:
            raise
        except Exception as error:
            route = router.match(error, handlers)
            if route is None:
                logger.debug(f"{type(self).__name__} re-raising unhandled {type(error).__name__}")
                raise
            value = await invoke_async(route, error)
            self._settle(route.tag, error)
            return value

    def _settle(self, tag: str, error: BaseException) -> None:
        logger.debug(f"{type(self).__name__} handled '{tag}', aborting scope")
        self._scope.abort(error)

    # ========================================================================
    # Composition
    # ========================================================================

    @classmethod
    def create(
        cls,
        *,
        features: Declaration = None,
        errors: Iterable[type] = (),
        services: Declaration = None,
        name: str = "GeneratedContext",
    ) -> Type["Context"]:
        """
        Declare a new context shape.

        Args:
            features: Mapping of name -> expected type, or iterable of names
            errors: Error variants this context may raise
            services: Mapping of name -> expected service type, or names
            name: Class name of the generated context

        Returns:
            New Context subclass

        Raises:
            MissingTagError: A declared error has no tag
            TagCollisionError: Two declared errors share a tag
        """
        errors = tuple(errors)
        table = _build_error_table(errors, where=name)

        return type(name, (cls,), {
            "__slots__": (),
            "__module__": cls.__module__,
            "declared_features": MappingProxyType(_normalize(features)),
            "declared_services": MappingProxyType(_normalize(services)),
            "declared_errors": tuple(table.values()),
            "_error_table": MappingProxyType(table),
        })

    @classmethod
    def merge(cls, *contexts: Type["Context"], name: str = "MergedContext") -> Type["Context"]:
        """
        Merge declared context shapes into one.

        Features and services: later contexts win on key conflicts.
        Errors: union keyed by tag. Different variants sharing a tag raise
        TagCollisionError unless ``strict_tags`` is disabled in the config,
        in which case the later one wins.

        The merged class subclasses every input.
        """
        if len(contexts) < 2:
            raise ValueError("Context.merge() requires at least two contexts")
        for context in contexts:
            if not (isinstance(context, type) and issubclass(context, Context)):
                raise TypeError(f"Cannot merge {context!r}: not a Context subclass")

        features: Dict[str, Any] = {}
        services: Dict[str, Any] = {}
        variants: list[type] = []
        for context in contexts:
            features.update(context.declared_features)
            services.update(context.declared_services)
            variants.extend(context._error_table.values())

        table = _build_error_table(variants, where=name, strict=get_config().strict_tags)

        unique = list(dict.fromkeys(contexts))
        bases = tuple(
            base for base in unique
            if not any(other is not base and issubclass(other, base) for other in unique)
        )

        return type(name, bases, {
            "__slots__": (),
            "__module__": cls.__module__,
            "declared_features": MappingProxyType(features),
            "declared_services": MappingProxyType(services),
            "declared_errors": tuple(table.values()),
            "_error_table": MappingProxyType(table),
        })

    def __repr__(self) -> str:
        state = "initialized" if self._initialized else "template"
        return (
            f"{type(self).__name__}(features={list(self._features)}, "
            f"services={list(self._services)}, errors={list(self._errors)}, {state})"
        )
