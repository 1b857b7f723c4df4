"""
Core data structures for Kontext contexts.

Provides:
- Namespace: Read-only mapping with attribute access (features, services)
- UseView: Live, flattened view over features, services and errors
"""

from __future__ import annotations

from typing import Any, Callable, Iterator, Mapping, Optional


# ============================================================================
# Namespace
# ============================================================================

class Namespace(Mapping[str, Any]):
    """
    Read-only mapping that also supports attribute access.

    Enables syntax like: ctx.features.format("World")
    """

    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping[str, Any]] = None):
        object.__setattr__(self, "_data", dict(data or {}))

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            return object.__getattribute__(self, name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(f"'Namespace' object has no attribute '{name}'") from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Namespace is read-only")

    def __repr__(self) -> str:
        return f"Namespace({list(self._data)})"


# ============================================================================
# UseView
# ============================================================================

class UseView(Mapping[str, Any]):
    """
    Flattened view combining features, services and errors.

    The view holds no copy: every lookup reads the live tables returned by
    ``source``. On key conflicts errors shadow services, and services shadow
    features.
    """

    __slots__ = ("_source",)

    def __init__(self, source: Callable[[], tuple[Mapping[str, Any], ...]]):
        object.__setattr__(self, "_source", source)

    def _layers(self) -> tuple[Mapping[str, Any], ...]:
        # Highest priority first
        return tuple(reversed(self._source()))

    def __getitem__(self, key: str) -> Any:
        for layer in self._layers():
            if key in layer:
                return layer[key]
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        seen: dict[str, None] = {}
        for layer in self._source():
            for key in layer:
                seen.setdefault(key, None)
        return iter(seen)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            return object.__getattribute__(self, name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"'UseView' object has no attribute '{name}'") from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("UseView is read-only")

    def __repr__(self) -> str:
        return f"UseView({list(self)})"
