"""
Kontext errors - Tagged error variants.

Defines:
- BaseError (structured, tagged error value)
- tagged_error (variant family constructor)
- ErrorMap (closed tag -> variant mapping)
- tag_of (tag resolution helper)
"""

from __future__ import annotations

from typing import Any, ClassVar, Iterator, Mapping, Optional, Type


# Keyword arguments that never land in ``details``
RESERVED_KEYS = frozenset(("message", "parent"))


# ============================================================================
# BaseError
# ============================================================================

class BaseError(Exception):
    """
    Base class for tagged error variants.

    A tagged error is a first-class value with:
    - Stable tag (class level, used as the routing key)
    - Human-readable message
    - Structured details payload
    - Optional causal parent whose traceback is adopted

    Example:
        ```python
        class NetworkError(BaseError, tag="NetworkError"):
            message = "Network request failed"

        raise NetworkError(url="https://example.com", parent=exc)
        ```
    """

    _tag: ClassVar[Optional[str]] = None
    message: str = ""

    def __init_subclass__(cls, tag: Optional[str] = None, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        if tag is not None:
            cls._tag = tag

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        parent: Any = None,
        **details: Any,
    ):
        # Fallback to class attribute, then to the tag
        self.message = message or type(self).message or (type(self)._tag or "")
        super().__init__(self.message)

        self.details: dict[str, Any] = dict(details)
        self.parent = parent

        # Any value may be a parent; only exceptions carry a cause and traceback
        if isinstance(parent, BaseException):
            self.__cause__ = parent
            self.__traceback__ = parent.__traceback__

    @property
    def tag(self) -> Optional[str]:
        """Variant tag (read-only)."""
        return type(self)._tag

    @property
    def name(self) -> str:
        return type(self)._tag or type(self).__name__

    def __str__(self) -> str:
        return f"[{self.tag}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(tag={self.tag!r}, message={self.message!r}, details={self.details!r})"

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize error to dictionary.

        Returns:
            Dictionary representation suitable for logging
        """
        return {
            "tag": self.tag,
            "message": self.message,
            "details": dict(self.details),
            "parent": repr(self.parent) if self.parent is not None else None,
        }


def tagged_error(tag: str) -> Type[BaseError]:
    """
    Create a new error variant family for ``tag``.

    Usage:
        ```python
        class ItchError(tagged_error("Itch")):
            pass
        ```

    Args:
        tag: Stable string identity of the variant

    Returns:
        A fresh BaseError subclass carrying ``tag``
    """
    return type(tag, (BaseError,), {"_tag": tag, "__module__": __name__})


def tag_of(value: Any) -> Optional[str]:
    """
    Resolve the tag of an error class or instance.

    Classes are instantiated without arguments, the same way a context
    reads tags at declaration time. Returns None if no tag can be found.
    """
    if isinstance(value, type):
        if not issubclass(value, BaseException):
            return None
        try:
            value = value()
        except Exception:
            return None
    tag = getattr(value, "tag", None)
    if isinstance(tag, str) and tag:
        return tag
    return None


# ============================================================================
# ErrorMap
# ============================================================================

class ErrorMap(Mapping[str, Type[BaseException]]):
    """
    Closed, read-only mapping of tag -> error variant.

    Supports attribute access so variants can be constructed directly
    from a context: ``raise ctx.errors.Itch()``.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping[str, Type[BaseException]]] = None):
        object.__setattr__(self, "_data", dict(data or {}))

    def __getitem__(self, tag: str) -> Type[BaseException]:
        return self._data[tag]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __getattr__(self, tag: str) -> Type[BaseException]:
        if tag.startswith("_"):
            return object.__getattribute__(self, tag)
        try:
            return self._data[tag]
        except KeyError:
            raise AttributeError(f"No error declared with tag '{tag}'") from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("ErrorMap is read-only")

    def __repr__(self) -> str:
        return f"ErrorMap({list(self._data)})"

    def match(self, error: BaseException) -> Optional[str]:
        """Return the tag of the first variant ``error`` is an instance of."""
        for tag, variant in self._data.items():
            if isinstance(error, variant):
                return tag
        return None
