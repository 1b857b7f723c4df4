"""
Ready-made features built on kontext contexts and services.
"""

from .fetch import (
    FetchContext,
    FetchNetworkError,
    FetchParseError,
    FetchService,
    create_fetch_service,
)

__all__ = [
    "FetchContext",
    "FetchNetworkError",
    "FetchParseError",
    "FetchService",
    "create_fetch_service",
]
