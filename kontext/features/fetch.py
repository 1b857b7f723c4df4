"""
Fetch feature - HTTP requests as a context-bound service.

Failures surface as declared, tagged errors:
- FetchNetworkError: transport failure or non-2xx response
- FetchParseError: response body is not valid JSON
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from ..context import Context
from ..errors import tagged_error
from ..scopes import CancellationSignal
from ..service import Service

logger = logging.getLogger("kontext.features.fetch")


class FetchNetworkError(tagged_error("FetchNetworkError")):
    message = "Network request failed"


class FetchParseError(tagged_error("FetchParseError")):
    message = "Failed to parse JSON"


class FetchContext(Context.create(
    features={"fetch": Callable[..., Awaitable[httpx.Response]]},
    errors=[FetchNetworkError, FetchParseError],
    name="FetchContext",
)):
    pass


class FetchService(Service.create(FetchContext)):
    """
    JSON-over-HTTP capability.

    The ``fetch`` feature is any coroutine function with the signature of
    ``httpx.AsyncClient.request``. If the service owns an AsyncClient it is
    closed by ``adispose()``.
    """

    def __init__(self, context: FetchContext, *, client: Optional[httpx.AsyncClient] = None):
        super().__init__(context)
        self._client = client

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        *,
        signal: Optional[CancellationSignal] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Request ``url`` and decode the JSON body.

        ``signal`` defaults to the bound context's signal; an aborted signal
        refuses the request with ScopeAbortedError.
        """
        signal = signal if signal is not None else self.signal
        if signal is not None:
            signal.raise_if_aborted()

        try:
            response = await self.use.fetch(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise self.use.FetchNetworkError(parent=e, url=url, method=method) from e

        if response.is_error:
            raise self.use.FetchNetworkError(
                f"HTTP error: {response.status_code}",
                url=url,
                method=method,
                status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise self.use.FetchParseError(parent=e, url=url) from e

    async def adispose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            logger.debug("Closing owned HTTP client")
            await self._client.aclose()


def create_fetch_service(client: Optional[httpx.AsyncClient] = None, **client_kwargs: Any) -> FetchService:
    """
    Build a FetchService backed by an httpx.AsyncClient.

    Args:
        client: Existing client (not closed by the service)
        client_kwargs: Options for a new, service-owned client

    Returns:
        FetchService bound to a fresh FetchContext
    """
    owned = client is None
    if client is None:
        client = httpx.AsyncClient(**client_kwargs)

    context = FetchContext(features={"fetch": client.request})
    return FetchService(context, client=client if owned else None)
