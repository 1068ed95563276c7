r"""Asynchronous context manager client for resilient HTTP requests.

This module provides an async context manager-based client whose
requests flow through a ``ResilienceService``: GET requests are
deduplicated, every request is retried on transient failures behind a
per-host circuit breaker, and HTTP error statuses are classified into
``AppError``.
"""

from __future__ import annotations

__all__ = ["AsyncResilientClient", "request_key"]

import logging
from typing import TYPE_CHECKING, Any

import httpx

from resilink.config import DEFAULT_TIMEOUT
from resilink.service import ResilienceService
from resilink.utils.validation import validate_timeout

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType
    from typing import Self

    from resilink.cancellation import CancellationToken
    from resilink.config import ResilienceConfig
    from resilink.errors import AppError

logger: logging.Logger = logging.getLogger(__name__)


def request_key(method: str, url: str, params: Any = None) -> str:
    """Build the deduplication key of a request.

    Args:
        method: The HTTP method.
        url: The request URL.
        params: Optional query parameters, in any form accepted by
            ``httpx.QueryParams``.

    Returns:
        ``"<METHOD> <url>"`` followed by the sorted query parameters.

    Example:
        ```pycon
        >>> from resilink.client_async import request_key
        >>> request_key("get", "/feed", {"page": 2, "limit": 10})
        'GET /feed?limit=10&page=2'
        >>> request_key("GET", "/feed")
        'GET /feed'

        ```
    """
    key = f"{method.upper()} {url}"
    if params:
        items = sorted(httpx.QueryParams(params).multi_items())
        key = f"{key}?{'&'.join(f'{name}={value}' for name, value in items)}"
    return key


class AsyncResilientClient:
    r"""Asynchronous context manager for resilient HTTP requests.

    The client manages the lifecycle of the underlying
    ``httpx.AsyncClient``. Responses with an error status raise
    ``httpx.HTTPStatusError`` inside the retried operation, so they are
    classified like any other failure: 5xx statuses are retried, 401 and
    403 are not.

    Args:
        service: Optional resilience service. Defaults to a service
            built from ``config``.
        config: Optional configuration of the default service. Ignored
            when ``service`` is given.
        timeout: Maximum seconds to wait for server responses. Must be > 0.
        base_url: Optional base URL of all requests.
        transport: Optional ``httpx`` transport, e.g. an
            ``httpx.MockTransport`` in tests.

    Example:
        ```pycon
        >>> import asyncio
        >>> from resilink import AsyncResilientClient
        >>> async def main():  # doctest: +SKIP
        ...     async with AsyncResilientClient(base_url="https://api.example.com") as client:
        ...         feed = await client.get("/feed", params={"page": 1})
        ...         await client.post(
        ...             "/likes", json={"post_id": "123"}, queue_as=("likePost", {"post_id": "123"})
        ...         )
        ...
        >>> asyncio.run(main())  # doctest: +SKIP

        ```
    """

    def __init__(
        self,
        *,
        service: ResilienceService | None = None,
        config: ResilienceConfig | None = None,
        timeout: float | httpx.Timeout = DEFAULT_TIMEOUT,
        base_url: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        # Validate timeout separately (used for httpx.AsyncClient creation)
        validate_timeout(timeout)
        self._timeout = timeout
        self._base_url = base_url
        self._transport = transport
        self._service = service if service is not None else ResilienceService(config)

        # Client will be created when entering context
        self._client: httpx.AsyncClient | None = None
        self._entered = False

    @property
    def service(self) -> ResilienceService:
        return self._service

    async def __aenter__(self) -> Self:
        """Enter the async context manager and create the underlying
        httpx client.

        Returns:
            The AsyncResilientClient instance for making requests.
        """
        self._client = httpx.AsyncClient(
            timeout=self._timeout, base_url=self._base_url, transport=self._transport
        )
        self._entered = True
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the async context manager and close the underlying httpx
        client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._entered = False

    def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure the client is available for use.

        Returns:
            The httpx.AsyncClient instance.

        Raises:
            RuntimeError: If the client is used outside of a context manager.
        """
        if not self._entered or self._client is None:
            msg = "AsyncResilientClient must be used within an async context manager (async with statement)"
            raise RuntimeError(msg)
        return self._client

    def _service_key(self, client: httpx.AsyncClient, url: str) -> str | None:
        host = client.base_url.join(url).host if self._base_url else httpx.URL(url).host
        return host or None

    async def request(
        self,
        method: str,
        url: str,
        *,
        context: str | None = None,
        service: str | None = None,
        queue_as: tuple[str, dict[str, Any]] | None = None,
        retry_if: Callable[[AppError], bool] | None = None,
        max_attempts: int | None = None,
        token: CancellationToken | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        r"""Send an HTTP request through the resilience service.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, PATCH, etc.).
            url: The URL to send the request to.
            context: Operation context. Defaults to ``"<METHOD> <url>"``.
            service: Circuit breaker key. Defaults to the URL host.
            queue_as: Optional ``(type, payload)`` queued for replay if
                the request fails while offline.
            retry_if: Optional predicate overriding the default
                retryability decision.
            max_attempts: Override of the configured attempts.
            token: Optional cancellation token.
            **kwargs: Additional keyword arguments passed to
                ``httpx.AsyncClient.request()``.

        Returns:
            The successful ``httpx.Response``.

        Raises:
            RuntimeError: If called outside of a context manager.
            AppError: The classified terminal failure.
        """
        client = self._ensure_client()
        method = method.upper()
        key = request_key(method, url, kwargs.get("params"))

        async def send() -> httpx.Response:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response

        is_get = method == "GET"
        return await self._service.execute(
            send,
            context if context is not None else key,
            service=service if service is not None else self._service_key(client, url),
            dedup_key=key if is_get else None,
            result_type=httpx.Response if is_get else None,
            retry_if=retry_if,
            max_attempts=max_attempts,
            queue_as=queue_as,
            token=token,
        )

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        r"""Send an HTTP GET request. Concurrent identical GETs share one
        request.

        Args:
            url: The URL to send the GET request to.
            **kwargs: Additional keyword arguments (see request() method).

        Returns:
            An httpx.Response object containing the server's HTTP response.
        """
        return await self.request(method="GET", url=url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        r"""Send an HTTP POST request.

        Args:
            url: The URL to send the POST request to.
            **kwargs: Additional keyword arguments (see request() method).

        Returns:
            An httpx.Response object containing the server's HTTP response.
        """
        return await self.request(method="POST", url=url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request(method="PUT", url=url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request(method="DELETE", url=url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request(method="PATCH", url=url, **kwargs)
