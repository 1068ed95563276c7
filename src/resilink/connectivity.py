r"""Push-based network connectivity monitor.

Platform adapters push connectivity changes with ``set_available``.
When a probe is configured, ``start`` additionally runs a background
task that probes the network every ``interval`` seconds and pushes the
result. Listeners are notified only when the state changes.

Example:
    ```pycon
    >>> from resilink.connectivity import ConnectivityMonitor
    >>> monitor = ConnectivityMonitor()
    >>> seen = []
    >>> unsubscribe = monitor.subscribe(seen.append)
    >>> monitor.set_available(False)
    >>> monitor.set_available(False)
    >>> monitor.set_available(True)
    >>> seen
    [False, True]

    ```
"""

from __future__ import annotations

__all__ = ["ConnectivityMonitor", "HttpProbe"]

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

import httpx

from resilink.config import DEFAULT_TIMEOUT
from resilink.utils.observable import Observable
from resilink.utils.validation import validate_timeout

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger: logging.Logger = logging.getLogger(__name__)


class HttpProbe:
    r"""Connectivity probe sending an HTTP HEAD request.

    Any response, whatever its status, means the network is available.
    Any ``httpx.HTTPError`` means it is not.

    Args:
        url: The URL to probe.
        timeout: Request timeout in seconds.
        client: Optional ``httpx.AsyncClient`` to reuse. When omitted, a
            client is created for each probe.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        validate_timeout(timeout)
        self.url = url
        self.timeout = timeout
        self._client = client

    def __repr__(self) -> str:
        return f"{type(self).__name__}(url={self.url!r}, timeout={self.timeout})"

    async def __call__(self) -> bool:
        try:
            if self._client is not None:
                await self._client.head(self.url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    await client.head(self.url)
        except httpx.HTTPError as exc:
            logger.debug(f"Connectivity probe to {self.url} failed: {exc}")
            return False
        return True


class ConnectivityMonitor:
    r"""Observable network availability.

    Args:
        probe: Optional async callable returning ``True`` when the
            network is available, e.g. an ``HttpProbe``. Required by
            ``start``.
        interval: Seconds between two probes.
        initially_available: The state before the first push or probe.

    Example:
        ```pycon
        >>> import asyncio
        >>> from resilink.connectivity import ConnectivityMonitor
        >>> async def offline():
        ...     return False
        ...
        >>> async def main():
        ...     monitor = ConnectivityMonitor(probe=offline, interval=0.01)
        ...     await monitor.start()
        ...     await asyncio.sleep(0.05)
        ...     await monitor.stop()
        ...     return monitor.is_available
        ...
        >>> asyncio.run(main())
        False

        ```
    """

    def __init__(
        self,
        probe: Callable[[], Awaitable[bool]] | None = None,
        interval: float = 10.0,
        initially_available: bool = True,
    ) -> None:
        if interval <= 0:
            msg = f"interval must be > 0, got {interval}"
            raise ValueError(msg)
        self._probe = probe
        self._interval = interval
        self._available: Observable[bool] = Observable(initially_available)
        self._task: asyncio.Task[None] | None = None
        self._stop: asyncio.Event | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(available={self.is_available}, running={self.running})"

    @property
    def is_available(self) -> bool:
        return self._available.value

    @property
    def has_probe(self) -> bool:
        return self._probe is not None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Register a listener called with the new state on every
        change.

        Args:
            listener: Sync callable receiving the new availability.

        Returns:
            A function removing the listener.
        """
        return self._available.subscribe(listener)

    def set_available(self, available: bool) -> None:
        """Push a new connectivity state.

        Args:
            available: Whether the network is available.
        """
        if self._available.set(available):
            if available:
                logger.info("Network connectivity restored")
            else:
                logger.warning("Network connectivity lost")

    async def check(self) -> bool:
        """Run the probe once and push its result.

        Returns:
            The probed availability.

        Raises:
            RuntimeError: If no probe is configured.
        """
        if self._probe is None:
            msg = "ConnectivityMonitor has no probe configured"
            raise RuntimeError(msg)
        try:
            available = bool(await self._probe())
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Connectivity probe raised an error: {e}")
            available = False
        self.set_available(available)
        return available

    async def start(self) -> None:
        """Start the background probe loop. No-op if it is running.

        Raises:
            RuntimeError: If no probe is configured.
        """
        if self._probe is None:
            msg = "ConnectivityMonitor has no probe configured"
            raise RuntimeError(msg)
        if self.running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop))
        logger.debug(f"Connectivity monitor started (interval={self._interval}s)")

    async def stop(self) -> None:
        """Stop the background probe loop and wait for it to finish."""
        if self._task is None:
            return
        if self._stop is not None:
            self._stop.set()
        task, self._task = self._task, None
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("Connectivity monitor stopped")

    async def _run(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            await self.check()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop.wait(), timeout=self._interval)
