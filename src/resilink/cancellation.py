r"""Explicit cancellation for the resilience suspension points.

Native ``asyncio`` task cancellation is honoured everywhere. A
``CancellationToken`` adds a way for a caller to abandon a retry
backoff, a deduplicated wait or an offline queue drain without owning
the task that runs it.

Example:
    ```pycon
    >>> import asyncio
    >>> from resilink.cancellation import CancellationToken, run_cancellable
    >>> async def main():
    ...     token = CancellationToken()
    ...     asyncio.get_running_loop().call_later(0.01, token.cancel)
    ...     try:
    ...         await run_cancellable(asyncio.sleep(10), token)
    ...     except asyncio.CancelledError:
    ...         return "cancelled"
    ...
    >>> asyncio.run(main())
    'cancelled'

    ```
"""

from __future__ import annotations

__all__ = ["CancellationToken", "run_cancellable", "sleep"]

import asyncio
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation signal.

    A token starts active and can be cancelled exactly once; cancelling
    again is a no-op.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(cancelled={self.cancelled})"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise ``asyncio.CancelledError`` if the token was cancelled."""
        if self._event.is_set():
            msg = "operation cancelled by token"
            raise asyncio.CancelledError(msg)

    async def wait(self) -> None:
        """Wait until the token is cancelled."""
        await self._event.wait()


async def run_cancellable(awaitable: Awaitable[T], token: CancellationToken | None) -> T:
    """Await ``awaitable`` unless ``token`` is cancelled first.

    On cancellation the awaitable is cancelled too. Wrap it in
    ``asyncio.shield`` to keep shared work running.

    Args:
        awaitable: The awaitable to run.
        token: Optional cancellation token. ``None`` simply awaits.

    Returns:
        The result of the awaitable.

    Raises:
        asyncio.CancelledError: If the token is cancelled before the
            awaitable completes.
    """
    if token is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    if token.cancelled:
        task.cancel()
        msg = "operation cancelled by token"
        raise asyncio.CancelledError(msg)

    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if not task.done():
        task.cancel()
        msg = "operation cancelled by token"
        raise asyncio.CancelledError(msg)
    return task.result()


async def sleep(delay: float, token: CancellationToken | None = None) -> None:
    """Sleep for ``delay`` seconds without blocking the event loop.

    Args:
        delay: Seconds to sleep.
        token: Optional cancellation token interrupting the sleep.

    Raises:
        asyncio.CancelledError: If the token is cancelled during the
            sleep.
    """
    if token is None:
        await asyncio.sleep(delay)
        return
    await run_cancellable(asyncio.sleep(delay), token)
