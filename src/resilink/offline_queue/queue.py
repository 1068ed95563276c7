r"""Durable FIFO queue of operations replayed when connectivity
returns."""

from __future__ import annotations

__all__ = ["OfflineQueue"]

import asyncio
import logging
import threading
import uuid
from typing import TYPE_CHECKING, Any

from resilink.cancellation import run_cancellable
from resilink.offline_queue.operation import QueuedOperation
from resilink.offline_queue.storage import InMemoryQueueStorage, QueueStorage

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from resilink.cancellation import CancellationToken
    from resilink.connectivity import ConnectivityMonitor

logger: logging.Logger = logging.getLogger(__name__)


class OfflineQueue:
    r"""Persist operations attempted while offline and replay them in
    enqueue order.

    Every change of the list is persisted through ``storage`` under the
    same lock, so the persisted list always matches the in-memory one.
    Operations persisted by a previous process are loaded on
    construction.

    Replay (``drain``) calls the handler registered for each operation
    type. A successful replay removes the operation; a failed one leaves
    it queued for the next drain. At most one drain runs at a time. A
    drain requested while another runs makes the running drain do one
    more pass.

    Args:
        storage: The storage backend. Defaults to
            ``InMemoryQueueStorage()``.
        monitor: Optional connectivity monitor. The queue drains
            automatically whenever it reports that connectivity was
            restored, and stops a drain early when it goes offline.

    Raises:
        AppError: If the persisted operations cannot be loaded.

    Example:
        ```pycon
        >>> import asyncio
        >>> from resilink.offline_queue import OfflineQueue
        >>> queue = OfflineQueue()
        >>> replayed = []
        >>> async def like_post(op):
        ...     replayed.append(op.payload["post_id"])
        ...
        >>> queue.register_handler("likePost", like_post)
        >>> _ = queue.enqueue("likePost", {"post_id": "1"})
        >>> _ = queue.enqueue("likePost", {"post_id": "2"})
        >>> asyncio.run(queue.drain())
        2
        >>> replayed, len(queue)
        (['1', '2'], 0)

        ```
    """

    def __init__(
        self,
        storage: QueueStorage | None = None,
        monitor: ConnectivityMonitor | None = None,
    ) -> None:
        self._storage = storage if storage is not None else InMemoryQueueStorage()
        self._monitor = monitor
        self._handlers: dict[str, Callable[[QueuedOperation], Awaitable[Any]]] = {}
        self._lock = threading.Lock()
        self._operations: list[QueuedOperation] = self._storage.load()
        if self._operations:
            logger.info(f"Restored {len(self._operations)} queued operations")

        self._drain_lock: asyncio.Lock | None = None
        self._drain_requested = False
        self._drain_task: asyncio.Task[int] | None = None
        self._unsubscribe: Callable[[], None] | None = None
        if monitor is not None:
            self._unsubscribe = monitor.subscribe(self._on_connectivity_change)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(count={len(self)}, storage={self._storage!r})"

    def __len__(self) -> int:
        with self._lock:
            return len(self._operations)

    @property
    def operations(self) -> tuple[QueuedOperation, ...]:
        """A snapshot of the queued operations in FIFO order."""
        with self._lock:
            return tuple(self._operations)

    @property
    def storage(self) -> QueueStorage:
        return self._storage

    def register_handler(
        self, type: str, handler: Callable[[QueuedOperation], Awaitable[Any]]
    ) -> None:
        """Register the replay handler of an operation type.

        Args:
            type: The operation type tag.
            handler: Async callable replaying one operation. It signals
                failure by raising.
        """
        self._handlers[type] = handler

    def enqueue(self, type: str, payload: dict[str, Any]) -> QueuedOperation:
        """Append an operation and persist the queue.

        Args:
            type: The operation type tag.
            payload: JSON-compatible payload for the handler.

        Returns:
            The queued operation.

        Raises:
            AppError: Of kind ``STORAGE_ERROR`` if persisting fails. The
                operation is not queued in that case.
        """
        operation = QueuedOperation(type=type, payload=payload)
        with self._lock:
            self._storage.save([*self._operations, operation])
            self._operations.append(operation)
            count = len(self._operations)
        logger.info(f"Queued {type} operation {operation.id} ({count} pending)")
        return operation

    def remove(self, operation_id: uuid.UUID) -> bool:
        """Remove an operation by id and persist the queue.

        Returns:
            ``True`` if the operation was queued, otherwise ``False``.
        """
        with self._lock:
            remaining = [op for op in self._operations if op.id != operation_id]
            if len(remaining) == len(self._operations):
                return False
            self._storage.save(remaining)
            self._operations = remaining
            return True

    def clear(self) -> None:
        """Remove all operations and persist the empty queue."""
        with self._lock:
            self._storage.save([])
            self._operations = []

    def close(self) -> None:
        """Stop listening to the connectivity monitor."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _is_online(self) -> bool:
        return self._monitor is None or self._monitor.is_available

    def _contains(self, operation_id: uuid.UUID) -> bool:
        with self._lock:
            return any(op.id == operation_id for op in self._operations)

    async def drain(self, token: CancellationToken | None = None) -> int:
        """Replay the queued operations in FIFO order.

        Operations without a registered handler stay queued. The pass
        stops early if the connectivity monitor reports offline.

        Args:
            token: Optional cancellation token stopping the drain
                between or during replays.

        Returns:
            The number of operations successfully replayed. A call made
            while another drain runs returns 0 immediately; the running
            drain then makes one more pass.

        Raises:
            asyncio.CancelledError: If the drain is cancelled. Operations
                replayed before the cancellation stay removed.
        """
        if self._drain_lock is None:
            self._drain_lock = asyncio.Lock()
        if self._drain_lock.locked():
            self._drain_requested = True
            logger.debug("Drain already running, requesting another pass")
            return 0
        async with self._drain_lock:
            replayed = 0
            while True:
                self._drain_requested = False
                replayed += await self._drain_once(token)
                if not (self._drain_requested and self._is_online()):
                    break
            return replayed

    async def _drain_once(self, token: CancellationToken | None) -> int:
        replayed = 0
        for operation in self.operations:
            if token is not None:
                token.raise_if_cancelled()
            if not self._is_online():
                logger.info("Connectivity lost, stopping offline queue drain")
                break
            if not self._contains(operation.id):
                continue

            handler = self._handlers.get(operation.type)
            if handler is None:
                logger.warning(
                    f"No handler registered for {operation.type} operations, "
                    f"keeping {operation.id} queued"
                )
                continue

            try:
                await run_cancellable(handler(operation), token)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Failed to replay queued {operation.type} operation {operation.id}: {e}")
                continue

            self.remove(operation.id)
            replayed += 1
            logger.debug(f"Replayed queued {operation.type} operation {operation.id}")
        return replayed

    def schedule_drain(self) -> asyncio.Task[int]:
        """Start a drain in a background task.

        Must be called from a running event loop.

        Returns:
            The drain task, also awaited by ``wait_idle``. If a scheduled
            drain is still running, it is returned and asked to make one
            more pass.
        """
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_requested = True
            return self._drain_task
        task = asyncio.get_running_loop().create_task(self.drain())
        self._drain_task = task
        task.add_done_callback(self._on_drain_done)
        return task

    def _on_drain_done(self, task: asyncio.Task[int]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Offline queue drain failed: {exc}")

    async def wait_idle(self) -> None:
        """Wait for the last scheduled drain to finish."""
        task = self._drain_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def _on_connectivity_change(self, available: bool) -> None:
        if not available:
            return
        try:
            self.schedule_drain()
        except RuntimeError:
            logger.warning("Connectivity restored outside of an event loop, drain not scheduled")
        else:
            logger.info(f"Connectivity restored, draining {len(self)} queued operations")
