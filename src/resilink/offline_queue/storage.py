r"""Durable storage backends for the offline queue.

A storage keeps the full ordered list of queued operations. The queue
saves the complete list after every change, so backends only need to
implement whole-list ``load`` and ``save``.
"""

from __future__ import annotations

__all__ = ["InMemoryQueueStorage", "JsonFileQueueStorage", "QueueStorage"]

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from resilink.config import DEFAULT_STORAGE_KEY
from resilink.errors import AppError
from resilink.offline_queue.operation import QueuedOperation

if TYPE_CHECKING:
    from collections.abc import Sequence

logger: logging.Logger = logging.getLogger(__name__)


class QueueStorage(ABC):
    """Abstract base class for offline queue storage backends."""

    @abstractmethod
    def load(self) -> list[QueuedOperation]:
        """Load the persisted operations in FIFO order.

        Returns:
            The persisted operations, or an empty list if nothing was
            persisted yet.

        Raises:
            AppError: Of kind ``DATA_CORRUPTION`` if the persisted data
                cannot be decoded, or ``STORAGE_ERROR`` if it cannot be
                read.
        """

    @abstractmethod
    def save(self, operations: Sequence[QueuedOperation]) -> None:
        """Replace the persisted operations.

        Args:
            operations: The full list of operations in FIFO order.

        Raises:
            AppError: Of kind ``STORAGE_ERROR`` if the write fails.
        """


class InMemoryQueueStorage(QueueStorage):
    r"""Storage keeping the operations in memory.

    Nothing survives the process, but a queue re-created on the same
    storage object sees the saved operations.

    Example:
        ```pycon
        >>> from resilink.offline_queue import InMemoryQueueStorage, QueuedOperation
        >>> storage = InMemoryQueueStorage()
        >>> storage.save([QueuedOperation(type="likePost", payload={"post_id": "1"})])
        >>> [op.type for op in storage.load()]
        ['likePost']

        ```
    """

    def __init__(self, operations: Sequence[QueuedOperation] = ()) -> None:
        self._operations = list(operations)
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(count={len(self._operations)})"

    def load(self) -> list[QueuedOperation]:
        with self._lock:
            return list(self._operations)

    def save(self, operations: Sequence[QueuedOperation]) -> None:
        with self._lock:
            self._operations = list(operations)


class JsonFileQueueStorage(QueueStorage):
    r"""Storage persisting the operations in a JSON document.

    The file holds a JSON object. The operations are stored as an array
    under ``key``; any other keys of the document are preserved. Writes
    go to a temporary file in the same directory which then replaces the
    document, so a reader never sees a partial write.

    Args:
        path: Path of the JSON document. Parent directories are created
            on the first save.
        key: The key holding the operations array.

    Example:
        ```pycon
        >>> import tempfile
        >>> from pathlib import Path
        >>> from resilink.offline_queue import JsonFileQueueStorage, QueuedOperation
        >>> with tempfile.TemporaryDirectory() as tmp:
        ...     storage = JsonFileQueueStorage(Path(tmp) / "state.json")
        ...     storage.save([QueuedOperation(type="logWorkout", payload={"minutes": 30})])
        ...     [op.payload for op in storage.load()]
        ...
        [{'minutes': 30}]

        ```
    """

    def __init__(self, path: str | os.PathLike[str], key: str = DEFAULT_STORAGE_KEY) -> None:
        self._path = Path(path)
        self._key = key
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={str(self._path)!r}, key={self._key!r})"

    @property
    def path(self) -> Path:
        return self._path

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> list[QueuedOperation]:
        with self._lock:
            document = self._read_document()
        records = document.get(self._key, [])
        if not isinstance(records, list):
            msg = f"Expected a JSON array under {self._key!r} in {self._path}"
            raise AppError.data_corruption(msg)
        operations = [QueuedOperation.from_dict(record) for record in records]
        logger.debug(f"Loaded {len(operations)} queued operations from {self._path}")
        return operations

    def save(self, operations: Sequence[QueuedOperation]) -> None:
        with self._lock:
            try:
                document = self._read_document()
            except AppError as exc:
                logger.warning(f"Overwriting unreadable queue document {self._path}: {exc}")
                document = {}
            document[self._key] = [op.to_dict() for op in operations]
            self._write_document(document)

    def _read_document(self) -> dict[str, Any]:
        """Read the whole JSON document. Must be called with the lock
        held."""
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            msg = f"Failed to read offline queue from {self._path}: {exc}"
            raise AppError.storage_error(msg) from exc

        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            msg = f"Offline queue file {self._path} is not valid JSON: {exc}"
            raise AppError.data_corruption(msg) from exc
        if not isinstance(document, dict):
            msg = f"Offline queue file {self._path} does not hold a JSON object"
            raise AppError.data_corruption(msg)
        return document

    def _write_document(self, document: dict[str, Any]) -> None:
        """Atomically replace the JSON document. Must be called with the
        lock held."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
        except OSError as exc:
            msg = f"Failed to write offline queue to {self._path}: {exc}"
            raise AppError.storage_error(msg) from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self._path)
        except (OSError, TypeError, ValueError) as exc:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            msg = f"Failed to write offline queue to {self._path}: {exc}"
            raise AppError.storage_error(msg) from exc
