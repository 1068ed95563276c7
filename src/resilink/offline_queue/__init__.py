r"""Durable offline queue replayed when connectivity returns.

Public API:
    - OfflineQueue: FIFO queue with per-type replay handlers
    - QueuedOperation: The persisted operation record
    - QueueStorage: Abstract storage backend
    - InMemoryQueueStorage: Non-durable backend
    - JsonFileQueueStorage: Atomic JSON document backend
"""

from __future__ import annotations

__all__ = [
    "InMemoryQueueStorage",
    "JsonFileQueueStorage",
    "OfflineQueue",
    "QueueStorage",
    "QueuedOperation",
]

from resilink.offline_queue.operation import QueuedOperation
from resilink.offline_queue.queue import OfflineQueue
from resilink.offline_queue.storage import (
    InMemoryQueueStorage,
    JsonFileQueueStorage,
    QueueStorage,
)
