r"""Queued operation model.

This module defines the record persisted by the offline queue. The
payload is opaque to the queue; only the handler registered for the
operation type interprets it.
"""

from __future__ import annotations

__all__ = ["QueuedOperation"]

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from resilink.errors import AppError


@dataclass(frozen=True)
class QueuedOperation:
    """An operation deferred until connectivity returns.

    Attributes:
        type: Type tag selecting the replay handler (e.g. ``"likePost"``).
        payload: JSON-compatible payload passed to the handler.
        id: Unique identifier, generated on creation.
        enqueued_at: UTC timestamp of the enqueue.

    Raises:
        ValueError: If ``type`` is empty or ``payload`` is not a dict.

    Example:
        ```pycon
        >>> from resilink.offline_queue import QueuedOperation
        >>> op = QueuedOperation(type="likePost", payload={"post_id": "123"})
        >>> op.type
        'likePost'
        >>> QueuedOperation.from_dict(op.to_dict()) == op
        True

        ```
    """

    type: str
    payload: dict[str, Any]
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not self.type:
            msg = "operation type is required"
            raise ValueError(msg)
        if not isinstance(self.payload, dict):
            msg = f"payload must be a dict, got {type(self.payload).__name__}"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-compatible representation.

        ``id`` is rendered as a string and ``enqueued_at`` as an ISO-8601
        string.
        """
        return {
            "id": str(self.id),
            "type": self.type,
            "payload": self.payload,
            "enqueued_at": self.enqueued_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueuedOperation:
        """Build an operation from its JSON-compatible representation.

        Args:
            data: A mapping produced by ``to_dict``.

        Returns:
            The decoded operation.

        Raises:
            AppError: Of kind ``DATA_CORRUPTION`` if a field is missing
                or malformed.
        """
        try:
            return cls(
                type=data["type"],
                payload=data["payload"],
                id=uuid.UUID(data["id"]),
                enqueued_at=datetime.fromisoformat(data["enqueued_at"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Invalid queued operation record: {exc}"
            raise AppError.data_corruption(msg) from exc
