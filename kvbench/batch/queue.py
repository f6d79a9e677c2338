from __future__ import annotations

from collections.abc import Iterator

from .models import Operation


class OperationQueue:
    """
    Ordered buffer of pending operations for one client session.

    The queue is owned by a single session and never shared across threads,
    so it does no locking of its own.
    """

    def __init__(self) -> None:
        self._ops: list[Operation] = []

    def append(self, op: Operation) -> None:
        self._ops.append(op)

    def should_flush(self, threshold: int) -> bool:
        """
        True once the buffer has reached ``threshold`` operations.

        A threshold of 0 (or less) disables batching: any buffered
        operation triggers a flush.
        """
        if threshold <= 0:
            return len(self._ops) >= 1
        return len(self._ops) >= threshold

    def drain_all(self) -> list[Operation]:
        """Return every buffered operation in order and leave the queue empty."""
        ops, self._ops = self._ops, []
        return ops

    def clear(self) -> None:
        self._ops = []

    def __len__(self) -> int:
        return len(self._ops)

    def __bool__(self) -> bool:
        return bool(self._ops)

    def __iter__(self) -> Iterator[Operation]:
        return iter(list(self._ops))
