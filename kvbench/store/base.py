from __future__ import annotations

from concurrent.futures import Future
from typing import Callable, Optional, Protocol, TypeVar

T = TypeVar("T")


class KvTransaction(Protocol):
    """
    Protocol for one atomic transaction against an ordered key-value store.

    Reads are asynchronous and return futures so that many of them can be
    outstanding at once against the same transaction. Writes are buffered
    and become visible to other transactions only on commit.
    """

    def get(self, key: bytes) -> "Future[Optional[bytes]]":
        """Fetch the value stored at key; the future resolves to None if absent."""
        ...

    def set(self, key: bytes, value: bytes) -> None:
        """Write value at key."""
        ...

    def clear(self, key: bytes) -> None:
        """Remove key."""
        ...

    def get_range(self, begin: bytes, end: bytes, limit: int = 0) -> list[tuple[bytes, bytes]]:
        """Return pairs with begin <= key < end in key order; limit <= 0 means unbounded."""
        ...

    def commit(self) -> None:
        """Commit the transaction."""
        ...

    def rollback(self) -> None:
        """Rollback the transaction."""
        ...


class KvStore(Protocol):
    def create_transaction(self, read_your_writes: bool = True) -> KvTransaction:
        """Begin a new transaction."""
        ...

    def run(self, fn: Callable[[KvTransaction], T]) -> T:
        """Run fn inside a new transaction and commit it; no retries."""
        ...

    def close(self) -> None:
        """Release the store's resources."""
        ...
