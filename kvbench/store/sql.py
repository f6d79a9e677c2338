from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional, TypeVar

from sqlalchemy import Column, LargeBinary, MetaData, Table, create_engine, delete, insert, select
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.types import VARBINARY

from ..config import StoreConfig
from ..errors import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_KEY_BYTES = 255


def make_kv_table(table_name: str, metadata: Optional[MetaData] = None) -> Table:
    return Table(
        table_name,
        metadata if metadata is not None else MetaData(),
        Column("k", VARBINARY(MAX_KEY_BYTES).with_variant(LargeBinary(), "sqlite"), primary_key=True),
        Column("v", LargeBinary, nullable=False),
    )


class SqlKvTransaction:
    """
    Key-value transaction on top of one SQLAlchemy connection.

    The transaction begins on construction and must be explicitly committed
    or rolled back. After commit or rollback the connection is closed and the
    transaction cannot be used again.

    Writes are buffered locally and applied in one go at commit, so the
    database only sees them if the whole transaction succeeds. With
    ``read_your_writes`` enabled, ``get`` and ``get_range`` observe the
    buffered writes; otherwise they read committed state only.

    ``get`` runs on the store's thread pool and returns a future. The
    connection is not safe for concurrent use, so access to it is
    serialized by a lock.

    ⚠️ Do NOT retry inside a single SqlKvTransaction. Each attempt must use a
    new transaction via SqlKvStore.create_transaction().
    """

    def __init__(self, store: "SqlKvStore", read_your_writes: bool = True) -> None:
        self._store = store
        self._table = store.table
        self.read_your_writes = read_your_writes
        self._lock = threading.Lock()
        self._writes: dict[bytes, Optional[bytes]] = {}
        self._closed = False
        self._conn: Connection | None = None
        self._tx = None

        try:
            self._conn = store.engine.connect()
            self._tx = self._conn.begin()
        except SQLAlchemyError as exc:
            if self._conn is not None:
                self._conn.close()
            self._closed = True
            raise StoreError(f"Failed to begin transaction: {exc}") from exc

    def _connection(self) -> Connection:
        """Get the active connection, raising if closed."""
        if self._closed or self._conn is None:
            raise RuntimeError("Transaction is closed")
        return self._conn

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Transaction is closed")

    def _fetch(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            conn = self._connection()
            try:
                row = conn.execute(select(self._table.c.v).where(self._table.c.k == key)).first()
            except SQLAlchemyError as exc:
                raise StoreError(f"get failed: {exc}") from exc
        if row is None:
            return None
        return bytes(row[0])

    def get(self, key: bytes) -> "Future[Optional[bytes]]":
        """
        Read one key asynchronously.

        With read-your-writes on, a key written or cleared earlier in this
        transaction resolves immediately from the write buffer.

        Args:
            key: Packed row key

        Returns:
            Future resolving to the stored value, or None if the key is absent

        Raises:
            RuntimeError: If transaction is closed
        """
        self._check_open()
        if self.read_your_writes and key in self._writes:
            fut: Future[Optional[bytes]] = Future()
            fut.set_result(self._writes[key])
            return fut
        return self._store.submit(self._fetch, key)

    def set(self, key: bytes, value: bytes) -> None:
        """
        Buffer a write of ``value`` under ``key``; applied on commit.

        Args:
            key: Packed row key
            value: Encoded record

        Raises:
            StoreError: If the key is longer than the key column allows
            RuntimeError: If transaction is closed
        """
        self._check_open()
        if len(key) > MAX_KEY_BYTES:
            raise StoreError(f"Key exceeds {MAX_KEY_BYTES} bytes: {key!r}")
        self._writes[key] = value

    def clear(self, key: bytes) -> None:
        """
        Buffer a removal of ``key``; applied on commit. Absent keys are fine.

        Raises:
            RuntimeError: If transaction is closed
        """
        self._check_open()
        self._writes[key] = None

    def get_range(self, begin: bytes, end: bytes, limit: int = 0) -> list[tuple[bytes, bytes]]:
        """
        Read ``[begin, end)`` in key order.

        Buffered clears can hide at most one database row each, so when
        merging buffered writes the database read is widened by the number
        of buffered writes in range before the limit is applied.

        Args:
            begin: Inclusive lower bound
            end: Exclusive upper bound
            limit: Maximum number of entries; 0 means unbounded

        Returns:
            List of (key, value) pairs in ascending key order

        Raises:
            StoreError: If the database read fails
            RuntimeError: If transaction is closed
        """
        pending = {}
        if self.read_your_writes:
            pending = {k: v for k, v in self._writes.items() if begin <= k < end}

        stmt = (
            select(self._table.c.k, self._table.c.v)
            .where(self._table.c.k >= begin, self._table.c.k < end)
            .order_by(self._table.c.k)
        )
        if limit > 0:
            stmt = stmt.limit(limit + len(pending))

        with self._lock:
            conn = self._connection()
            try:
                rows = conn.execute(stmt).all()
            except SQLAlchemyError as exc:
                raise StoreError(f"get_range failed: {exc}") from exc

        merged: dict[bytes, bytes] = {bytes(k): bytes(v) for k, v in rows}
        for k, v in pending.items():
            if v is None:
                merged.pop(k, None)
            else:
                merged[k] = v

        items = sorted(merged.items())
        if limit > 0:
            items = items[:limit]
        return items

    def commit(self) -> None:
        """
        Apply buffered writes, commit, and close the connection.

        Raises:
            StoreError: If applying writes or committing fails
            RuntimeError: If transaction is already closed
        """
        if self._closed:
            raise RuntimeError("Transaction is already closed")

        try:
            with self._lock:
                conn = self._connection()
                for key, value in self._writes.items():
                    conn.execute(delete(self._table).where(self._table.c.k == key))
                    if value is not None:
                        conn.execute(insert(self._table).values(k=key, v=value))
                if self._tx is not None:
                    self._tx.commit()
        except SQLAlchemyError as exc:
            # Best-effort rollback on commit failure
            try:
                if self._tx is not None:
                    self._tx.rollback()
            except Exception:
                pass
            raise StoreError(f"Commit failed: {exc}") from exc
        finally:
            self._close()

    def rollback(self) -> None:
        """
        Discard buffered writes, rollback, and close the connection.

        Raises:
            RuntimeError: If transaction is already closed
        """
        if self._closed:
            raise RuntimeError("Transaction is already closed")

        try:
            if self._tx is not None:
                self._tx.rollback()
        except SQLAlchemyError as exc:
            raise StoreError(f"Rollback failed: {exc}") from exc
        finally:
            self._close()

    def _close(self) -> None:
        self._closed = True
        self._writes.clear()
        if self._conn is not None:
            self._conn.close()
        self._conn = None
        self._tx = None


class SqlKvStore:
    """
    Ordered key-value store kept in one SQL table of ``(k, v)`` binary pairs.

    Built once per process by the bootstrap and shared by every client
    session; each transaction checks out its own pooled connection.

    Usage:
        store = SqlKvStore.from_config(StoreConfig(url="sqlite:///bench.db"))
        store.ensure_schema()
        value = store.run(lambda tx: tx.get(key).result())
    """

    def __init__(
        self,
        engine: Engine,
        table_name: str = "kv",
        io_threads: int = 8,
        *,
        owns_engine: bool = False,
    ) -> None:
        self.engine = engine
        self.table = make_kv_table(table_name)
        self._owns_engine = owns_engine
        self._pool = ThreadPoolExecutor(max_workers=io_threads, thread_name_prefix="kvbench-io")
        self._closed = False

    @classmethod
    def from_config(cls, config: StoreConfig) -> "SqlKvStore":
        url = make_url(config.url)
        connect_args = {}
        if url.get_backend_name() == "sqlite":
            # gets run on pool threads, not the thread that opened the connection
            connect_args["check_same_thread"] = False
        engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        return cls(engine, config.table_name, config.io_threads, owns_engine=True)

    def ensure_schema(self) -> None:
        """
        Create the backing table if it does not exist.

        Raises:
            StoreError: If the table cannot be created
        """
        try:
            self.table.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to create table {self.table.name}: {exc}") from exc

    def submit(self, fn: Callable[..., T], *args) -> "Future[T]":
        """Schedule ``fn(*args)`` on the store's IO pool."""
        if self._closed:
            raise RuntimeError("Store is closed")
        return self._pool.submit(fn, *args)

    def create_transaction(self, read_your_writes: bool = True) -> SqlKvTransaction:
        """
        Begin a new transaction on its own pooled connection.

        Args:
            read_your_writes: Whether reads observe this transaction's buffered writes

        Returns:
            An open SqlKvTransaction; the caller must commit or rollback

        Raises:
            StoreError: If a connection cannot be opened
            RuntimeError: If the store is closed
        """
        if self._closed:
            raise RuntimeError("Store is closed")
        return SqlKvTransaction(self, read_your_writes=read_your_writes)

    def run(self, fn: Callable[[SqlKvTransaction], T]) -> T:
        """
        Run ``fn`` in a new transaction and commit it.

        - Does not retry
        - Does not swallow exceptions raised by fn (re-raises)
        - Guarantees rollback when fn raises
        - Database failures surface as StoreError
        """
        tx = self.create_transaction()
        try:
            result = fn(tx)
        except SQLAlchemyError as exc:
            try:
                tx.rollback()
            finally:
                raise StoreError(str(exc)) from exc
        except Exception:
            # Best-effort rollback; do not swallow original exception.
            try:
                tx.rollback()
            finally:
                raise
        tx.commit()
        return result

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pool.shutdown(wait=True)
        if self._owns_engine:
            self.engine.dispose()
        logger.info("Closed key-value store on table %s", self.table.name)
