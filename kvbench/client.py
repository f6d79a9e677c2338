from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, MutableMapping, Optional

from .batch.executor import TransactionExecutor
from .batch.models import Operation, Status
from .batch.queue import OperationQueue
from .batch.scan import ScanExecutor
from .codec import build_key
from .config import ClientConfig, StoreConfig
from .errors import StoreError
from .store.base import KvStore
from .store.sql import SqlKvStore

logger = logging.getLogger(__name__)


class KvClient:
    """
    Benchmark client session: CRUD + scan against a shared key-value store.

    One instance per worker thread. read/insert/update/delete are buffered
    and return ``Status.BATCHED_OK`` until the buffer reaches
    ``config.batch_size``; the call that reaches it executes the whole
    buffer in one transaction and returns the batch verdict. Scans run
    immediately.

    Usage:
        factory = ClientFactory(store, ClientConfig(batch_size=10))
        client = factory.new_client()
        client.insert("usertable", "user1", {"field0": "a"})
        ...
        client.cleanup()
    """

    def __init__(self, store: KvStore, config: ClientConfig, *, owns_store: bool = False) -> None:
        self.store = store
        self.config = config
        self._owns_store = owns_store
        self._queue = OperationQueue()
        self._executor = TransactionExecutor(store)
        self._scanner = ScanExecutor(store, config.db_name)
        self._closed = False

    @classmethod
    def from_properties(cls, props: Mapping[str, str]) -> "KvClient":
        """Standalone session that owns (and on cleanup closes) its own store."""
        factory = ClientFactory.from_properties(props)
        return cls(factory.store, factory.config, owns_store=True)

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Client is closed")

    def _row_key(self, table: str, key: str) -> str:
        return build_key(self.config.db_name, table, key)

    # ----------------------  Benchmark interface  --------------------

    def read(
        self,
        table: str,
        key: str,
        fields: Optional[Iterable[str]] = None,
        result: Optional[MutableMapping[str, Any]] = None,
    ) -> Status:
        """
        Buffer a read of one record.

        Args:
            table: Logical table name
            key: Record id within the table
            fields: Field names to return; None or empty means all fields
            result: Filled with the decoded fields when the batch executes

        Returns:
            BATCHED_OK while buffered, otherwise the batch verdict

        Raises:
            RuntimeError: If the client is closed
        """
        self._check_open()
        row_key = self._row_key(table, key)
        logger.debug("read key = %s", row_key)
        return self._perform_batch(Operation.read(table, row_key, fields, result))

    def insert(self, table: str, key: str, values: Mapping[str, str]) -> Status:
        """
        Buffer a write of the full record ``values``, replacing any existing one.

        Args:
            table: Logical table name
            key: Record id within the table
            values: Field name to value mapping

        Returns:
            BATCHED_OK while buffered, otherwise the batch verdict

        Raises:
            RuntimeError: If the client is closed
        """
        self._check_open()
        row_key = self._row_key(table, key)
        logger.debug("insert key = %s", row_key)
        return self._perform_batch(Operation.insert(table, row_key, values))

    def update(self, table: str, key: str, values: Mapping[str, str]) -> Status:
        """
        Buffer a merge of ``values`` into an existing record.

        The batch verdict is ERROR if the record does not exist.

        Returns:
            BATCHED_OK while buffered, otherwise the batch verdict

        Raises:
            RuntimeError: If the client is closed
        """
        self._check_open()
        row_key = self._row_key(table, key)
        logger.debug("update key = %s", row_key)
        return self._perform_batch(Operation.update(table, row_key, values))

    def delete(self, table: str, key: str) -> Status:
        """
        Buffer removal of one record. Deleting an absent record is not an error.

        Returns:
            BATCHED_OK while buffered, otherwise the batch verdict

        Raises:
            RuntimeError: If the client is closed
        """
        self._check_open()
        row_key = self._row_key(table, key)
        logger.debug("delete key = %s", row_key)
        return self._perform_batch(Operation.delete(table, row_key))

    def scan(
        self,
        table: str,
        start_key: str,
        count: int,
        fields: Optional[Iterable[str]] = None,
    ) -> tuple[Status, list[dict[str, str]]]:
        """
        Read up to ``count`` records of ``table`` starting at ``start_key``.

        Runs immediately against committed state; buffered operations are
        neither flushed nor visible.

        Args:
            table: Logical table name
            start_key: Inclusive starting record id
            count: Maximum number of records; 0 or less means unbounded
            fields: Field names to return; None or empty means all fields

        Returns:
            (status, records) in key order; (ERROR, []) on any failure

        Raises:
            RuntimeError: If the client is closed
        """
        self._check_open()
        projection = frozenset(fields) if fields is not None else None
        return self._scanner.scan(table, start_key, count, projection or None)

    def flush(self) -> Status:
        """Execute any buffered operations now. An empty buffer is OK."""
        self._check_open()
        if not self._queue:
            return Status.OK
        return self._perform_batch(None, run_immediately=True)

    def cleanup(self) -> None:
        """
        Flush any buffered operations, then close the session.

        Safe to call more than once; only the first call flushes.

        Raises:
            StoreError: If closing an owned store fails
        """
        if self._closed:
            return

        if self._queue:
            status = self._perform_batch(None, run_immediately=True)
            if status != Status.OK:
                logger.error("Final flush during cleanup finished with %s", status.value)

        self._closed = True

        if self._owns_store:
            try:
                self.store.close()
            except Exception as exc:
                logger.error("Error in database operation: cleanup", exc_info=True)
                raise StoreError(str(exc)) from exc

    # ----------------------  Core  --------------------

    def _perform_batch(self, op: Optional[Operation], run_immediately: bool = False) -> Status:
        if op is not None:
            self._queue.append(op)

        if not run_immediately and not self._queue.should_flush(self.config.batch_size):
            return Status.BATCHED_OK

        # Drained before execution so a failed batch is never replayed.
        operations = self._queue.drain_all()
        return self._executor.execute(operations)

    @property
    def pending(self) -> int:
        """Number of buffered operations not yet executed."""
        return len(self._queue)


class ClientFactory:
    """
    Process-wide factory handing one shared store to every client session.

    Construct once at bootstrap and call ``new_client()`` per worker thread.
    """

    def __init__(self, store: KvStore, config: ClientConfig) -> None:
        self.store = store
        self.config = config

    @classmethod
    def from_properties(cls, props: Mapping[str, str]) -> "ClientFactory":
        """
        Build config and store from string properties.

        Raises:
            ConfigError: If any property value is invalid
            StoreError: If the backing table cannot be created
        """
        client_config = ClientConfig.from_properties(props)
        store_config = StoreConfig.from_properties(props)

        logger.info("DB name: %s", client_config.db_name)
        logger.info("DB batch size: %s", client_config.batch_size)
        logger.info("Store table: %s", store_config.table_name)
        logger.info("IO threads: %s", store_config.io_threads)

        store = SqlKvStore.from_config(store_config)
        try:
            store.ensure_schema()
        except StoreError:
            store.close()
            raise
        return cls(store, client_config)

    def new_client(self) -> KvClient:
        return KvClient(self.store, self.config)

    def close(self) -> None:
        self.store.close()
