from __future__ import annotations

import logging
import time
from concurrent.futures import Future, wait
from typing import Optional, Sequence

from ..codec import decode, encode, pack_key
from ..errors import StoreError
from ..store.base import KvStore, KvTransaction
from .metrics import observe_flush
from .models import Operation, OperationKind, Status

logger = logging.getLogger(__name__)


def _serialize(operations: Sequence[Operation]) -> str:
    return "\n".join(op.describe() for op in operations)


class TransactionExecutor:
    """
    Executes a drained batch of operations inside one store transaction.

    Execution order:
    1) open one transaction
    2) dispatch every operation in order: INSERT/DELETE are buffered writes,
       READ/UPDATE issue an asynchronous get
    3) wait for all outstanding gets together
    4) resolve each READ/UPDATE result in order (UPDATE writes its merge)
    5) commit, and reduce the results to one verdict

    The verdict is ERROR if any READ/UPDATE result is not OK. INSERT and
    DELETE never contribute a result; their failures surface as a failure
    of the whole transaction. Mutations that succeeded are committed even
    when the verdict is ERROR.

    - Does not retry
    - Never raises: every failure is logged and reported as ERROR
    """

    def __init__(self, store: KvStore) -> None:
        self.store = store

    def execute(self, operations: Sequence[Operation]) -> Status:
        if not operations:
            return Status.OK

        start_time = time.monotonic()
        status = Status.ERROR

        try:
            status = self.store.run(lambda tx: self._run_batch(tx, operations))
        except StoreError:
            logger.exception("Store error performing batch operation -\n%s", _serialize(operations))
        except Exception:
            logger.exception("Error performing batch operation -\n%s", _serialize(operations))
        finally:
            latency = time.monotonic() - start_time
            observe_flush(status, len(operations), latency)

        return status

    def _run_batch(self, tx: KvTransaction, operations: Sequence[Operation]) -> Status:
        pending: list[tuple[Operation, Future[Optional[bytes]]]] = []

        for op in operations:
            key = pack_key(op.key)
            if op.kind == OperationKind.INSERT:
                tx.set(key, encode(op.fields))
            elif op.kind == OperationKind.DELETE:
                tx.clear(key)
            elif op.kind in (OperationKind.READ, OperationKind.UPDATE):
                pending.append((op, tx.get(key)))
            else:
                raise ValueError(f"Unsupported operation kind: {op.kind}")

        # Every get is in flight before any is awaited.
        wait([fut for _, fut in pending])

        results = [self._resolve(tx, op, fut.result()) for op, fut in pending]
        logger.debug("Batch results: %s", " ".join(s.value for s in results))

        if any(s != Status.OK for s in results):
            return Status.ERROR
        return Status.OK

    def _resolve(self, tx: KvTransaction, op: Operation, row: Optional[bytes]) -> Status:
        if op.kind == OperationKind.READ:
            return self._perform_read(op, row)
        return self._perform_update(tx, op, row)

    def _perform_read(self, op: Operation, row: Optional[bytes]) -> Status:
        if row is None:
            logger.debug("Key not found: %s", op.key)
            return Status.NOT_FOUND

        fields, status = decode(row, op.projection)
        if status == Status.OK and op.result is not None:
            op.result.update(fields)
        return status

    def _perform_update(self, tx: KvTransaction, op: Operation, row: Optional[bytes]) -> Status:
        """
        Read-modify-write merge: supplied fields overwrite, all other stored
        fields are kept. A missing or empty record is NOT_FOUND and nothing
        is written.
        """
        if row is None:
            logger.debug("Key not found: %s", op.key)
            return Status.NOT_FOUND

        record, status = decode(row)
        if status != Status.OK:
            logger.debug("Key not found: %s", op.key)
            return Status.NOT_FOUND

        record.update(op.fields)
        tx.set(pack_key(op.key), encode(record))
        return Status.OK
