from __future__ import annotations

import logging
import time
from typing import AbstractSet, Optional

from ..codec import build_key, build_range_end, decode, pack_key
from ..errors import DecodeError, StoreError
from ..store.base import KvStore
from .metrics import observe_scan
from .models import Status

logger = logging.getLogger(__name__)


class ScanExecutor:
    """
    Bounded forward range read over one table, outside the batching path.

    Each scan is one read-only transaction with read-your-writes disabled:
    it targets committed state, not the session's buffered operations.
    A record that fails projection aborts the whole scan and no partial
    results are returned.
    """

    def __init__(self, store: KvStore, namespace: str) -> None:
        self.store = store
        self.namespace = namespace

    def scan(
        self,
        table: str,
        start_id: str,
        limit: int,
        projection: Optional[AbstractSet[str]] = None,
    ) -> tuple[Status, list[dict[str, str]]]:
        start_key = build_key(self.namespace, table, start_id)
        end_key = build_range_end(table, self.namespace)
        logger.debug("scan key from %s to %s limit %s", start_key, end_key, limit)

        start_time = time.monotonic()
        status = Status.ERROR

        try:
            tx = self.store.create_transaction(read_your_writes=False)
            try:
                entries = tx.get_range(pack_key(start_key), pack_key(end_key), limit if limit > 0 else 0)
            finally:
                # read-only; nothing to commit
                tx.rollback()

            records: list[dict[str, str]] = []
            for _, value in entries:
                fields, record_status = decode(value, projection)
                if record_status != Status.OK:
                    logger.error(
                        "Error scanning keys: from %s to %s limit %s", start_key, end_key, limit
                    )
                    return Status.ERROR, []
                records.append(fields)

            status = Status.OK
            return status, records
        except (StoreError, DecodeError):
            logger.exception("Error scanning keys: from %s to %s", start_key, end_key)
            return Status.ERROR, []
        except Exception:
            logger.exception("Unexpected error scanning keys: from %s to %s", start_key, end_key)
            return Status.ERROR, []
        finally:
            observe_scan(status, time.monotonic() - start_time)
