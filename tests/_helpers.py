from __future__ import annotations

from typing import Mapping, Optional

from kvbench.codec import decode, encode, pack_key
from kvbench.store.sql import SqlKvStore


def put_record(store: SqlKvStore, row_key: str, fields: Mapping[str, str]) -> None:
    store.run(lambda tx: tx.set(pack_key(row_key), encode(fields)))


def put_raw(store: SqlKvStore, row_key: str, raw: bytes) -> None:
    store.run(lambda tx: tx.set(pack_key(row_key), raw))


def get_record(store: SqlKvStore, row_key: str) -> Optional[dict[str, str]]:
    raw = store.run(lambda tx: tx.get(pack_key(row_key)).result())
    if raw is None:
        return None
    record, _ = decode(raw)
    return record
