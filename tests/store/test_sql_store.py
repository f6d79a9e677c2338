from __future__ import annotations

import pytest
from sqlalchemy import create_engine

from kvbench.config import StoreConfig
from kvbench.errors import StoreError
from kvbench.store.sql import SqlKvStore


def test_transaction_commits_on_explicit_commit(store: SqlKvStore) -> None:
    """Test that buffered writes become visible after commit()."""
    tx = store.create_transaction()
    tx.set(b"k1", b"v1")
    tx.commit()

    tx2 = store.create_transaction()
    assert tx2.get(b"k1").result() == b"v1"
    tx2.commit()


def test_transaction_rolls_back_on_explicit_rollback(store: SqlKvStore) -> None:
    tx = store.create_transaction()
    tx.set(b"k1", b"v1")
    tx.rollback()

    tx2 = store.create_transaction()
    assert tx2.get(b"k1").result() is None
    tx2.rollback()


def test_uncommitted_writes_are_invisible_to_other_transactions(store: SqlKvStore) -> None:
    tx1 = store.create_transaction()
    tx1.set(b"k1", b"v1")

    tx2 = store.create_transaction()
    assert tx2.get(b"k1").result() is None
    tx2.rollback()
    tx1.commit()


def test_transaction_reads_its_own_writes(store: SqlKvStore) -> None:
    store.run(lambda tx: tx.set(b"k1", b"old"))

    tx = store.create_transaction()
    tx.set(b"k1", b"new")
    tx.clear(b"k2")
    assert tx.get(b"k1").result() == b"new"
    assert tx.get(b"k2").result() is None
    tx.rollback()


def test_read_your_writes_disabled_reads_committed_state(store: SqlKvStore) -> None:
    store.run(lambda tx: tx.set(b"k1", b"old"))

    tx = store.create_transaction(read_your_writes=False)
    tx.set(b"k1", b"new")
    assert tx.get(b"k1").result() == b"old"
    assert tx.get_range(b"k", b"l") == [(b"k1", b"old")]
    tx.rollback()


def test_clear_then_commit_removes_key(store: SqlKvStore) -> None:
    store.run(lambda tx: tx.set(b"k1", b"v1"))
    store.run(lambda tx: tx.clear(b"k1"))

    assert store.run(lambda tx: tx.get(b"k1").result()) is None


def test_set_overwrites_existing_value(store: SqlKvStore) -> None:
    store.run(lambda tx: tx.set(b"k1", b"v1"))
    store.run(lambda tx: tx.set(b"k1", b"v2"))

    assert store.run(lambda tx: tx.get(b"k1").result()) == b"v2"


def test_get_range_is_half_open_and_ordered(store: SqlKvStore) -> None:
    def _seed(tx) -> None:
        for k in [b"a", b"b", b"c", b"d"]:
            tx.set(k, k.upper())

    store.run(_seed)

    rows = store.run(lambda tx: tx.get_range(b"b", b"d"))
    assert rows == [(b"b", b"B"), (b"c", b"C")]


def test_get_range_limit_accounts_for_buffered_writes(store: SqlKvStore) -> None:
    def _seed(tx) -> None:
        for k in [b"a", b"b", b"c", b"d"]:
            tx.set(k, k.upper())

    store.run(_seed)

    tx = store.create_transaction()
    tx.clear(b"a")
    tx.clear(b"b")
    tx.set(b"bb", b"BB")
    assert tx.get_range(b"a", b"z", limit=2) == [(b"bb", b"BB"), (b"c", b"C")]
    tx.rollback()


def test_transaction_cannot_be_reused_after_commit(store: SqlKvStore) -> None:
    tx = store.create_transaction()
    tx.commit()

    with pytest.raises(RuntimeError, match="Transaction is closed"):
        tx.set(b"k", b"v")
    with pytest.raises(RuntimeError, match="Transaction is closed"):
        tx.get(b"k")
    with pytest.raises(RuntimeError, match="Transaction is already closed"):
        tx.commit()


def test_transaction_cannot_rollback_twice(store: SqlKvStore) -> None:
    tx = store.create_transaction()
    tx.rollback()

    with pytest.raises(RuntimeError, match="Transaction is already closed"):
        tx.rollback()


def test_oversized_key_is_rejected(store: SqlKvStore) -> None:
    tx = store.create_transaction()
    with pytest.raises(StoreError, match="Key exceeds"):
        tx.set(b"x" * 256, b"v")
    tx.rollback()


def test_run_returns_value_and_commits(store: SqlKvStore) -> None:
    def _body(tx) -> str:
        tx.set(b"k1", b"v1")
        return "done"

    assert store.run(_body) == "done"
    assert store.run(lambda tx: tx.get(b"k1").result()) == b"v1"


def test_run_rolls_back_and_reraises(store: SqlKvStore) -> None:
    def _body(tx) -> None:
        tx.set(b"k1", b"v1")
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        store.run(_body)

    assert store.run(lambda tx: tx.get(b"k1").result()) is None


def test_closed_store_rejects_new_transactions(engine, table_factory) -> None:
    kv_store = SqlKvStore(engine, table_factory(), io_threads=1)
    kv_store.close()
    kv_store.close()

    with pytest.raises(RuntimeError, match="Store is closed"):
        kv_store.create_transaction()


def test_unreachable_database_raises_store_error(tmp_path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'kv.db'}")
    kv_store = SqlKvStore(engine, "kv", io_threads=1, owns_engine=True)
    try:
        with pytest.raises(StoreError):
            kv_store.create_transaction()
    finally:
        kv_store.close()


def test_from_config_creates_schema(tmp_path) -> None:
    kv_store = SqlKvStore.from_config(StoreConfig(url=f"sqlite:///{tmp_path / 'kv.db'}", table_name="bench"))
    try:
        kv_store.ensure_schema()
        kv_store.run(lambda tx: tx.set(b"k", b"v"))
        assert kv_store.run(lambda tx: tx.get(b"k").result()) == b"v"
    finally:
        kv_store.close()
