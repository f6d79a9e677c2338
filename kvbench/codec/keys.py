from __future__ import annotations

from typing import Optional

from .tuples import pack

KEY_SEPARATOR = ":"
# Sorts immediately after KEY_SEPARATOR, so "<prefix>;" bounds every "<prefix>:<id>".
RANGE_TERMINATOR = ";"


def build_key(namespace: str, table: str, record_id: str) -> str:
    """Compose the row key ``namespace:table:record_id``."""
    return f"{namespace}{KEY_SEPARATOR}{table}{KEY_SEPARATOR}{record_id}"


def build_range_end(table: str, namespace: Optional[str] = None) -> str:
    """
    Exclusive upper bound for a scan over ``table``.

    With a namespace the bound is ``namespace:table;``, which sorts after
    every key built by ``build_key(namespace, table, ...)`` and at or before
    the keys of any other table in the same namespace.
    """
    if namespace is None:
        return f"{table}{RANGE_TERMINATOR}"
    return f"{namespace}{KEY_SEPARATOR}{table}{RANGE_TERMINATOR}"


def pack_key(key: str) -> bytes:
    """On-store form of a row key."""
    return pack((key,))
