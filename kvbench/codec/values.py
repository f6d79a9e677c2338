from __future__ import annotations

from typing import AbstractSet, Mapping, Optional

from ..status import Status
from ..errors import DecodeError
from .tuples import pack, unpack


def encode(fields: Mapping[str, str]) -> bytes:
    """Encode a field mapping as a packed tuple of ``(name, value)`` pairs."""
    return pack(tuple((name, value) for name, value in fields.items()))


def decode(
    data: bytes,
    projection: Optional[AbstractSet[str]] = None,
) -> tuple[dict[str, str], Status]:
    """
    Decode a record produced by ``encode``.

    Returns ``(mapping, Status.OK)`` on success, restricted to ``projection``
    when one is given; ``None`` or an empty set selects every field. Returns ``({}, Status.NOT_FOUND)`` when the record has
    no fields or when any projected field is missing.

    Raises:
        DecodeError: If ``data`` is not a sequence of string pairs
    """
    pairs = unpack(data)
    if not pairs:
        return {}, Status.NOT_FOUND

    record: dict[str, str] = {}
    for pair in pairs:
        if (
            not isinstance(pair, tuple)
            or len(pair) != 2
            or not isinstance(pair[0], str)
            or not isinstance(pair[1], str)
        ):
            raise DecodeError(f"Malformed field entry: {pair!r}")
        record[pair[0]] = pair[1]

    if not projection:
        return record, Status.OK

    missing = [name for name in projection if name not in record]
    if missing:
        return {}, Status.NOT_FOUND

    return {name: record[name] for name in projection}, Status.OK
