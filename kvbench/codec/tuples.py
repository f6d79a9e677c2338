"""
Order-preserving tuple packing.

Encodes tuples of ``None``, ``bytes``, ``str`` and nested tuples into a
byte string whose byte-wise ordering matches the element-wise ordering of
the original tuples. This is the same layout used by the FoundationDB
tuple layer for those types, so stored keys and values stay readable by
other tuple-layer tooling:

    0x00            None (0x00 0xFF when nested)
    0x01 ... 0x00   bytes, with embedded 0x00 escaped as 0x00 0xFF
    0x02 ... 0x00   UTF-8 string, same escaping
    0x05 ... 0x00   nested tuple
"""

from __future__ import annotations

from typing import Any, Iterable

from ..errors import DecodeError

NULL_CODE = 0x00
BYTES_CODE = 0x01
STRING_CODE = 0x02
NESTED_CODE = 0x05

_ESCAPE = 0xFF


def _escape(raw: bytes) -> bytes:
    return raw.replace(b"\x00", b"\x00\xff")


def _encode(value: Any, nested: bool) -> bytes:
    if value is None:
        return b"\x00\xff" if nested else b"\x00"
    if isinstance(value, (bytes, bytearray)):
        return bytes([BYTES_CODE]) + _escape(bytes(value)) + b"\x00"
    if isinstance(value, str):
        return bytes([STRING_CODE]) + _escape(value.encode("utf-8")) + b"\x00"
    if isinstance(value, (tuple, list)):
        return bytes([NESTED_CODE]) + b"".join(_encode(v, True) for v in value) + b"\x00"
    raise TypeError(f"Unsupported tuple element type: {type(value).__name__}")


def pack(items: Iterable[Any]) -> bytes:
    """Pack an iterable of elements into an order-preserving byte string."""
    return b"".join(_encode(v, False) for v in items)


def _find_terminator(data: bytes, pos: int) -> int:
    while True:
        idx = data.find(b"\x00", pos)
        if idx < 0:
            raise DecodeError(f"Unterminated string at offset {pos}")
        if idx + 1 < len(data) and data[idx + 1] == _ESCAPE:
            pos = idx + 2
            continue
        return idx


def _decode(data: bytes, pos: int) -> tuple[Any, int]:
    code = data[pos]

    if code == NULL_CODE:
        return None, pos + 1

    if code in (BYTES_CODE, STRING_CODE):
        end = _find_terminator(data, pos + 1)
        raw = data[pos + 1:end].replace(b"\x00\xff", b"\x00")
        if code == BYTES_CODE:
            return raw, end + 1
        try:
            return raw.decode("utf-8"), end + 1
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Invalid UTF-8 string at offset {pos}") from exc

    if code == NESTED_CODE:
        pos += 1
        items: list[Any] = []
        while True:
            if pos >= len(data):
                raise DecodeError("Unterminated nested tuple")
            if data[pos] == NULL_CODE:
                if pos + 1 < len(data) and data[pos + 1] == _ESCAPE:
                    items.append(None)
                    pos += 2
                    continue
                return tuple(items), pos + 1
            value, pos = _decode(data, pos)
            items.append(value)

    raise DecodeError(f"Unknown type code 0x{code:02x} at offset {pos}")


def unpack(data: bytes) -> tuple[Any, ...]:
    """
    Unpack a byte string produced by ``pack``.

    Raises:
        DecodeError: If the bytes are not a well-formed packed tuple
    """
    pos = 0
    items: list[Any] = []
    while pos < len(data):
        value, pos = _decode(data, pos)
        items.append(value)
    return tuple(items)
