from .keys import build_key, build_range_end, pack_key
from .values import decode, encode

__all__ = [
    "build_key",
    "build_range_end",
    "pack_key",
    "encode",
    "decode",
]
