from .base import KvStore, KvTransaction
from .sql import SqlKvStore, SqlKvTransaction

__all__ = [
    "KvStore",
    "KvTransaction",
    "SqlKvStore",
    "SqlKvTransaction",
]
