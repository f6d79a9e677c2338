from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping

from .errors import ConfigError

DB_NAME = "kvbench.dbname"
DB_NAME_DEFAULT = "DB"
BATCH_SIZE = "kvbench.batchsize"
BATCH_SIZE_DEFAULT = "0"
STORE_URL = "kvbench.url"
STORE_URL_DEFAULT = "sqlite:///kvbench.db"
STORE_TABLE = "kvbench.table"
STORE_TABLE_DEFAULT = "kv"
IO_THREADS = "kvbench.iothreads"
IO_THREADS_DEFAULT = "8"


def _parse_int(props: Mapping[str, str], name: str, default: str) -> int:
    raw = props.get(name, default)
    try:
        return int(str(raw).strip())
    except ValueError as exc:
        raise ConfigError(f"Invalid value for {name} property: {raw!r}") from exc


def _validate_identifier(name: str, identifier_type: str = "identifier") -> str:
    """
    Validate that a table name is safe for SQL interpolation.

    Restricted to alphanumeric + underscore, starting with a letter or
    underscore, at most 64 characters (MySQL's identifier limit).

    Raises:
        ConfigError: If the identifier is not a string or contains unsafe characters
    """
    if not isinstance(name, str):
        raise ConfigError(f"{identifier_type} must be a string, got {type(name).__name__}")

    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", name):
        raise ConfigError(
            f"Invalid {identifier_type} {name!r}: "
            "must start with letter/underscore and contain only alphanumeric characters and underscores"
        )

    if len(name) > 64:
        raise ConfigError(f"{identifier_type} {name!r} exceeds the 64-character limit")

    return name


@dataclass(frozen=True)
class ClientConfig:
    """
    Per-session settings consumed by KvClient.

    batch_size is the number of buffered operations that triggers a flush;
    0 disables batching (every call flushes). db_name prefixes every row key.
    """

    db_name: str = DB_NAME_DEFAULT
    batch_size: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.batch_size, int) or isinstance(self.batch_size, bool):
            raise ConfigError(f"batch_size must be an int, got {self.batch_size!r}")
        if self.batch_size < 0:
            raise ConfigError("batch_size must be >= 0; use 0 to disable batching")
        if not self.db_name:
            raise ConfigError("db_name cannot be empty")

    @classmethod
    def from_properties(cls, props: Mapping[str, str]) -> "ClientConfig":
        return cls(
            db_name=props.get(DB_NAME, DB_NAME_DEFAULT),
            batch_size=_parse_int(props, BATCH_SIZE, BATCH_SIZE_DEFAULT),
        )


@dataclass(frozen=True)
class StoreConfig:
    url: str = STORE_URL_DEFAULT
    table_name: str = STORE_TABLE_DEFAULT
    io_threads: int = 8

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.url:
            raise ConfigError("url cannot be empty")
        _validate_identifier(self.table_name, "table")
        if self.io_threads <= 0:
            raise ConfigError("io_threads must be > 0")

    @classmethod
    def from_properties(cls, props: Mapping[str, str]) -> "StoreConfig":
        return cls(
            url=props.get(STORE_URL, STORE_URL_DEFAULT),
            table_name=props.get(STORE_TABLE, STORE_TABLE_DEFAULT),
            io_threads=_parse_int(props, IO_THREADS, IO_THREADS_DEFAULT),
        )
