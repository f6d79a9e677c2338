from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import AbstractSet, Any, Iterable, Mapping, MutableMapping, Optional

from ..status import Status

__all__ = ["Operation", "OperationKind", "Status"]


class OperationKind(str, Enum):
    READ = "read"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Operation:
    """
    A single buffered request against one row key.

    For INSERT/UPDATE ``fields`` holds the values to write or merge. For READ
    ``projection`` holds the requested field names (``None`` means all fields)
    and ``result``, when given, receives the decoded fields once the batch
    containing this read has executed.
    """
    kind: OperationKind
    table: str
    key: str
    fields: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    projection: Optional[AbstractSet[str]] = None
    # output slot for READ, not part of identity
    result: Optional[MutableMapping[str, Any]] = field(default=None, compare=False, repr=False)

    @classmethod
    def read(
        cls,
        table: str,
        key: str,
        fields: Optional[Iterable[str]] = None,
        result: Optional[MutableMapping[str, Any]] = None,
    ) -> "Operation":
        # an empty field set selects every field
        projection = frozenset(fields) if fields is not None else None
        return cls(OperationKind.READ, table, key, projection=projection or None, result=result)

    @classmethod
    def insert(cls, table: str, key: str, values: Mapping[str, str]) -> "Operation":
        return cls(OperationKind.INSERT, table, key, fields=MappingProxyType(dict(values)))

    @classmethod
    def update(cls, table: str, key: str, values: Mapping[str, str]) -> "Operation":
        return cls(OperationKind.UPDATE, table, key, fields=MappingProxyType(dict(values)))

    @classmethod
    def delete(cls, table: str, key: str) -> "Operation":
        return cls(OperationKind.DELETE, table, key)

    def describe(self) -> str:
        """One-line rendering used in batch failure logs."""
        if self.kind == OperationKind.READ:
            payload = sorted(self.projection) if self.projection is not None else "<all fields>"
        else:
            payload = dict(self.fields)
        return f"{self.kind.value}, {self.key}, {payload}, {self.table}"
