"""Store contract used by the transfer pipelines.

Reads are async iterators so exports stay lazy; writes are single awaitable
inserts of one root record together with its nested children.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict, Protocol

from .query import DeepQuery, FlatQuery


class StoreError(Exception):
    pass


class StoreConflictError(StoreError):
    def __init__(self, *, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"duplicate key {key!r} for {entity}")


class StoreConstraintError(StoreError):
    pass


class RecordStore(Protocol):
    def select_deep(self, query: DeepQuery) -> AsyncIterator[Dict[str, Any]]: ...

    def select_flat(self, query: FlatQuery) -> AsyncIterator[Dict[str, Any]]: ...

    async def insert(self, entity: str, record: Dict[str, Any]) -> None: ...
