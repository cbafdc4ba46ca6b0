"""Document store interface.

The billing data lives in flat collections of JSON-like documents keyed
by generated ids. Every backend offers the same small surface:

  get(collection, id)            → dict | None
  query(collection, *filters)    → list[dict]
  new_id(collection)             → str
  batch()                        → WriteBatch (set / update / delete / commit)

Documents returned by ``get`` and ``query`` always carry their ``id``.

Batch semantics follow Firestore: operations are buffered locally and
applied atomically on ``commit()``. An ``update`` of a document that does
not exist fails the whole batch with ``DocumentNotFoundError`` and nothing
is applied.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

OPERATORS = ("==", "!=", "in", "<", "<=", ">", ">=")


class _DeleteField:
    """Sentinel: remove the field when used as a value in update()."""

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op!r}")

    def matches(self, doc: dict) -> bool:
        # Missing fields never match, like a Firestore where() clause
        if self.field not in doc:
            return False
        actual = doc[self.field]
        if self.op == "==":
            return actual == self.value
        if self.op == "!=":
            return actual != self.value
        if self.op == "in":
            return actual in self.value
        if actual is None:
            return False
        if self.op == "<":
            return actual < self.value
        if self.op == "<=":
            return actual <= self.value
        if self.op == ">":
            return actual > self.value
        return actual >= self.value


def where(field_name: str, op: str, value: Any) -> FieldFilter:
    return FieldFilter(field_name, op, value)


@dataclass
class WriteOp:
    kind: str  # set | update | delete
    collection: str
    doc_id: str
    data: dict | None = None


@dataclass
class WriteBatch(ABC):
    """Buffered multi-document write, applied atomically on commit()."""

    ops: list[WriteOp] = field(default_factory=list)

    def set(self, collection: str, doc_id: str, data: dict) -> "WriteBatch":
        self.ops.append(WriteOp("set", collection, doc_id, dict(data)))
        return self

    def update(self, collection: str, doc_id: str, data: dict) -> "WriteBatch":
        self.ops.append(WriteOp("update", collection, doc_id, dict(data)))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self.ops.append(WriteOp("delete", collection, doc_id))
        return self

    def __len__(self) -> int:
        return len(self.ops)

    @abstractmethod
    async def commit(self) -> None:
        ...


class DocumentStore(ABC):
    """Async document store used by every service and router."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict | None:
        ...

    @abstractmethod
    async def query(self, collection: str, *filters: FieldFilter) -> list[dict]:
        ...

    @abstractmethod
    def new_id(self, collection: str) -> str:
        ...

    @abstractmethod
    def batch(self) -> WriteBatch:
        ...

    async def get_many(self, collection: str, doc_ids: list[str]) -> dict[str, dict]:
        """Fetch several documents by id; missing ids are left out."""
        found: dict[str, dict] = {}
        for doc_id in dict.fromkeys(doc_ids):
            doc = await self.get(collection, doc_id)
            if doc is not None:
                found[doc_id] = doc
        return found

    async def ping(self) -> None:
        """Cheap round trip used by the readiness probe."""
        await self.query("firms")

    async def close(self) -> None:
        return None
