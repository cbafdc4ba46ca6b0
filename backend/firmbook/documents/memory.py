"""In-process document store.

Used for tests and local development. Commits are serialised with an
asyncio lock and validated before any operation is applied, so a batch
is either applied completely or not at all.
"""

import asyncio
import copy
import logging
import uuid

from firmbook.documents.store import DELETE_FIELD, DocumentStore, FieldFilter, WriteBatch
from firmbook.middleware.exceptions import DocumentNotFoundError

logger = logging.getLogger(__name__)


class MemoryWriteBatch(WriteBatch):
    def __init__(self, store: "MemoryDocumentStore"):
        super().__init__()
        self._store = store

    async def commit(self) -> None:
        await self._store._apply(self.ops)


class MemoryDocumentStore(DocumentStore):
    def __init__(self, seed: dict[str, dict[str, dict]] | None = None):
        self._collections: dict[str, dict[str, dict]] = {}
        self._lock = asyncio.Lock()
        self.commit_count = 0
        for collection, docs in (seed or {}).items():
            for doc_id, data in docs.items():
                self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    async def get(self, collection: str, doc_id: str) -> dict | None:
        doc = self._collections.get(collection, {}).get(doc_id)
        if doc is None:
            return None
        return {**copy.deepcopy(doc), "id": doc_id}

    async def query(self, collection: str, *filters: FieldFilter) -> list[dict]:
        results = []
        for doc_id, doc in self._collections.get(collection, {}).items():
            if all(f.matches(doc) for f in filters):
                results.append({**copy.deepcopy(doc), "id": doc_id})
        return results

    def new_id(self, collection: str) -> str:
        return uuid.uuid4().hex[:20]

    def batch(self) -> MemoryWriteBatch:
        return MemoryWriteBatch(self)

    async def _apply(self, ops) -> None:
        async with self._lock:
            # Work on a copy of every touched collection, swap in at the end
            staged = {
                op.collection: dict(self._collections.get(op.collection, {}))
                for op in ops
            }
            for op in ops:
                docs = staged[op.collection]
                if op.kind == "set":
                    docs[op.doc_id] = copy.deepcopy(op.data)
                elif op.kind == "update":
                    if op.doc_id not in docs:
                        raise DocumentNotFoundError(f"{op.collection}/{op.doc_id}")
                    merged = {**docs[op.doc_id], **copy.deepcopy(op.data)}
                    docs[op.doc_id] = {k: v for k, v in merged.items() if v is not DELETE_FIELD}
                elif op.kind == "delete":
                    docs.pop(op.doc_id, None)
            self._collections.update(staged)
            self.commit_count += 1
            logger.debug("Committed batch of %d writes", len(ops))

    def dump(self, collection: str) -> dict[str, dict]:
        """Snapshot of one collection, keyed by id."""
        return copy.deepcopy(self._collections.get(collection, {}))
