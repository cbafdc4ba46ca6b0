"""Firestore-backed document store (production).

Thin adapter over ``google.cloud.firestore.AsyncClient``. Batches map
one-to-one onto Firestore write batches, which are atomic server-side.
Google API errors are translated into ``DocumentStoreError`` so the
routers never see SDK exception types.
"""

import inspect
import logging

from google.api_core import exceptions as gexc
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter as FirestoreFieldFilter

from firmbook.documents.store import DELETE_FIELD, DocumentStore, FieldFilter, WriteBatch
from firmbook.middleware.exceptions import DocumentNotFoundError, DocumentStoreError

logger = logging.getLogger(__name__)


class FirestoreWriteBatch(WriteBatch):
    def __init__(self, client: firestore.AsyncClient):
        super().__init__()
        self._client = client

    async def commit(self) -> None:
        fs_batch = self._client.batch()
        for op in self.ops:
            ref = self._client.collection(op.collection).document(op.doc_id)
            if op.kind == "set":
                fs_batch.set(ref, op.data)
            elif op.kind == "update":
                fs_batch.update(ref, {
                    k: firestore.DELETE_FIELD if v is DELETE_FIELD else v
                    for k, v in op.data.items()
                })
            else:
                fs_batch.delete(ref)
        try:
            await fs_batch.commit()
        except gexc.NotFound as e:
            # The error does not say which update failed, so every update is a suspect
            suspects = [f"{op.collection}/{op.doc_id}" for op in self.ops if op.kind == "update"]
            logger.warning("Batch rejected, document missing among %s: %s", suspects, e)
            if suspects:
                raise DocumentNotFoundError(*suspects) from e
            raise DocumentStoreError(str(e)) from e
        except gexc.GoogleAPIError as e:
            logger.exception("Firestore batch commit failed (%d writes)", len(self.ops))
            raise DocumentStoreError("Could not save changes. Please try again.") from e


class FirestoreDocumentStore(DocumentStore):
    def __init__(self, project: str | None = None, database: str | None = None):
        self._client = firestore.AsyncClient(project=project or None, database=database or None)

    async def get(self, collection: str, doc_id: str) -> dict | None:
        try:
            snap = await self._client.collection(collection).document(doc_id).get()
        except gexc.GoogleAPIError as e:
            logger.exception("Firestore read failed: %s/%s", collection, doc_id)
            raise DocumentStoreError() from e
        if not snap.exists:
            return None
        return {**snap.to_dict(), "id": snap.id}

    async def query(self, collection: str, *filters: FieldFilter) -> list[dict]:
        q = self._client.collection(collection)
        for f in filters:
            q = q.where(filter=FirestoreFieldFilter(f.field, f.op, f.value))
        try:
            return [{**snap.to_dict(), "id": snap.id} async for snap in q.stream()]
        except gexc.GoogleAPIError as e:
            logger.exception("Firestore query failed: %s", collection)
            raise DocumentStoreError() from e

    def new_id(self, collection: str) -> str:
        return self._client.collection(collection).document().id

    def batch(self) -> FirestoreWriteBatch:
        return FirestoreWriteBatch(self._client)

    async def close(self) -> None:
        closing = self._client.close()
        if inspect.isawaitable(closing):
            await closing
