"""Tests for the Firestore backend against a fake AsyncClient."""

import pytest
from google.api_core import exceptions as gexc
from google.cloud import firestore

from firmbook.documents import firestore as firestore_backend
from firmbook.documents.firestore import FirestoreDocumentStore
from firmbook.documents.store import DELETE_FIELD, where
from firmbook.middleware.exceptions import DocumentNotFoundError, DocumentStoreError


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data)


class FakeDocRef:
    def __init__(self, client, collection, doc_id):
        self.client = client
        self.path = f"{collection}/{doc_id}"
        self.id = doc_id

    async def get(self):
        if self.client.read_error:
            raise self.client.read_error
        return FakeSnapshot(self.id, self.client.docs.get(self.path))


class FakeQuery:
    def __init__(self, client, collection):
        self.client = client
        self.collection = collection
        self.filters = []

    def document(self, doc_id=None):
        return FakeDocRef(self.client, self.collection, doc_id or "generated-id")

    def where(self, *, filter):
        self.filters.append(filter)
        self.client.queries.append(self)
        return self

    async def stream(self):
        if self.client.read_error:
            raise self.client.read_error
        prefix = f"{self.collection}/"
        for path, data in self.client.docs.items():
            if path.startswith(prefix):
                yield FakeSnapshot(path[len(prefix):], data)


class FakeBatch:
    def __init__(self, client):
        self.client = client
        self.writes = []

    def set(self, ref, data):
        self.writes.append(("set", ref.path, data))

    def update(self, ref, data):
        self.writes.append(("update", ref.path, data))

    def delete(self, ref):
        self.writes.append(("delete", ref.path, None))

    async def commit(self):
        self.client.batches.append(self)
        if self.client.commit_error:
            raise self.client.commit_error


class FakeAsyncClient:
    """Just enough of ``firestore.AsyncClient`` for the document store."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.docs: dict[str, dict] = {}
        self.queries: list[FakeQuery] = []
        self.batches: list[FakeBatch] = []
        self.read_error = None
        self.commit_error = None
        self.closed = False

    def collection(self, name):
        return FakeQuery(self, name)

    def batch(self):
        return FakeBatch(self)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_client(monkeypatch):
    client = FakeAsyncClient()
    monkeypatch.setattr(firestore_backend.firestore, "AsyncClient", lambda **kwargs: client)
    return client


@pytest.fixture
def fs_store(fake_client):
    return FirestoreDocumentStore(project="firmbook-test")


@pytest.mark.unit
@pytest.mark.asyncio
class TestFirestoreDocumentStore:

    async def test_get_adds_id(self, fake_client, fs_store):
        fake_client.docs["firms/f1"] = {"name": "Mehta & Iyer LLP"}

        assert await fs_store.get("firms", "f1") == {"name": "Mehta & Iyer LLP", "id": "f1"}
        assert await fs_store.get("firms", "nope") is None

    async def test_query_builds_field_filters(self, fake_client, fs_store):
        fake_client.docs["engagements/e1"] = {"status": "Completed"}

        docs = await fs_store.query(
            "engagements",
            where("status", "==", "Completed"),
            where("billStatus", "in", ["To Bill", "Collected"]),
        )

        assert docs == [{"status": "Completed", "id": "e1"}]
        query = fake_client.queries[-1]
        assert [(f.field_path, f.op_string, f.value) for f in query.filters] == [
            ("status", "==", "Completed"),
            ("billStatus", "in", ["To Bill", "Collected"]),
        ]

    async def test_update_maps_delete_sentinel(self, fake_client, fs_store):
        batch = fs_store.batch()
        batch.update("engagements", "e1", {"billStatus": DELETE_FIELD, "fees": 100})
        batch.delete("pendingInvoices", "p1")
        await batch.commit()

        (committed,) = fake_client.batches
        kind, path, data = committed.writes[0]
        assert (kind, path) == ("update", "engagements/e1")
        assert data["billStatus"] is firestore.DELETE_FIELD
        assert data["fees"] == 100
        assert committed.writes[1] == ("delete", "pendingInvoices/p1", None)

    async def test_not_found_names_every_updated_document(self, fake_client, fs_store):
        fake_client.commit_error = gexc.NotFound("No document to update")
        batch = fs_store.batch()
        batch.set("invoices", "i1", {"invoiceNumber": "INV-2026-AAAAA"})
        batch.update("engagements", "e1", {"billStatus": "Collected"})
        batch.update("invoices", "i0", {"status": "Paid"})

        with pytest.raises(DocumentNotFoundError) as exc_info:
            await batch.commit()

        assert exc_info.value.status_code == 409
        assert exc_info.value.paths == ["engagements/e1", "invoices/i0"]

    async def test_api_errors_become_store_errors(self, fake_client, fs_store):
        fake_client.commit_error = gexc.ServiceUnavailable("backend down")
        batch = fs_store.batch()
        batch.set("invoices", "i1", {})

        with pytest.raises(DocumentStoreError) as exc_info:
            await batch.commit()
        assert exc_info.value.status_code == 503

        fake_client.read_error = gexc.DeadlineExceeded("slow")
        with pytest.raises(DocumentStoreError):
            await fs_store.get("firms", "f1")
        with pytest.raises(DocumentStoreError):
            await fs_store.query("firms")

    async def test_close_releases_client(self, fake_client, fs_store):
        await fs_store.close()
        assert fake_client.closed
