"""Tests for the in-memory document store."""

import pytest

from firmbook.documents.memory import MemoryDocumentStore
from firmbook.documents.store import DELETE_FIELD, where
from firmbook.middleware.exceptions import DocumentNotFoundError


@pytest.mark.unit
@pytest.mark.asyncio
class TestMemoryDocumentStore:

    async def test_get_includes_id(self):
        store = MemoryDocumentStore(seed={"firms": {"f1": {"name": "A"}}})
        assert await store.get("firms", "f1") == {"name": "A", "id": "f1"}
        assert await store.get("firms", "nope") is None

    async def test_returned_documents_are_copies(self):
        store = MemoryDocumentStore(seed={"firms": {"f1": {"name": "A"}}})
        doc = await store.get("firms", "f1")
        doc["name"] = "changed"
        assert (await store.get("firms", "f1"))["name"] == "A"

    async def test_query_filters(self):
        store = MemoryDocumentStore(seed={"engagements": {
            "e1": {"status": "Completed", "billStatus": "To Bill"},
            "e2": {"status": "Completed"},
            "e3": {"status": "In Process"},
        }})
        done = await store.query("engagements", where("status", "==", "Completed"))
        assert {d["id"] for d in done} == {"e1", "e2"}

        # A missing field never matches
        billed = await store.query("engagements", where("billStatus", "in", ["To Bill", "Collected"]))
        assert [d["id"] for d in billed] == ["e1"]

    async def test_unknown_operator_rejected(self):
        with pytest.raises(ValueError):
            where("status", "like", "Comp%")

    async def test_batch_applies_all_writes(self):
        store = MemoryDocumentStore(seed={"engagements": {"e1": {"status": "Completed"}}})
        batch = store.batch()
        batch.update("engagements", "e1", {"billStatus": "To Bill"})
        batch.set("pendingInvoices", "p1", {"engagementId": "e1"})
        await batch.commit()

        assert (await store.get("engagements", "e1"))["billStatus"] == "To Bill"
        assert await store.get("pendingInvoices", "p1") is not None
        assert store.commit_count == 1

    async def test_update_of_missing_document_applies_nothing(self):
        store = MemoryDocumentStore(seed={"pendingInvoices": {"p1": {"engagementId": "e1"}}})
        batch = store.batch()
        batch.set("invoices", "i1", {"invoiceNumber": "INV-2026-AAAAA"})
        batch.delete("pendingInvoices", "p1")
        batch.update("engagements", "missing", {"billStatus": "Collected"})

        with pytest.raises(DocumentNotFoundError) as exc_info:
            await batch.commit()

        assert exc_info.value.status_code == 409
        assert exc_info.value.paths == ["engagements/missing"]
        assert store.dump("invoices") == {}
        assert "p1" in store.dump("pendingInvoices")
        assert store.commit_count == 0

    async def test_delete_field_removes_key(self):
        store = MemoryDocumentStore(seed={"engagements": {
            "e1": {"status": "Completed", "billStatus": "Collected", "fees": 100},
        }})
        batch = store.batch()
        batch.update("engagements", "e1", {"billStatus": DELETE_FIELD})
        await batch.commit()

        assert await store.get("engagements", "e1") == {"id": "e1", "status": "Completed", "fees": 100}

    async def test_get_many_skips_missing(self):
        store = MemoryDocumentStore(seed={"clients": {"c1": {"name": "A"}, "c2": {"name": "B"}}})
        found = await store.get_many("clients", ["c1", "c9", "c1"])
        assert list(found) == ["c1"]
