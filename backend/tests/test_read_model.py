"""Tests for the billing read model (joined views with placeholders)."""

from datetime import datetime, timezone

import pytest

from firmbook.services import billing
from firmbook.services.read_model import NOT_AVAILABLE, UNKNOWN_CLIENT, BillingReadModel

NOW = datetime(2026, 10, 1, tzinfo=timezone.utc)


async def _queue(store, doc_id, data):
    batch = store.batch()
    batch.set("pendingInvoices", doc_id, data)
    await batch.commit()


@pytest.mark.asyncio
class TestBillingReadModel:

    async def test_engagement_view(self, store):
        view = await BillingReadModel(store).get_engagement_view("eng_audit")

        assert view.engagement.id == "eng_audit"
        assert view.client.name == "Bharat Traders"
        assert view.type_name == "Statutory Audit"

    async def test_engagement_view_with_missing_client(self, store):
        view = await BillingReadModel(store).get_engagement_view("eng_orphan")

        assert view.client is None
        assert view.client_name == UNKNOWN_CLIENT

    async def test_missing_engagement_gives_none(self, store):
        assert await BillingReadModel(store).get_engagement_view("nope") is None

    async def test_dashboard_rows(self, store):
        await billing.submit_for_billing(store, ["eng_audit", "eng_itr"], now=NOW)

        rows = await BillingReadModel(store).billing_dashboard()

        by_engagement = {r.engagement_id: r for r in rows}
        audit = by_engagement["eng_audit"]
        assert audit.client_name == "Bharat Traders"
        assert audit.partner_name == "Rohan Mehta"
        assert audit.engagement_type_name == "Statutory Audit"
        assert audit.assigned_to_names == "Amir Khan"
        assert audit.remarks == "FY 2025-26 statutory audit"
        assert by_engagement["eng_itr"].assigned_to_names == "Amir Khan, Sita Iyer"

    async def test_dashboard_lookup_misses_use_placeholders(self, store):
        batch = store.batch()
        batch.set("engagements", "eng_odd", {
            "clientId": "cl_gone",
            "type": "et_gone",
            "status": "Completed",
            "billStatus": "To Bill",
            "remarks": "",
        })
        await batch.commit()
        await _queue(store, "p_odd", {
            "engagementId": "eng_odd",
            "clientId": "cl_gone",
            "assignedTo": ["emp_gone"],
            "partnerId": "emp_gone",
        })

        (row,) = await BillingReadModel(store).billing_dashboard()

        assert row.client_name == UNKNOWN_CLIENT
        assert row.partner_name == NOT_AVAILABLE
        assert row.engagement_type_name == NOT_AVAILABLE
        assert row.assigned_to_names == NOT_AVAILABLE

    async def test_dashboard_skips_pending_for_deleted_engagement(self, store):
        await _queue(store, "p_ghost", {"engagementId": "eng_deleted", "clientId": "cl_bharat"})

        assert await BillingReadModel(store).billing_dashboard() == []

    async def test_dashboard_oldest_submission_first(self, store):
        await billing.submit_for_billing(store, ["eng_itr"], now=datetime(2026, 9, 1, tzinfo=timezone.utc))
        await billing.submit_for_billing(store, ["eng_audit"], now=datetime(2026, 8, 1, tzinfo=timezone.utc))

        rows = await BillingReadModel(store).billing_dashboard()

        assert [r.engagement_id for r in rows] == ["eng_audit", "eng_itr"]

    async def test_dashboard_orders_legacy_naive_dates_as_utc(self, store):
        batch = store.batch()
        batch.set("engagements", "eng_legacy", {
            "clientId": "cl_bharat",
            "type": "et_itr",
            "status": "Completed",
            "billStatus": "To Bill",
            "billSubmissionDate": "2026-01-01T10:00:00",
            "remarks": "Carried over from the old system",
        })
        await batch.commit()
        await _queue(store, "p_legacy", {"engagementId": "eng_legacy", "clientId": "cl_bharat"})
        await billing.submit_for_billing(store, ["eng_audit"], now=NOW)

        rows = await BillingReadModel(store).billing_dashboard()

        assert [r.engagement_id for r in rows] == ["eng_legacy", "eng_audit"]
        assert rows[0].bill_submission_date == datetime(2026, 1, 1, 10, tzinfo=timezone.utc)

    async def test_unbilled_engagements(self, store):
        unbilled = await BillingReadModel(store).unbilled_engagements()
        assert {e.id for e in unbilled} == {"eng_audit", "eng_itr", "eng_orphan"}

        await billing.submit_for_billing(store, ["eng_audit"], now=NOW)
        unbilled = await BillingReadModel(store).unbilled_engagements()
        assert {e.id for e in unbilled} == {"eng_itr", "eng_orphan"}
