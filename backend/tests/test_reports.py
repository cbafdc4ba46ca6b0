"""Tests for accounts reports and CSV export."""

import csv
import io
from datetime import date, datetime, timezone

import pytest

from firmbook.schemas.billing import GenerateInvoiceRequest
from firmbook.schemas.documents import InvoiceStatus
from firmbook.services import billing, reports
from firmbook.services.read_model import UNKNOWN_CLIENT, BillingReadModel
from firmbook.utils.csv_export import invoices_to_csv

ISSUED = datetime(2026, 10, 1, tzinfo=timezone.utc)

LINE = {"salesItemId": "si_audit", "quantity": 1, "rate": 10000, "taxRateId": "gst18"}


async def issue(store, engagement_id, **overrides):
    submitted = await billing.submit_for_billing(store, [engagement_id], now=ISSUED)
    body = GenerateInvoiceRequest.model_validate({"firmId": "firm_mh", "lineItems": [LINE], **overrides})
    result = await billing.generate_invoice(
        store, submitted.submitted[0].pending_invoice_id, body, now=ISSUED,
    )
    return result.invoice


@pytest.mark.asyncio
class TestUnbilledAndCollections:

    async def test_unbilled_report(self, store):
        report = await reports.unbilled_report(BillingReadModel(store))

        assert report.count == 3
        names = {r.engagement_id: r.client_name for r in report.items}
        assert names["eng_audit"] == "Bharat Traders"
        assert names["eng_orphan"] == UNKNOWN_CLIENT

    async def test_pending_collections_days_pending(self, store):
        await issue(store, "eng_audit")
        await issue(store, "eng_itr", lineItems=[{**LINE, "salesItemId": "si_itr"}])

        rows = await reports.pending_collections(
            BillingReadModel(store), now=datetime(2026, 10, 11, tzinfo=timezone.utc),
        )

        assert {r.engagement_id for r in rows} == {"eng_audit", "eng_itr"}
        assert all(r.days_pending == 10 for r in rows)
        assert [r.fees for r in rows] == [11800, 11800]

    async def test_naive_submission_dates_are_treated_as_utc(self, store):
        batch = store.batch()
        batch.update("engagements", "eng_audit", {
            "billStatus": "Pending Collection",
            "billSubmissionDate": "2026-10-01T00:00:00",
        })
        await batch.commit()

        (row,) = await reports.pending_collections(
            BillingReadModel(store), now=datetime(2026, 10, 4, 12, tzinfo=timezone.utc),
        )
        assert row.days_pending == 3


@pytest.mark.asyncio
class TestInvoiceRegister:

    async def test_filters(self, store):
        a = await issue(store, "eng_audit")
        b = await issue(store, "eng_itr", lineItems=[{**LINE, "salesItemId": "si_itr"}])
        model = BillingReadModel(store)
        window = dict(date_from=date(2026, 9, 1), date_to=date(2026, 10, 31))

        rows = await reports.invoice_register(model, **window)
        assert {r.invoice_id for r in rows} == {a.id, b.id}
        assert rows[0].firm_name == "Mehta & Iyer LLP"

        rows = await reports.invoice_register(model, client_id="cl_kaveri", **window)
        assert [r.invoice_id for r in rows] == [b.id]

        rows = await reports.invoice_register(model, status=InvoiceStatus.PAID, **window)
        assert rows == []

        rows = await reports.invoice_register(
            model, date_from=date(2026, 10, 2), date_to=date(2026, 10, 31),
        )
        assert rows == []

    async def test_revenue_summary_excludes_cancelled(self, store):
        await issue(store, "eng_audit")
        paid = await issue(store, "eng_itr", nextBillStatus="Collected")
        batch = store.batch()
        batch.set("invoices", "inv_cancelled", {
            "invoiceNumber": "INV-2026-XXXXX",
            "clientId": "cl_bharat",
            "firmId": "firm_mh",
            "issueDate": "2026-10-02T00:00:00Z",
            "status": "Cancelled",
            "subTotal": 5000,
            "taxableAmount": 5000,
            "totalAmount": 5900,
            "totalTax": 900,
        })
        await batch.commit()

        summary = await reports.revenue_summary(
            BillingReadModel(store), date_from=date(2026, 9, 1), date_to=date(2026, 10, 31),
        )

        assert summary.invoice_count == 2
        assert summary.total_invoiced == 23600
        assert summary.collected == paid.total_amount == 11800
        assert summary.pending_collection == 11800
        assert summary.total_tax == 3600

    async def test_csv_columns(self, store):
        invoice = await issue(store, "eng_audit")
        rows = await reports.invoice_register(
            BillingReadModel(store), date_from=date(2026, 10, 1), date_to=date(2026, 10, 1),
        )

        parsed = list(csv.reader(io.StringIO(invoices_to_csv(rows))))

        assert parsed[0] == [
            "Invoice Number", "Date", "Client", "GSTIN", "Firm", "Status",
            "Subtotal", "Discount", "Taxable Amount", "Tax", "Total",
        ]
        assert parsed[1] == [
            invoice.invoice_number, "2026-10-01", "Bharat Traders", "27ABCDE1234F1Z5",
            "Mehta & Iyer LLP", "Sent", "10000.00", "0.00", "10000.00", "1800.00", "11800.00",
        ]

    def test_default_range(self):
        start, end = reports.default_range(None, None, today=date(2026, 10, 18))
        assert end == date(2026, 10, 18)
        assert (end - start).days == 90
