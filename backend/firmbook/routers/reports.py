"""Accounts and exception reports.

Endpoints:
    GET /api/reports/unbilled              Completed engagements never submitted
    GET /api/reports/pending-collections   Invoiced, awaiting payment
    GET /api/reports/invoices              Invoice register
    GET /api/reports/invoices.csv          Invoice register as CSV
    GET /api/reports/revenue               Revenue summary
    GET /api/reports/revenue.csv           Revenue rows as CSV
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from firmbook.auth.deps import require_permission
from firmbook.documents import get_document_store
from firmbook.documents.store import DocumentStore
from firmbook.schemas.documents import Employee, InvoiceStatus
from firmbook.schemas.reports import (
    InvoiceRegisterRow,
    PendingCollectionRow,
    RevenueSummary,
    UnbilledReport,
)
from firmbook.services import reports
from firmbook.services.read_model import BillingReadModel
from firmbook.utils.csv_export import csv_response, invoices_to_csv

router = APIRouter()


@router.get("/unbilled", response_model=UnbilledReport)
async def unbilled(
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(require_permission("reports.read")),
):
    return await reports.unbilled_report(BillingReadModel(store))


@router.get("/pending-collections", response_model=list[PendingCollectionRow])
async def pending_collections(
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(require_permission("reports.read")),
):
    return await reports.pending_collections(BillingReadModel(store))


# ── Invoice register ─────────────────────────────────────────

@router.get("/invoices", response_model=list[InvoiceRegisterRow])
async def invoice_register(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    firm_id: str | None = Query(None),
    status: InvoiceStatus | None = Query(None),
    client_id: str | None = Query(None),
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(require_permission("reports.read")),
):
    return await reports.invoice_register(
        BillingReadModel(store),
        date_from=date_from, date_to=date_to,
        firm_id=firm_id, status=status, client_id=client_id,
    )


@router.get("/invoices.csv")
async def invoice_register_csv(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    firm_id: str | None = Query(None),
    status: InvoiceStatus | None = Query(None),
    client_id: str | None = Query(None),
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(require_permission("reports.export")),
):
    rows = await reports.invoice_register(
        BillingReadModel(store),
        date_from=date_from, date_to=date_to,
        firm_id=firm_id, status=status, client_id=client_id,
    )
    return csv_response(invoices_to_csv(rows), "invoice-register.csv")


# ── Revenue ──────────────────────────────────────────────────

@router.get("/revenue", response_model=RevenueSummary)
async def revenue(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    firm_id: str | None = Query(None),
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(require_permission("reports.read")),
):
    return await reports.revenue_summary(
        BillingReadModel(store), date_from=date_from, date_to=date_to, firm_id=firm_id,
    )


@router.get("/revenue.csv")
async def revenue_csv(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    firm_id: str | None = Query(None),
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(require_permission("reports.export")),
):
    summary = await reports.revenue_summary(
        BillingReadModel(store), date_from=date_from, date_to=date_to, firm_id=firm_id,
    )
    filename = f"revenue-{summary.date_from.isoformat()}-{summary.date_to.isoformat()}.csv"
    return csv_response(invoices_to_csv(summary.rows), filename)
