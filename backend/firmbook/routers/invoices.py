"""Issued invoices.

Endpoints:
    GET   /api/invoices          Invoice register (paginated, filterable)
    GET   /api/invoices/{id}     Single invoice
    PATCH /api/invoices/{id}     Edit lines / firm / discount, recompute totals
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from firmbook.auth.deps import require_permission
from firmbook.database import get_db
from firmbook.documents import get_document_store
from firmbook.documents.repository import require_document
from firmbook.documents.store import DocumentStore
from firmbook.schemas.billing import InvoiceUpdateRequest
from firmbook.schemas.common import PaginatedResponse
from firmbook.schemas.documents import Employee, Invoice, InvoiceStatus
from firmbook.schemas.reports import InvoiceRegisterRow
from firmbook.services import billing, reports
from firmbook.services.read_model import BillingReadModel
from firmbook.utils.activity import log_activity

router = APIRouter()


# ── GET /api/invoices ────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[InvoiceRegisterRow])
async def list_invoices(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    firm_id: str | None = Query(None),
    status: InvoiceStatus | None = Query(None),
    client_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(require_permission("invoices.read")),
):
    rows = await reports.invoice_register(
        BillingReadModel(store),
        date_from=date_from, date_to=date_to,
        firm_id=firm_id, status=status, client_id=client_id,
    )
    return PaginatedResponse[InvoiceRegisterRow](
        items=rows[offset:offset + limit],
        total=len(rows),
        limit=limit,
        offset=offset,
    )


# ── GET /api/invoices/{id} ───────────────────────────────────

@router.get("/{invoice_id}", response_model=Invoice)
async def get_invoice(
    invoice_id: str,
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(require_permission("invoices.read")),
):
    return await require_document(store, Invoice, invoice_id)


# ── PATCH /api/invoices/{id} ─────────────────────────────────

@router.patch("/{invoice_id}", response_model=Invoice)
async def update_invoice(
    invoice_id: str,
    body: InvoiceUpdateRequest,
    store: DocumentStore = Depends(get_document_store),
    db: AsyncSession = Depends(get_db),
    user: Employee = Depends(require_permission("invoices.write")),
):
    """Recompute the invoice; the engagement's fees follow the new total."""
    invoice = await billing.update_invoice(store, invoice_id, body)
    await log_activity(
        db, user, type="invoice_updated",
        engagement_id=invoice.engagement_id, client_id=invoice.client_id,
        details={
            "invoiceId": invoice.id,
            "invoiceNumber": invoice.invoice_number,
            "totalAmount": invoice.total_amount,
            "fields": sorted(body.model_dump(exclude_unset=True, by_alias=True)),
        },
    )
    return invoice
