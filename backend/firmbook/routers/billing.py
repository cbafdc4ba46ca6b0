"""Billing queue: submission, invoice generation and bill status.

Endpoints:
    POST  /api/billing/submit                                  Submit engagements for billing
    GET   /api/billing/pending                                 "To Bill" dashboard (paginated)
    GET   /api/billing/pending/{pending_invoice_id}/draft      Pre-filled invoice form
    POST  /api/billing/pending/{pending_invoice_id}/invoice    Generate the invoice
    POST  /api/billing/preview                                 Totals for arbitrary lines
    POST  /api/billing/adhoc                                   Engagement + invoice in one go
    PATCH /api/billing/engagements/{engagement_id}/bill-status Move bill status
    POST  /api/billing/engagements/{engagement_id}/collect     Mark collected
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from firmbook.auth.deps import require_permission, token_permissions
from firmbook.auth.permissions import has_permission
from firmbook.database import get_db
from firmbook.documents import get_document_store
from firmbook.documents.store import DocumentStore
from firmbook.middleware.exceptions import PermissionDeniedError
from firmbook.schemas.billing import (
    AdHocInvoiceRequest,
    AdHocInvoiceResult,
    BillingDashboardPage,
    BillStatusResult,
    BillStatusUpdate,
    GenerateInvoiceRequest,
    GenerateInvoiceResult,
    InvoiceDraft,
    InvoicePreviewRequest,
    InvoiceTotalsOut,
    SubmitForBillingRequest,
    SubmitForBillingResult,
)
from firmbook.schemas.documents import Employee
from firmbook.services import billing
from firmbook.services.read_model import BillingReadModel
from firmbook.utils.activity import log_activity

router = APIRouter()


# ── POST /api/billing/submit ─────────────────────────────────

@router.post("/submit", response_model=SubmitForBillingResult)
async def submit_for_billing(
    body: SubmitForBillingRequest,
    store: DocumentStore = Depends(get_document_store),
    db: AsyncSession = Depends(get_db),
    user: Employee = Depends(require_permission("billing.submit")),
):
    """Move Completed engagements to "To Bill"; ineligible ones are skipped."""
    result = await billing.submit_for_billing(store, body.engagement_ids)
    for s in result.submitted:
        await log_activity(
            db, user, type="billing_submitted",
            engagement_id=s.engagement_id, client_id=s.client_id,
            details={"pendingInvoiceId": s.pending_invoice_id},
        )
    return result


# ── GET /api/billing/pending ─────────────────────────────────

@router.get("/pending", response_model=BillingDashboardPage)
async def billing_dashboard(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(require_permission("billing.read")),
):
    read_model = BillingReadModel(store)
    rows = await read_model.billing_dashboard()
    unbilled = await read_model.unbilled_engagements()
    return BillingDashboardPage(
        items=rows[offset:offset + limit],
        total=len(rows),
        limit=limit,
        offset=offset,
        unbilled_count=len(unbilled),
    )


# ── GET /api/billing/pending/{id}/draft ──────────────────────

@router.get("/pending/{pending_invoice_id}/draft", response_model=InvoiceDraft)
async def invoice_draft(
    pending_invoice_id: str,
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(require_permission("billing.read")),
):
    return await billing.build_invoice_draft(store, BillingReadModel(store), pending_invoice_id)


# ── POST /api/billing/pending/{id}/invoice ───────────────────

@router.post(
    "/pending/{pending_invoice_id}/invoice",
    response_model=GenerateInvoiceResult,
    status_code=status.HTTP_201_CREATED,
)
async def generate_invoice(
    pending_invoice_id: str,
    body: GenerateInvoiceRequest,
    store: DocumentStore = Depends(get_document_store),
    db: AsyncSession = Depends(get_db),
    user: Employee = Depends(require_permission("billing.write")),
):
    """Issue the invoice; the pending row is removed in the same batch."""
    result = await billing.generate_invoice(store, pending_invoice_id, body)
    await log_activity(
        db, user, type="invoice_generated",
        engagement_id=result.engagement_id, client_id=result.invoice.client_id,
        details={
            "invoiceId": result.invoice.id,
            "invoiceNumber": result.invoice.invoice_number,
            "totalAmount": result.invoice.total_amount,
            "billStatus": result.bill_status.value,
        },
    )
    return result


# ── POST /api/billing/preview ────────────────────────────────

@router.post("/preview", response_model=InvoiceTotalsOut)
async def preview_invoice(
    body: InvoicePreviewRequest,
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(require_permission("billing.read")),
):
    return await billing.preview_totals(store, body)


# ── POST /api/billing/adhoc ──────────────────────────────────

@router.post("/adhoc", response_model=AdHocInvoiceResult, status_code=status.HTTP_201_CREATED)
async def create_ad_hoc_invoice(
    body: AdHocInvoiceRequest,
    store: DocumentStore = Depends(get_document_store),
    db: AsyncSession = Depends(get_db),
    user: Employee = Depends(require_permission("billing.write")),
):
    result = await billing.create_ad_hoc_invoice(store, body)
    await log_activity(
        db, user, type="adhoc_invoice_created",
        engagement_id=result.engagement_id, client_id=result.invoice.client_id,
        engagement_name=body.remarks,
        details={
            "invoiceId": result.invoice.id,
            "invoiceNumber": result.invoice.invoice_number,
            "totalAmount": result.invoice.total_amount,
        },
    )
    return result


# ── PATCH /api/billing/engagements/{id}/bill-status ──────────

@router.patch("/engagements/{engagement_id}/bill-status", response_model=BillStatusResult)
async def update_bill_status(
    engagement_id: str,
    body: BillStatusUpdate,
    store: DocumentStore = Depends(get_document_store),
    db: AsyncSession = Depends(get_db),
    user: Employee = Depends(require_permission("billing.write")),
):
    """Move the bill status forward, or anywhere with ``force``.

    ``force`` needs ``billing.admin``.
    """
    if body.force and not has_permission(token_permissions(user), "billing.admin"):
        raise PermissionDeniedError("Access denied: bill status override needs billing.admin")

    result = await billing.change_bill_status(
        store, engagement_id, body.bill_status, force=body.force,
    )
    if result.previous_bill_status != result.bill_status or body.force:
        await log_activity(
            db, user, type="bill_status_changed",
            engagement_id=result.engagement_id, client_id=result.client_id,
            details={
                "from": result.previous_bill_status.value if result.previous_bill_status else None,
                "to": result.bill_status.value if result.bill_status else None,
                "override": body.force,
                "removedPendingInvoiceIds": result.removed_pending_invoice_ids,
            },
        )
    return result


# ── POST /api/billing/engagements/{id}/collect ───────────────

@router.post("/engagements/{engagement_id}/collect", response_model=BillStatusResult)
async def mark_collected(
    engagement_id: str,
    store: DocumentStore = Depends(get_document_store),
    db: AsyncSession = Depends(get_db),
    user: Employee = Depends(require_permission("billing.write")),
):
    result = await billing.mark_collected(store, engagement_id)
    await log_activity(
        db, user, type="bill_status_changed",
        engagement_id=result.engagement_id, client_id=result.client_id,
        details={"from": result.previous_bill_status.value, "to": result.bill_status.value},
    )
    return result
