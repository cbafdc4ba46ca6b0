"""Billing lifecycle: submission, invoice generation and bill status.

Every operation reads what it needs, validates, and then applies all of
its writes in a single document-store batch:

  submit_for_billing     engagements → "To Bill" + one PendingInvoice each
  generate_invoice       Invoice created, engagement billStatus/fees set,
                         PendingInvoice deleted
  create_ad_hoc_invoice  Completed engagement + its Invoice
  update_invoice         Invoice recomputed, engagement fees follow
  change_bill_status     billStatus moved, stale PendingInvoices deleted

A failed commit applies nothing, so a PendingInvoice whose invoice
could not be written stays in the queue for a retry.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from firmbook.config import settings
from firmbook.documents import collections
from firmbook.documents.repository import get_document, list_documents, require_document
from firmbook.documents.store import DELETE_FIELD, DocumentStore, where
from firmbook.middleware.exceptions import (
    BillingValidationError,
    BusinessLogicError,
    DocumentSchemaError,
    ResourceNotFoundError,
)
from firmbook.schemas.billing import (
    AdHocInvoiceRequest,
    AdHocInvoiceResult,
    BillStatusResult,
    GenerateInvoiceRequest,
    GenerateInvoiceResult,
    InvoiceDraft,
    InvoicePreviewRequest,
    InvoiceTotalsOut,
    InvoiceUpdateRequest,
    LineItemIn,
    LineTotalsOut,
    SkippedEngagement,
    SubmitForBillingResult,
    SubmittedEngagement,
)
from firmbook.schemas.documents import (
    BillStatus,
    Client,
    Engagement,
    EngagementStatus,
    EngagementType,
    Firm,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    PendingInvoice,
    SalesItem,
    TaxRate,
)
from firmbook.services.masters import (
    default_sac_code,
    default_tax_rate,
    list_reference,
    reference_map,
)
from firmbook.services.read_model import BillingReadModel
from firmbook.services.tax import InvoiceTotals, TaxLine, compute_totals, to_decimal
from firmbook.utils.numbering import generate_invoice_number

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[BillStatus | None, set[BillStatus]] = {
    None: {BillStatus.TO_BILL},
    BillStatus.TO_BILL: {BillStatus.PENDING_COLLECTION, BillStatus.COLLECTED},
    BillStatus.PENDING_COLLECTION: {BillStatus.COLLECTED},
    BillStatus.COLLECTED: set(),
}

OPEN_INVOICE_STATUSES = (InvoiceStatus.SENT.value, InvoiceStatus.PENDING.value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _label(status: BillStatus | None) -> str:
    return status.value if status is not None else "unbilled"


def is_allowed_transition(current: BillStatus | None, target: BillStatus | None) -> bool:
    if target is None:
        return False
    return target in ALLOWED_TRANSITIONS.get(current, set())


def configured_next_status() -> BillStatus:
    return BillStatus(settings.invoice_next_bill_status)


# ── Submission ───────────────────────────────────────────────

async def _submission_target(
    store: DocumentStore, engagement_id: str,
) -> tuple[Engagement | None, Client | None, str | None]:
    """Load an engagement and its client; the third item is the skip reason."""
    engagement = await get_document(store, Engagement, engagement_id)
    if engagement is None:
        return None, None, "engagement not found"
    if engagement.status != EngagementStatus.COMPLETED:
        return engagement, None, f"engagement is {engagement.status.value}, not Completed"
    if engagement.bill_status is not None:
        return engagement, None, f"already submitted ({engagement.bill_status.value})"
    client = await get_document(store, Client, engagement.client_id)
    if client is None:
        return engagement, None, f"client {engagement.client_id} not found"
    return engagement, client, None


async def submit_for_billing(
    store: DocumentStore,
    engagement_ids: list[str],
    *,
    now: datetime | None = None,
) -> SubmitForBillingResult:
    """Move Completed, unbilled engagements to "To Bill".

    Engagements that cannot be submitted are skipped (and logged) rather
    than failing the whole submission.
    """
    now = now or _utcnow()
    batch = store.batch()
    submitted: list[SubmittedEngagement] = []
    skipped: list[SkippedEngagement] = []

    for engagement_id in dict.fromkeys(engagement_ids):
        try:
            engagement, client, reason = await _submission_target(store, engagement_id)
        except DocumentSchemaError as e:
            engagement, client = None, None
            reason = f"malformed {e.collection} record {e.doc_id}"

        if reason is not None:
            logger.warning("Skipping engagement %s for billing: %s", engagement_id, reason)
            skipped.append(SkippedEngagement(engagement_id=engagement_id, reason=reason))
            continue

        pending = PendingInvoice(
            id=store.new_id(collections.PENDING_INVOICES),
            engagement_id=engagement.id,
            client_id=engagement.client_id,
            assigned_to=engagement.assigned_to,
            reported_to=engagement.reported_to,
            partner_id=client.partner_id,
        )
        batch.update(collections.ENGAGEMENTS, engagement.id, {
            "billStatus": BillStatus.TO_BILL.value,
            "billSubmissionDate": now.isoformat(),
        })
        batch.set(collections.PENDING_INVOICES, pending.id, pending.to_document())
        submitted.append(SubmittedEngagement(
            engagement_id=engagement.id,
            client_id=engagement.client_id,
            pending_invoice_id=pending.id,
        ))

    if len(batch):
        await batch.commit()
        logger.info("Submitted %d engagement(s) for billing", len(submitted))
    return SubmitForBillingResult(submitted=submitted, skipped=skipped)


# ── Line items / totals ──────────────────────────────────────

def _check_line_items(line_items: list[LineItemIn]) -> None:
    if not line_items:
        raise BillingValidationError("Please add at least one valid line item to the invoice.")
    missing = [i for i, li in enumerate(line_items) if not li.sales_item_id.strip()]
    if missing:
        raise BillingValidationError(
            "Every line item must reference a sales item.",
            details={"lineItems": missing},
        )


async def _resolve_firm(store: DocumentStore, firm_id: str | None) -> Firm:
    if not firm_id:
        raise BillingValidationError("Select the issuing firm for this invoice.")
    firm = (await reference_map(store, Firm)).get(firm_id)
    if firm is None:
        raise BillingValidationError(f"Issuing firm not found: {firm_id}", details={"firmId": firm_id})
    return firm


async def resolve_line_items(
    store: DocumentStore,
    line_items: list[LineItemIn],
    *,
    require_sales_item: bool = True,
) -> list[InvoiceLineItem]:
    """Attach tax percentages to incoming lines and check their references."""
    tax_rates = await reference_map(store, TaxRate)
    sales_items = await reference_map(store, SalesItem) if require_sales_item else {}

    items: list[InvoiceLineItem] = []
    for i, li in enumerate(line_items):
        if require_sales_item and li.sales_item_id not in sales_items:
            raise BillingValidationError(
                f"Sales item not found: {li.sales_item_id}", details={"lineItem": i}
            )
        if li.tax_rate_id and li.tax_rate_id not in tax_rates:
            raise BillingValidationError(
                f"Tax rate not found: {li.tax_rate_id}", details={"lineItem": i}
            )
        if to_decimal(li.discount) > to_decimal(li.quantity) * to_decimal(li.rate):
            raise BillingValidationError(
                "Line discount cannot exceed the line amount.", details={"lineItem": i}
            )
        rate = tax_rates[li.tax_rate_id].rate if li.tax_rate_id else 0
        items.append(InvoiceLineItem(**li.model_dump(), tax_rate=rate))
    return items


def price_invoice(
    items: list[InvoiceLineItem],
    *,
    firm_state: str | None,
    firm_gstn: str | None,
    place_of_supply: str | None,
    additional_discount=0,
) -> tuple[list[InvoiceLineItem], InvoiceTotals]:
    """Compute totals and fill each line's total / tax amount."""
    totals = compute_totals(
        (TaxLine.of(li.quantity, li.rate, li.discount, li.tax_rate) for li in items),
        firm_gst_registered=bool(firm_gstn and firm_gstn.strip()),
        firm_state=firm_state,
        place_of_supply=place_of_supply,
        additional_discount=additional_discount,
    )
    if totals.taxable_amount < 0:
        raise BillingValidationError(
            "Additional discount cannot exceed the discounted subtotal.",
            details={"additionalDiscount": float(totals.additional_discount)},
        )
    priced = [
        li.model_copy(update={"total": float(lt.net), "tax_amount": float(lt.tax)})
        for li, lt in zip(items, totals.lines)
    ]
    return priced, totals


def totals_out(totals: InvoiceTotals) -> InvoiceTotalsOut:
    return InvoiceTotalsOut(
        **totals.as_fields(),
        interstate=totals.interstate,
        tax_applied=totals.tax_applied,
        lines=[
            LineTotalsOut(total=float(lt.net), taxable_amount=float(lt.taxable), tax_amount=float(lt.tax))
            for lt in totals.lines
        ],
    )


async def preview_totals(store: DocumentStore, body: InvoicePreviewRequest) -> InvoiceTotalsOut:
    """Totals for arbitrary lines; nothing is written."""
    firm = await _resolve_firm(store, body.firm_id)
    items = await resolve_line_items(store, body.line_items, require_sales_item=False)
    _, totals = price_invoice(
        items,
        firm_state=firm.state,
        firm_gstn=firm.gstn,
        place_of_supply=body.place_of_supply,
        additional_discount=body.additional_discount,
    )
    return totals_out(totals)


def _new_invoice(
    store: DocumentStore,
    *,
    invoice_number: str,
    engagement_id: str,
    client: Client,
    firm: Firm,
    place_of_supply: str | None,
    items: list[InvoiceLineItem],
    totals: InvoiceTotals,
    issue_date: datetime,
    due_date: datetime | None,
    next_status: BillStatus,
) -> Invoice:
    return Invoice(
        id=store.new_id(collections.INVOICES),
        invoice_number=invoice_number,
        engagement_id=engagement_id,
        client_id=client.id,
        client_name=client.name,
        client_gstin=client.gstin,
        firm_id=firm.id,
        firm_state=firm.state,
        firm_gstn=firm.gstn,
        place_of_supply=place_of_supply,
        issue_date=issue_date,
        due_date=due_date or issue_date + timedelta(days=settings.invoice_due_days),
        status=InvoiceStatus.PAID if next_status == BillStatus.COLLECTED else InvoiceStatus.SENT,
        line_items=items,
        **totals.as_fields(),
    )


# ── Invoice generation ───────────────────────────────────────

async def build_invoice_draft(
    store: DocumentStore,
    read_model: BillingReadModel,
    pending_invoice_id: str,
) -> InvoiceDraft:
    """Pre-fill the invoice form for a queued engagement."""
    pending = await require_document(store, PendingInvoice, pending_invoice_id)
    view = await read_model.get_engagement_view(pending.engagement_id)
    if view is None:
        raise ResourceNotFoundError("Engagement", pending.engagement_id)
    engagement, client = view.engagement, view.client

    tax_rates = await reference_map(store, TaxRate)
    default_tax = await default_tax_rate(store)
    default_sac = await default_sac_code(store)

    def tax_for(rate_id: str | None) -> str:
        if rate_id and rate_id in tax_rates:
            return rate_id
        return default_tax.id if default_tax else ""

    matching = [
        s for s in await list_reference(store, SalesItem)
        if s.associated_engagement_type_id == engagement.type
    ]
    if matching:
        lines = [
            LineItemIn(
                sales_item_id=s.id,
                description=s.description or s.name,
                quantity=1,
                rate=s.standard_price,
                tax_rate_id=tax_for(s.default_tax_rate_id),
                sac_code_id=s.default_sac_id or (default_sac.id if default_sac else ""),
            )
            for s in matching
        ]
    else:
        lines = [
            LineItemIn(
                description=engagement.remarks or view.type_name,
                quantity=1,
                rate=engagement.fees or 0,
                tax_rate_id=tax_for(None),
                sac_code_id=default_sac.id if default_sac else "",
            )
        ]

    firms = await read_model.firms()
    firm_id = client.firm_id if client and client.firm_id in firms else next(iter(firms), None)
    place_of_supply = client.state if client else None

    totals = None
    if firm_id is not None:
        firm = firms[firm_id]
        items = await resolve_line_items(store, lines, require_sales_item=False)
        _, computed = price_invoice(
            items, firm_state=firm.state, firm_gstn=firm.gstn, place_of_supply=place_of_supply
        )
        totals = totals_out(computed)

    return InvoiceDraft(
        pending_invoice_id=pending.id,
        engagement_id=engagement.id,
        client_id=engagement.client_id,
        client_name=view.client_name,
        engagement_type_name=view.type_name,
        partner_name=await read_model.partner_name(client, pending.partner_id),
        assigned_to_names=await read_model.employee_names(pending.assigned_to),
        bill_submission_date=engagement.bill_submission_date,
        firm_id=firm_id,
        place_of_supply=place_of_supply,
        line_items=lines,
        totals=totals,
    )


async def generate_invoice(
    store: DocumentStore,
    pending_invoice_id: str,
    body: GenerateInvoiceRequest,
    *,
    now: datetime | None = None,
) -> GenerateInvoiceResult:
    """Issue the invoice for a pending engagement.

    One batch: the invoice is created, the engagement moves to the next
    bill status with ``fees`` set to the invoice total, and the pending
    invoice is deleted.
    """
    _check_line_items(body.line_items)

    pending = await require_document(store, PendingInvoice, pending_invoice_id)
    engagement = await require_document(store, Engagement, pending.engagement_id)
    if engagement.bill_status != BillStatus.TO_BILL:
        raise BusinessLogicError(
            f"Engagement {engagement.id} is not awaiting billing "
            f"(bill status: {_label(engagement.bill_status)})",
            error_code="NOT_AWAITING_BILLING",
        )
    client = await require_document(store, Client, engagement.client_id)
    firm = await _resolve_firm(store, body.firm_id or client.firm_id)
    place_of_supply = body.place_of_supply or client.state

    items = await resolve_line_items(store, body.line_items)
    items, totals = price_invoice(
        items,
        firm_state=firm.state,
        firm_gstn=firm.gstn,
        place_of_supply=place_of_supply,
        additional_discount=body.additional_discount,
    )

    issue_date = body.issue_date or now or _utcnow()
    next_status = body.next_bill_status or configured_next_status()
    invoice = _new_invoice(
        store,
        invoice_number=await generate_invoice_number(store, issue_date),
        engagement_id=engagement.id,
        client=client,
        firm=firm,
        place_of_supply=place_of_supply,
        items=items,
        totals=totals,
        issue_date=issue_date,
        due_date=body.due_date,
        next_status=next_status,
    )

    batch = store.batch()
    batch.set(collections.INVOICES, invoice.id, invoice.to_document())
    batch.update(collections.ENGAGEMENTS, engagement.id, {
        "billStatus": next_status.value,
        "fees": invoice.total_amount,
    })
    batch.delete(collections.PENDING_INVOICES, pending.id)
    await batch.commit()

    logger.info(
        "Invoice %s issued for engagement %s: total %.2f, bill status %s",
        invoice.invoice_number, engagement.id, invoice.total_amount, next_status.value,
    )
    return GenerateInvoiceResult(
        invoice=invoice,
        engagement_id=engagement.id,
        bill_status=next_status,
        fees=invoice.total_amount,
        removed_pending_invoice_id=pending.id,
    )


async def create_ad_hoc_invoice(
    store: DocumentStore,
    body: AdHocInvoiceRequest,
    *,
    now: datetime | None = None,
) -> AdHocInvoiceResult:
    """Bill work that has no engagement yet.

    The Completed engagement and its invoice are written together.
    """
    _check_line_items(body.line_items)

    client = await require_document(store, Client, body.client_id)
    if body.engagement_type_id not in await reference_map(store, EngagementType):
        raise BillingValidationError(
            f"Engagement type not found: {body.engagement_type_id}",
            details={"engagementTypeId": body.engagement_type_id},
        )
    firm = await _resolve_firm(store, body.firm_id or client.firm_id)
    place_of_supply = body.place_of_supply or client.state

    items = await resolve_line_items(store, body.line_items)
    items, totals = price_invoice(
        items,
        firm_state=firm.state,
        firm_gstn=firm.gstn,
        place_of_supply=place_of_supply,
        additional_discount=body.additional_discount,
    )

    issued_at = now or _utcnow()
    next_status = body.next_bill_status or configured_next_status()
    engagement = Engagement(
        id=store.new_id(collections.ENGAGEMENTS),
        client_id=client.id,
        type=body.engagement_type_id,
        remarks=body.remarks,
        status=EngagementStatus.COMPLETED,
        assigned_to=body.assigned_to,
        reported_to=body.reported_to,
        due_date=issued_at,
        bill_status=next_status,
        bill_submission_date=issued_at,
        fees=float(totals.total_amount),
    )
    invoice = _new_invoice(
        store,
        invoice_number=await generate_invoice_number(store, issued_at),
        engagement_id=engagement.id,
        client=client,
        firm=firm,
        place_of_supply=place_of_supply,
        items=items,
        totals=totals,
        issue_date=issued_at,
        due_date=None,
        next_status=next_status,
    )

    batch = store.batch()
    batch.set(collections.ENGAGEMENTS, engagement.id, engagement.to_document())
    batch.set(collections.INVOICES, invoice.id, invoice.to_document())
    await batch.commit()

    logger.info("Ad-hoc invoice %s issued with engagement %s", invoice.invoice_number, engagement.id)
    return AdHocInvoiceResult(invoice=invoice, engagement_id=engagement.id, bill_status=next_status)


async def update_invoice(
    store: DocumentStore,
    invoice_id: str,
    body: InvoiceUpdateRequest,
) -> Invoice:
    """Edit an issued invoice and recompute it.

    Lines that are not replaced keep the tax percentage captured at issue.
    """
    invoice = await require_document(store, Invoice, invoice_id)

    updates: dict = {}
    firm_state, firm_gstn = invoice.firm_state, invoice.firm_gstn
    if body.firm_id and body.firm_id != invoice.firm_id:
        firm = await _resolve_firm(store, body.firm_id)
        firm_state, firm_gstn = firm.state, firm.gstn
        updates.update(firm_id=firm.id, firm_state=firm.state, firm_gstn=firm.gstn)

    if body.line_items is not None:
        _check_line_items(body.line_items)
        items = await resolve_line_items(store, body.line_items)
    else:
        items = invoice.line_items

    place_of_supply = body.place_of_supply if body.place_of_supply is not None else invoice.place_of_supply
    additional = (
        body.additional_discount if body.additional_discount is not None
        else invoice.additional_discount
    )
    items, totals = price_invoice(
        items,
        firm_state=firm_state,
        firm_gstn=firm_gstn,
        place_of_supply=place_of_supply,
        additional_discount=additional,
    )
    updates.update(place_of_supply=place_of_supply, line_items=items, **totals.as_fields())
    if body.status is not None:
        updates["status"] = body.status
    updated = invoice.model_copy(update=updates)

    batch = store.batch()
    batch.set(collections.INVOICES, updated.id, updated.to_document())
    engagement = await get_document(store, Engagement, invoice.engagement_id)
    if updated.status == InvoiceStatus.CANCELLED:
        logger.info("Invoice %s cancelled; engagement fees left as they were", updated.id)
    elif engagement is not None:
        batch.update(collections.ENGAGEMENTS, engagement.id, {"fees": updated.total_amount})
    elif invoice.engagement_id:
        logger.warning(
            "Invoice %s references missing engagement %s; fees not synced",
            invoice.id, invoice.engagement_id,
        )
    await batch.commit()

    logger.info("Invoice %s updated: total %.2f", updated.invoice_number, updated.total_amount)
    return updated


# ── Bill status ──────────────────────────────────────────────

async def change_bill_status(
    store: DocumentStore,
    engagement_id: str,
    target: BillStatus | None,
    *,
    force: bool = False,
    now: datetime | None = None,
) -> BillStatusResult:
    """Move an engagement's bill status.

    Without ``force`` only the forward transitions are accepted, and
    "To Bill" is reachable only through submission. Leaving "To Bill"
    deletes the engagement's pending invoices in the same batch.
    """
    engagement = await require_document(store, Engagement, engagement_id)
    current = engagement.bill_status

    if target == current and not force:
        return BillStatusResult(
            engagement_id=engagement.id,
            client_id=engagement.client_id,
            previous_bill_status=current,
            bill_status=current,
            removed_pending_invoice_ids=[],
        )
    if not force:
        if target == BillStatus.TO_BILL:
            raise BusinessLogicError(
                "Submit the engagement for billing to move it to 'To Bill'",
                error_code="INVALID_BILL_STATUS_TRANSITION",
            )
        if not is_allowed_transition(current, target):
            raise BusinessLogicError(
                f"Cannot change bill status from {_label(current)} to {_label(target)}",
                error_code="INVALID_BILL_STATUS_TRANSITION",
            )

    pending = await list_documents(store, PendingInvoice, where("engagementId", "==", engagement.id))
    batch = store.batch()
    removed: list[str] = []

    if target is None:
        batch.update(collections.ENGAGEMENTS, engagement.id, {
            "billStatus": DELETE_FIELD,
            "billSubmissionDate": DELETE_FIELD,
        })
    elif target == BillStatus.TO_BILL:
        if engagement.status != EngagementStatus.COMPLETED:
            raise BusinessLogicError(
                f"Engagement {engagement.id} is {engagement.status.value}, not Completed",
                error_code="ENGAGEMENT_NOT_COMPLETED",
            )
        batch.update(collections.ENGAGEMENTS, engagement.id, {
            "billStatus": target.value,
            "billSubmissionDate": (now or _utcnow()).isoformat(),
        })
        if not pending:
            client = await get_document(store, Client, engagement.client_id)
            queued = PendingInvoice(
                id=store.new_id(collections.PENDING_INVOICES),
                engagement_id=engagement.id,
                client_id=engagement.client_id,
                assigned_to=engagement.assigned_to,
                reported_to=engagement.reported_to,
                partner_id=client.partner_id if client else None,
            )
            batch.set(collections.PENDING_INVOICES, queued.id, queued.to_document())
    else:
        batch.update(collections.ENGAGEMENTS, engagement.id, {"billStatus": target.value})

    if target != BillStatus.TO_BILL:
        for p in pending:
            batch.delete(collections.PENDING_INVOICES, p.id)
            removed.append(p.id)

    if target == BillStatus.COLLECTED:
        open_invoices = await list_documents(
            store, Invoice,
            where("engagementId", "==", engagement.id),
            where("status", "in", list(OPEN_INVOICE_STATUSES)),
        )
        for inv in open_invoices:
            batch.update(collections.INVOICES, inv.id, {"status": InvoiceStatus.PAID.value})

    await batch.commit()

    log = logger.warning if force else logger.info
    log(
        "Bill status of engagement %s: %s → %s%s (%d pending invoice(s) removed)",
        engagement.id, _label(current), _label(target), " [override]" if force else "", len(removed),
    )
    return BillStatusResult(
        engagement_id=engagement.id,
        client_id=engagement.client_id,
        previous_bill_status=current,
        bill_status=target,
        removed_pending_invoice_ids=removed,
    )


async def mark_collected(store: DocumentStore, engagement_id: str) -> BillStatusResult:
    """Record payment for an invoiced engagement."""
    engagement = await require_document(store, Engagement, engagement_id)
    if engagement.bill_status != BillStatus.PENDING_COLLECTION:
        raise BusinessLogicError(
            f"Engagement {engagement.id} is not pending collection "
            f"(bill status: {_label(engagement.bill_status)})",
            error_code="INVALID_BILL_STATUS_TRANSITION",
        )
    return await change_bill_status(store, engagement_id, BillStatus.COLLECTED)
