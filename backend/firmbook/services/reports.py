"""Accounts reports over engagements and invoices."""

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from firmbook.config import settings
from firmbook.documents.repository import list_documents
from firmbook.documents.store import FieldFilter, where
from firmbook.schemas.documents import BillStatus, Engagement, Invoice, InvoiceStatus
from firmbook.schemas.reports import (
    InvoiceRegisterRow,
    PendingCollectionRow,
    RevenueSummary,
    UnbilledEngagementRow,
    UnbilledReport,
)
from firmbook.services.read_model import NOT_AVAILABLE, BillingReadModel, aware
from firmbook.services.tax import money, to_decimal

logger = logging.getLogger(__name__)


def default_range(
    date_from: date | None,
    date_to: date | None,
    today: date | None = None,
) -> tuple[date, date]:
    today = today or datetime.now(timezone.utc).date()
    date_to = date_to or today
    date_from = date_from or date_to - timedelta(days=settings.report_default_days)
    return date_from, date_to


async def unbilled_report(read_model: BillingReadModel) -> UnbilledReport:
    """Completed engagements that were never submitted for billing."""
    engagements = await read_model.unbilled_engagements()
    items = [
        UnbilledEngagementRow(
            engagement_id=e.id,
            client_id=e.client_id,
            client_name=await read_model.client_name(e.client_id),
            engagement_type_name=await read_model.type_name(e.type),
            remarks=e.remarks,
            due_date=e.due_date,
            assigned_to_names=", ".join(await read_model.employee_names(e.assigned_to)) or NOT_AVAILABLE,
        )
        for e in engagements
    ]
    items.sort(key=lambda r: (r.client_name.casefold(), r.engagement_id))
    return UnbilledReport(items=items, count=len(items))


async def pending_collections(
    read_model: BillingReadModel,
    now: datetime | None = None,
) -> list[PendingCollectionRow]:
    """Invoiced engagements awaiting payment, oldest submission first."""
    now = aware(now or datetime.now(timezone.utc))
    engagements = await list_documents(
        read_model.store, Engagement,
        where("billStatus", "==", BillStatus.PENDING_COLLECTION.value),
    )
    rows = []
    for e in engagements:
        submitted = aware(e.bill_submission_date) if e.bill_submission_date else None
        rows.append(PendingCollectionRow(
            engagement_id=e.id,
            client_name=await read_model.client_name(e.client_id),
            remarks=e.remarks,
            fees=e.fees,
            bill_submission_date=submitted,
            days_pending=max((now - submitted).days, 0) if submitted else 0,
        ))
    rows.sort(key=lambda r: (
        r.bill_submission_date is None,
        r.bill_submission_date or datetime.min.replace(tzinfo=timezone.utc),
    ))
    return rows


async def invoice_register(
    read_model: BillingReadModel,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    firm_id: str | None = None,
    status: InvoiceStatus | None = None,
    client_id: str | None = None,
) -> list[InvoiceRegisterRow]:
    """Invoices issued in a date range, newest first."""
    date_from, date_to = default_range(date_from, date_to)
    filters: list[FieldFilter] = []
    if firm_id:
        filters.append(where("firmId", "==", firm_id))
    if status:
        filters.append(where("status", "==", status.value))
    if client_id:
        filters.append(where("clientId", "==", client_id))

    invoices = [
        inv for inv in await list_documents(read_model.store, Invoice, *filters)
        if date_from <= aware(inv.issue_date).date() <= date_to
    ]
    invoices.sort(key=lambda inv: aware(inv.issue_date), reverse=True)
    return [
        InvoiceRegisterRow(
            invoice_id=inv.id,
            invoice_number=inv.invoice_number,
            issue_date=inv.issue_date,
            client_id=inv.client_id,
            client_name=inv.client_name or await read_model.client_name(inv.client_id),
            client_gstin=inv.client_gstin or "",
            firm_name=await read_model.firm_name(inv.firm_id),
            status=inv.status.value,
            sub_total=inv.sub_total,
            total_discount=inv.total_discount,
            taxable_amount=inv.taxable_amount,
            total_tax=inv.total_tax,
            total_amount=inv.total_amount,
        )
        for inv in invoices
    ]


async def revenue_summary(
    read_model: BillingReadModel,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    firm_id: str | None = None,
) -> RevenueSummary:
    """Invoiced, collected and outstanding amounts; cancelled invoices excluded."""
    date_from, date_to = default_range(date_from, date_to)
    rows = [
        r for r in await invoice_register(
            read_model, date_from=date_from, date_to=date_to, firm_id=firm_id,
        )
        if r.status != InvoiceStatus.CANCELLED.value
    ]

    total = tax = collected = pending = Decimal("0")
    for r in rows:
        amount = to_decimal(r.total_amount)
        total += amount
        tax += to_decimal(r.total_tax)
        if r.status == InvoiceStatus.PAID.value:
            collected += amount
        elif r.status in (InvoiceStatus.SENT.value, InvoiceStatus.PENDING.value):
            pending += amount

    return RevenueSummary(
        date_from=date_from,
        date_to=date_to,
        invoice_count=len(rows),
        total_invoiced=float(money(total)),
        total_tax=float(money(tax)),
        collected=float(money(collected)),
        pending_collection=float(money(pending)),
        rows=rows,
    )
