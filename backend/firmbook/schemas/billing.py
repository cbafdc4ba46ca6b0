"""Pydantic schemas for submission, invoice generation and bill status."""

from datetime import datetime

from pydantic import Field, field_validator

from firmbook.schemas.common import ApiModel, PaginatedResponse
from firmbook.schemas.documents import BillStatus, Invoice, InvoiceStatus


# ── Submission ───────────────────────────────────────────────

class SubmitForBillingRequest(ApiModel):
    engagement_ids: list[str] = Field(min_length=1)


class SubmittedEngagement(ApiModel):
    engagement_id: str
    client_id: str
    pending_invoice_id: str


class SkippedEngagement(ApiModel):
    engagement_id: str
    reason: str


class SubmitForBillingResult(ApiModel):
    submitted: list[SubmittedEngagement]
    skipped: list[SkippedEngagement]


# ── Line items / totals ──────────────────────────────────────

class LineItemIn(ApiModel):
    sales_item_id: str = ""
    description: str = ""
    quantity: float = Field(default=1, ge=0)
    rate: float = Field(default=0, ge=0)
    discount: float = Field(default=0, ge=0)
    tax_rate_id: str = ""
    sac_code_id: str = ""


class LineTotalsOut(ApiModel):
    total: float
    taxable_amount: float
    tax_amount: float


class InvoiceTotalsOut(ApiModel):
    sub_total: float
    additional_discount: float
    total_discount: float
    taxable_amount: float
    cgst: float
    sgst: float
    igst: float
    total_tax: float
    total_amount: float
    interstate: bool
    tax_applied: bool
    lines: list[LineTotalsOut] = []


class InvoicePreviewRequest(ApiModel):
    firm_id: str
    place_of_supply: str | None = None
    line_items: list[LineItemIn] = Field(default_factory=list)
    additional_discount: float = Field(default=0, ge=0)


# ── Invoice generation ───────────────────────────────────────

class GenerateInvoiceRequest(ApiModel):
    firm_id: str | None = None
    # Defaults to the client's state
    place_of_supply: str | None = None
    line_items: list[LineItemIn] = Field(default_factory=list)
    additional_discount: float = Field(default=0, ge=0)
    issue_date: datetime | None = None
    due_date: datetime | None = None
    # Defaults to settings.invoice_next_bill_status
    next_bill_status: BillStatus | None = None

    @field_validator("next_bill_status")
    @classmethod
    def valid_next_status(cls, v: BillStatus | None) -> BillStatus | None:
        if v is not None and v == BillStatus.TO_BILL:
            raise ValueError("nextBillStatus must be 'Pending Collection' or 'Collected'")
        return v


class GenerateInvoiceResult(ApiModel):
    invoice: Invoice
    engagement_id: str
    bill_status: BillStatus
    fees: float
    removed_pending_invoice_id: str


class InvoiceDraft(ApiModel):
    """Pre-filled invoice form for a pending invoice."""
    pending_invoice_id: str
    engagement_id: str
    client_id: str
    client_name: str
    engagement_type_name: str
    partner_name: str
    assigned_to_names: list[str]
    bill_submission_date: datetime | None = None
    firm_id: str | None = None
    place_of_supply: str | None = None
    line_items: list[LineItemIn]
    totals: InvoiceTotalsOut | None = None


class AdHocInvoiceRequest(ApiModel):
    client_id: str
    engagement_type_id: str
    remarks: str = Field(min_length=1)
    assigned_to: list[str] = Field(min_length=1)
    reported_to: str = Field(min_length=1)
    firm_id: str | None = None
    place_of_supply: str | None = None
    line_items: list[LineItemIn] = Field(default_factory=list)
    additional_discount: float = Field(default=0, ge=0)
    next_bill_status: BillStatus | None = None

    @field_validator("next_bill_status")
    @classmethod
    def valid_next_status(cls, v: BillStatus | None) -> BillStatus | None:
        if v is not None and v == BillStatus.TO_BILL:
            raise ValueError("nextBillStatus must be 'Pending Collection' or 'Collected'")
        return v


class AdHocInvoiceResult(ApiModel):
    invoice: Invoice
    engagement_id: str
    bill_status: BillStatus


class InvoiceUpdateRequest(ApiModel):
    firm_id: str | None = None
    place_of_supply: str | None = None
    line_items: list[LineItemIn] | None = None
    additional_discount: float | None = Field(default=None, ge=0)
    status: InvoiceStatus | None = None


# ── Bill status ──────────────────────────────────────────────

class BillStatusUpdate(ApiModel):
    bill_status: BillStatus | None
    # Administrative override: any transition, including back to unbilled
    force: bool = False


class BillStatusResult(ApiModel):
    engagement_id: str
    client_id: str
    previous_bill_status: BillStatus | None
    bill_status: BillStatus | None
    removed_pending_invoice_ids: list[str]


# ── Dashboard ────────────────────────────────────────────────

class BillingDashboardRow(ApiModel):
    pending_invoice_id: str
    engagement_id: str
    bill_submission_date: datetime | None = None
    client_name: str
    partner_name: str
    engagement_type_name: str
    assigned_to_names: str
    remarks: str


class BillingDashboardPage(PaginatedResponse[BillingDashboardRow]):
    unbilled_count: int
