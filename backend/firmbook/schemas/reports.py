"""Pydantic schemas for the accounts and exception reports."""

from datetime import date, datetime

from firmbook.schemas.common import ApiModel


class UnbilledEngagementRow(ApiModel):
    engagement_id: str
    client_id: str
    client_name: str
    engagement_type_name: str
    remarks: str
    due_date: datetime | None = None
    assigned_to_names: str


class UnbilledReport(ApiModel):
    items: list[UnbilledEngagementRow]
    count: int


class PendingCollectionRow(ApiModel):
    engagement_id: str
    client_name: str
    remarks: str
    fees: float | None = None
    bill_submission_date: datetime | None = None
    days_pending: int


class InvoiceRegisterRow(ApiModel):
    invoice_id: str
    invoice_number: str
    issue_date: datetime
    client_id: str
    client_name: str
    client_gstin: str
    firm_name: str
    status: str
    sub_total: float
    total_discount: float
    taxable_amount: float
    total_tax: float
    total_amount: float


class RevenueSummary(ApiModel):
    date_from: date
    date_to: date
    invoice_count: int
    total_invoiced: float
    total_tax: float
    collected: float
    pending_collection: float
    rows: list[InvoiceRegisterRow]
