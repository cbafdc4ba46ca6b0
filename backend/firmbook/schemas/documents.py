"""Typed shapes of the documents kept in the document store.

Field names are snake_case in Python and camelCase in storage
(``bill_status`` ↔ ``billStatus``). Documents are parsed through these
models at the storage boundary, so a document with a missing or
mistyped field fails loudly instead of surfacing as ``None`` deep in a
report.
"""

from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic.alias_generators import to_camel

from firmbook.documents import collections


class EngagementStatus(str, Enum):
    PENDING = "Pending"
    AWAITING_DOCUMENTS = "Awaiting Documents"
    IN_PROCESS = "In Process"
    PARTNER_REVIEW = "Partner Review"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class BillStatus(str, Enum):
    TO_BILL = "To Bill"
    PENDING_COLLECTION = "Pending Collection"
    COLLECTED = "Collected"


class InvoiceStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    PENDING = "Pending"
    PAID = "Paid"
    CANCELLED = "Cancelled"


class Document(BaseModel):
    """Base for every stored document."""

    collection: ClassVar[str]

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str

    def to_document(self) -> dict:
        """Serialise for storage (camelCase keys, id excluded)."""
        return self.model_dump(by_alias=True, exclude={"id"}, exclude_none=True, mode="json")


# ── Billing core ─────────────────────────────────────────────

class Engagement(Document):
    collection: ClassVar[str] = collections.ENGAGEMENTS

    client_id: str
    type: str
    remarks: str = ""
    status: EngagementStatus
    assigned_to: list[str] = Field(default_factory=list)
    reported_to: str | None = None
    due_date: datetime | None = None
    notes: str | None = None

    bill_status: BillStatus | None = None
    bill_submission_date: datetime | None = None
    fees: float | None = None

    @property
    def is_unbilled(self) -> bool:
        return self.status == EngagementStatus.COMPLETED and self.bill_status is None


class PendingInvoice(Document):
    """Denormalised work-queue row for an engagement in "To Bill"."""

    collection: ClassVar[str] = collections.PENDING_INVOICES

    engagement_id: str
    client_id: str
    assigned_to: list[str] = Field(default_factory=list)
    reported_to: str | None = None
    partner_id: str | None = None


class InvoiceLineItem(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    sales_item_id: str = ""
    description: str = ""
    quantity: float = 1
    rate: float = 0
    discount: float = 0
    tax_rate_id: str = ""
    # Percentage captured when the invoice was issued
    tax_rate: float = 0
    sac_code_id: str = ""
    total: float = 0
    tax_amount: float = 0


class Invoice(Document):
    collection: ClassVar[str] = collections.INVOICES

    invoice_number: str
    engagement_id: str | None = None
    client_id: str
    client_name: str = ""
    client_gstin: str | None = None
    firm_id: str
    firm_state: str | None = None
    firm_gstn: str | None = None
    place_of_supply: str | None = None
    issue_date: datetime
    due_date: datetime | None = None
    status: InvoiceStatus = InvoiceStatus.SENT

    line_items: list[InvoiceLineItem] = Field(default_factory=list)
    additional_discount: float = 0
    sub_total: float
    total_discount: float = 0
    taxable_amount: float
    cgst: float = 0
    sgst: float = 0
    igst: float = 0
    total_tax: float = 0
    total_amount: float


# ── Parties ──────────────────────────────────────────────────

class Client(Document):
    collection: ClassVar[str] = collections.CLIENTS

    name: str
    partner_id: str | None = None
    firm_id: str | None = None
    state: str | None = None
    gstin: str | None = None
    pan: str | None = None
    mail_id: str | None = None
    mobile_number: str | None = None
    category: str | None = None


class Employee(Document):
    collection: ClassVar[str] = collections.EMPLOYEES

    name: str
    email: str | None = None
    designation: str | None = None
    role: list[str] = Field(default_factory=list)

    # Claims of the token this employee authenticated with (request scope)
    _token_payload: dict = PrivateAttr(default_factory=dict)


class Firm(Document):
    collection: ClassVar[str] = collections.FIRMS

    name: str
    state: str | None = None
    # Empty / missing means the firm is not GST registered
    gstn: str | None = None
    pan: str | None = None

    @property
    def is_gst_registered(self) -> bool:
        return bool(self.gstn and self.gstn.strip())


# ── Reference tables ─────────────────────────────────────────

class EngagementType(Document):
    collection: ClassVar[str] = collections.ENGAGEMENT_TYPES

    name: str
    description: str = ""


class TaxRate(Document):
    collection: ClassVar[str] = collections.TAX_RATES

    name: str
    rate: float
    is_default: bool = False


class HsnSacCode(Document):
    collection: ClassVar[str] = collections.HSN_SAC_CODES

    code: str
    description: str = ""
    is_default: bool = False


class SalesItem(Document):
    collection: ClassVar[str] = collections.SALES_ITEMS

    name: str
    description: str = ""
    standard_price: float = 0
    default_tax_rate_id: str | None = None
    default_sac_id: str | None = None
    associated_engagement_type_id: str | None = None
