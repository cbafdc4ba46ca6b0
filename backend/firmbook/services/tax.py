"""GST computation for invoices.

Rules:
  - line net        = quantity × rate − line discount
  - subTotal        = Σ quantity × rate
  - totalDiscount   = Σ line discount + additional discount
  - taxableAmount   = subTotal − totalDiscount
  - the additional (invoice-level) discount is spread over the lines in
    proportion to each line's net amount before the line's tax rate is
    applied
  - firm state == place of supply → tax split evenly into CGST + SGST,
    otherwise the whole amount is IGST
  - a firm without a GSTN charges no tax at all, whatever rates the
    lines carry (unregistered dealer)
  - totalAmount     = taxableAmount + totalTax

All arithmetic is Decimal; stored figures are rounded half-up to paise.
CGST and SGST are rounded individually and totalTax is their sum, so
``cgst == sgst == totalTax / 2`` holds exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from firmbook.schemas.documents import Invoice

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    # str() first so 0.1 stays 0.1 rather than its binary expansion
    return Decimal(str(value))


def money(value: Decimal) -> Decimal:
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _normalise_state(state: str | None) -> str:
    return (state or "").strip().casefold()


def is_interstate(firm_state: str | None, place_of_supply: str | None) -> bool:
    return _normalise_state(firm_state) != _normalise_state(place_of_supply)


@dataclass
class TaxLine:
    quantity: Decimal
    rate: Decimal
    discount: Decimal = ZERO
    tax_percent: Decimal = ZERO

    @classmethod
    def of(cls, quantity, rate, discount=0, tax_percent=0) -> "TaxLine":
        return cls(
            quantity=to_decimal(quantity),
            rate=to_decimal(rate),
            discount=to_decimal(discount),
            tax_percent=to_decimal(tax_percent),
        )

    @property
    def gross(self) -> Decimal:
        return self.quantity * self.rate

    @property
    def net(self) -> Decimal:
        return self.gross - self.discount


@dataclass
class LineTotals:
    net: Decimal
    taxable: Decimal
    tax: Decimal


@dataclass
class InvoiceTotals:
    sub_total: Decimal
    line_discount: Decimal
    additional_discount: Decimal
    total_discount: Decimal
    taxable_amount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_tax: Decimal
    total_amount: Decimal
    interstate: bool
    tax_applied: bool
    lines: list[LineTotals] = field(default_factory=list)

    def as_fields(self) -> dict:
        """Invoice-level figures as floats, ready for the Invoice model."""
        return {
            "sub_total": float(self.sub_total),
            "additional_discount": float(self.additional_discount),
            "total_discount": float(self.total_discount),
            "taxable_amount": float(self.taxable_amount),
            "cgst": float(self.cgst),
            "sgst": float(self.sgst),
            "igst": float(self.igst),
            "total_tax": float(self.total_tax),
            "total_amount": float(self.total_amount),
        }


def compute_totals(
    lines: Iterable[TaxLine],
    *,
    firm_gst_registered: bool,
    firm_state: str | None,
    place_of_supply: str | None,
    additional_discount=0,
) -> InvoiceTotals:
    """Compute every invoice figure from its lines."""
    lines = list(lines)
    additional = to_decimal(additional_discount)
    interstate = is_interstate(firm_state, place_of_supply)

    gross_total = sum((line.gross for line in lines), ZERO)
    line_discount = sum((line.discount for line in lines), ZERO)
    net_total = gross_total - line_discount
    taxable_total = net_total - additional

    tax_applied = firm_gst_registered and taxable_total > 0
    raw_tax = ZERO
    line_totals: list[LineTotals] = []

    for line in lines:
        net = line.net
        taxable = net
        tax = ZERO
        if tax_applied and net > 0:
            taxable = net - (net / net_total) * additional
            if line.tax_percent > 0:
                tax = taxable * line.tax_percent / HUNDRED
        raw_tax += tax
        line_totals.append(LineTotals(net=money(net), taxable=money(taxable), tax=money(tax)))

    if interstate:
        cgst = sgst = ZERO
        igst = money(raw_tax)
    else:
        cgst = sgst = money(raw_tax / 2)
        igst = ZERO
    total_tax = cgst + sgst + igst

    sub_total = money(gross_total)
    total_discount = money(line_discount + additional)
    taxable_amount = sub_total - total_discount

    return InvoiceTotals(
        sub_total=sub_total,
        line_discount=money(line_discount),
        additional_discount=money(additional),
        total_discount=total_discount,
        taxable_amount=taxable_amount,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        total_tax=total_tax,
        total_amount=taxable_amount + total_tax,
        interstate=interstate,
        tax_applied=tax_applied,
        lines=line_totals,
    )


def recompute_invoice(invoice: Invoice) -> InvoiceTotals:
    """Recompute totals from a stored invoice alone.

    Uses the tax percentages, firm state and GSTN captured on the
    invoice, so later edits to reference tables don't change the result.
    """
    return compute_totals(
        (
            TaxLine.of(li.quantity, li.rate, li.discount, li.tax_rate)
            for li in invoice.line_items
        ),
        firm_gst_registered=bool(invoice.firm_gstn and invoice.firm_gstn.strip()),
        firm_state=invoice.firm_state,
        place_of_supply=invoice.place_of_supply,
        additional_discount=invoice.additional_discount,
    )


def totals_match(invoice: Invoice, totals: InvoiceTotals) -> bool:
    stored = (
        invoice.sub_total, invoice.total_discount, invoice.taxable_amount,
        invoice.total_tax, invoice.total_amount,
    )
    computed = (
        totals.sub_total, totals.total_discount, totals.taxable_amount,
        totals.total_tax, totals.total_amount,
    )
    return all(money(to_decimal(s)) == c for s, c in zip(stored, computed))
