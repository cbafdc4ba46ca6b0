"""CSV rendering of invoice register rows."""

import csv
import io
from dataclasses import dataclass
from typing import Callable

from fastapi.responses import StreamingResponse

from firmbook.schemas.reports import InvoiceRegisterRow


@dataclass
class ColumnDef:
    """One exported column: header plus how to read it from a row."""
    header: str
    value: Callable[[InvoiceRegisterRow], object]


def _amount(v: float) -> str:
    return f"{v:.2f}"


INVOICE_COLUMNS: list[ColumnDef] = [
    ColumnDef("Invoice Number", lambda r: r.invoice_number),
    ColumnDef("Date", lambda r: r.issue_date.date().isoformat()),
    ColumnDef("Client", lambda r: r.client_name),
    ColumnDef("GSTIN", lambda r: r.client_gstin),
    ColumnDef("Firm", lambda r: r.firm_name),
    ColumnDef("Status", lambda r: r.status),
    ColumnDef("Subtotal", lambda r: _amount(r.sub_total)),
    ColumnDef("Discount", lambda r: _amount(r.total_discount)),
    ColumnDef("Taxable Amount", lambda r: _amount(r.taxable_amount)),
    ColumnDef("Tax", lambda r: _amount(r.total_tax)),
    ColumnDef("Total", lambda r: _amount(r.total_amount)),
]


def invoices_to_csv(rows: list[InvoiceRegisterRow]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([c.header for c in INVOICE_COLUMNS])
    for row in rows:
        writer.writerow([c.value(row) for c in INVOICE_COLUMNS])
    return output.getvalue()


def csv_response(csv_text: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
