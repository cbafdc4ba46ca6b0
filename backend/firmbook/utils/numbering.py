"""Invoice number generation.

Reads the format template from settings and fills its tokens.

Format tokens:
  {year}       → four-digit issue year
  {date}       → YYYYMMDD
  {token:N}    → N random uppercase letters/digits

Default format:
  INV-{year}-{token:5}      e.g. INV-2026-7K2QD

The document store has no sequences, so numbers are random rather than
sequential; a candidate already used by another invoice is redrawn.
"""

import logging
import re
import secrets
import string
from datetime import datetime, timezone

from firmbook.config import settings
from firmbook.documents import collections
from firmbook.documents.store import DocumentStore, where
from firmbook.middleware.exceptions import DocumentStoreError

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_uppercase + string.digits
MAX_ATTEMPTS = 5

_TOKEN_RE = re.compile(r"\{token:(\d+)\}")


def render_number(fmt: str, issued_at: datetime | None = None) -> str:
    """Fill a format template once (no uniqueness check)."""
    issued_at = issued_at or datetime.now(timezone.utc)
    code = fmt.replace("{year}", f"{issued_at.year:04d}")
    code = code.replace("{date}", issued_at.strftime("%Y%m%d"))
    return _TOKEN_RE.sub(
        lambda m: "".join(secrets.choice(ALPHABET) for _ in range(int(m.group(1)))),
        code,
    )


async def generate_invoice_number(
    store: DocumentStore,
    issued_at: datetime | None = None,
    fmt: str | None = None,
) -> str:
    """Generate an invoice number not used by any stored invoice."""
    fmt = fmt or settings.invoice_number_format
    for _ in range(MAX_ATTEMPTS):
        candidate = render_number(fmt, issued_at)
        clash = await store.query(collections.INVOICES, where("invoiceNumber", "==", candidate))
        if not clash:
            return candidate
        logger.info("Invoice number %s already used, drawing again", candidate)
    raise DocumentStoreError(f"Could not allocate a unique invoice number for format {fmt!r}")
