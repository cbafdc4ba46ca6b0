"""Lightweight helper for recording activity log entries.

Usage:
    await log_activity(
        db, user, type="invoice_generated",
        engagement_id=engagement.id, client_id=engagement.client_id,
        details={"invoiceNumber": invoice.invoice_number},
    )

The row is added to the current session and committed with the
enclosing transaction; no extra flush is performed. Call it only after
the document-store batch has committed, so the log never records a
change that was not applied.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from firmbook.models.activity_log import ActivityLog
from firmbook.schemas.documents import Employee

ACTIVITY_TYPES = {
    "billing_submitted",
    "invoice_generated",
    "invoice_updated",
    "bill_status_changed",
    "adhoc_invoice_created",
}


async def log_activity(
    db: AsyncSession,
    user: Employee,
    *,
    type: str,
    engagement_id: str | None = None,
    client_id: str | None = None,
    engagement_name: str | None = None,
    details: dict | None = None,
) -> None:
    """Append an activity log entry to the current DB session."""
    if type not in ACTIVITY_TYPES:
        raise ValueError(f"Unknown activity type: {type}")
    payload = dict(details or {})
    if engagement_name is not None:
        payload.setdefault("engagementName", engagement_name)
    entry = ActivityLog(
        engagement_id=engagement_id,
        client_id=client_id,
        type=type,
        user_id=user.id,
        user_name=user.name,
        details=payload or None,
    )
    db.add(entry)
