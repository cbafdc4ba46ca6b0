"""ActivityLog: append-only audit trail of billing actions.

Records who did what to which engagement, and when. Written by the
billing flow, never read back by it.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from firmbook.database import Base


class ActivityLog(Base):
    __tablename__ = "activity_log"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # ── Target ─────────────────────────────────────────────────
    engagement_id: Mapped[str | None] = mapped_column(String(64), index=True)
    client_id: Mapped[str | None] = mapped_column(String(64), index=True)

    # ── What ───────────────────────────────────────────────────
    # billing_submitted | invoice_generated | invoice_updated |
    # bill_status_changed | adhoc_invoice_created
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # ── Who ────────────────────────────────────────────────────
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # ── Context ────────────────────────────────────────────────
    details: Mapped[dict | None] = mapped_column(JSON)

    # ── Timestamp ──────────────────────────────────────────────
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )
