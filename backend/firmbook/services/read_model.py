"""Joined views over engagements, clients, employees and reference data.

Documents hold ids only; every screen needs names. ``BillingReadModel``
loads each lookup collection at most once per request and resolves ids
to display names, falling back to placeholders when a referenced
document is gone:

  missing client           → "Unknown Client"
  missing employee / type  → "N/A"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from firmbook.documents.repository import get_document, list_documents, load_map, parse_document
from firmbook.documents.store import DocumentStore, where
from firmbook.schemas.billing import BillingDashboardRow
from firmbook.schemas.documents import (
    BillStatus,
    Client,
    Employee,
    Engagement,
    EngagementStatus,
    EngagementType,
    Firm,
    PendingInvoice,
)
from firmbook.services.masters import reference_map

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "Unknown Client"
NOT_AVAILABLE = "N/A"


def aware(value: datetime) -> datetime:
    # Older documents carry naive timestamps; they were written in UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@dataclass
class EngagementView:
    engagement: Engagement
    client: Client | None
    engagement_type: EngagementType | None

    @property
    def client_name(self) -> str:
        return self.client.name if self.client else UNKNOWN_CLIENT

    @property
    def type_name(self) -> str:
        return self.engagement_type.name if self.engagement_type else NOT_AVAILABLE


class BillingReadModel:
    def __init__(self, store: DocumentStore):
        self.store = store
        self._clients: dict[str, Client] | None = None
        self._employees: dict[str, Employee] | None = None
        self._types: dict[str, EngagementType] | None = None
        self._firms: dict[str, Firm] | None = None

    # ── Lookup maps ──────────────────────────────────────────

    async def clients(self) -> dict[str, Client]:
        if self._clients is None:
            self._clients = await load_map(self.store, Client)
        return self._clients

    async def employees(self) -> dict[str, Employee]:
        if self._employees is None:
            self._employees = await load_map(self.store, Employee)
        return self._employees

    async def engagement_types(self) -> dict[str, EngagementType]:
        if self._types is None:
            self._types = await reference_map(self.store, EngagementType)
        return self._types

    async def firms(self) -> dict[str, Firm]:
        if self._firms is None:
            self._firms = await reference_map(self.store, Firm)
        return self._firms

    # ── Name resolution ──────────────────────────────────────

    async def client_name(self, client_id: str | None) -> str:
        client = (await self.clients()).get(client_id or "")
        return client.name if client else UNKNOWN_CLIENT

    async def employee_name(self, employee_id: str | None) -> str:
        employee = (await self.employees()).get(employee_id or "")
        return employee.name if employee else NOT_AVAILABLE

    async def employee_names(self, employee_ids: list[str]) -> list[str]:
        employees = await self.employees()
        return [employees[e].name for e in employee_ids if e in employees]

    async def type_name(self, type_id: str | None) -> str:
        etype = (await self.engagement_types()).get(type_id or "")
        return etype.name if etype else NOT_AVAILABLE

    async def firm_name(self, firm_id: str | None) -> str:
        firm = (await self.firms()).get(firm_id or "")
        return firm.name if firm else NOT_AVAILABLE

    async def partner_name(self, client: Client | None, fallback_id: str | None = None) -> str:
        partner_id = (client.partner_id if client else None) or fallback_id
        return await self.employee_name(partner_id)

    # ── Views ────────────────────────────────────────────────

    async def get_engagement_view(self, engagement_id: str) -> EngagementView | None:
        """Engagement with its client and type, or None if it doesn't exist."""
        engagement = await get_document(self.store, Engagement, engagement_id)
        if engagement is None:
            return None
        client = await get_document(self.store, Client, engagement.client_id)
        etype = (await self.engagement_types()).get(engagement.type)
        return EngagementView(engagement=engagement, client=client, engagement_type=etype)

    async def unbilled_engagements(self) -> list[Engagement]:
        completed = await list_documents(
            self.store, Engagement, where("status", "==", EngagementStatus.COMPLETED.value)
        )
        return [e for e in completed if e.is_unbilled]

    async def billing_dashboard(self) -> list[BillingDashboardRow]:
        """Rows for the "To Bill" queue, oldest submission first.

        Pending invoices whose engagement has been deleted are left out.
        """
        pending = await list_documents(self.store, PendingInvoice)
        engagements = await self.store.get_many(
            Engagement.collection, [p.engagement_id for p in pending]
        )
        clients = await self.clients()

        rows: list[BillingDashboardRow] = []
        for p in pending:
            raw = engagements.get(p.engagement_id)
            if raw is None:
                logger.warning(
                    "Pending invoice %s points at missing engagement %s", p.id, p.engagement_id
                )
                continue
            engagement = parse_document(Engagement, raw)
            if engagement.bill_status != BillStatus.TO_BILL:
                logger.warning(
                    "Pending invoice %s kept for engagement %s in %s",
                    p.id, engagement.id, engagement.bill_status,
                )
            client = clients.get(p.client_id)
            rows.append(
                BillingDashboardRow(
                    pending_invoice_id=p.id,
                    engagement_id=engagement.id,
                    bill_submission_date=(
                        aware(engagement.bill_submission_date)
                        if engagement.bill_submission_date else None
                    ),
                    client_name=client.name if client else UNKNOWN_CLIENT,
                    partner_name=await self.partner_name(client, p.partner_id),
                    engagement_type_name=await self.type_name(engagement.type),
                    assigned_to_names=", ".join(await self.employee_names(p.assigned_to)) or NOT_AVAILABLE,
                    remarks=engagement.remarks,
                )
            )
        rows.sort(key=lambda r: (
            r.bill_submission_date is None,
            r.bill_submission_date or datetime.min.replace(tzinfo=timezone.utc),
        ))
        return rows
