"""Reference data used by the invoice form.

Endpoints (GET lists, POST creates):
    /api/masters/firms
    /api/masters/tax-rates
    /api/masters/hsn-sac-codes
    /api/masters/sales-items
    /api/masters/engagement-types
"""

from fastapi import APIRouter, Depends, status

from firmbook.auth.deps import require_permission
from firmbook.documents import get_document_store
from firmbook.documents.store import DocumentStore
from firmbook.schemas.documents import (
    Employee,
    EngagementType,
    Firm,
    HsnSacCode,
    SalesItem,
    TaxRate,
)
from firmbook.schemas.masters import (
    EngagementTypeCreate,
    FirmCreate,
    HsnSacCodeCreate,
    SalesItemCreate,
    TaxRateCreate,
)
from firmbook.services.masters import create_reference, list_reference

router = APIRouter()

_read = require_permission("masters.read")
_write = require_permission("masters.write")


# ── Firms ────────────────────────────────────────────────────

@router.get("/firms", response_model=list[Firm])
async def list_firms(store: DocumentStore = Depends(get_document_store), _user: Employee = Depends(_read)):
    return await list_reference(store, Firm)


@router.post("/firms", response_model=Firm, status_code=status.HTTP_201_CREATED)
async def create_firm(
    body: FirmCreate,
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(_write),
):
    return await create_reference(store, Firm, body)


# ── Tax rates ────────────────────────────────────────────────

@router.get("/tax-rates", response_model=list[TaxRate])
async def list_tax_rates(store: DocumentStore = Depends(get_document_store), _user: Employee = Depends(_read)):
    return await list_reference(store, TaxRate)


@router.post("/tax-rates", response_model=TaxRate, status_code=status.HTTP_201_CREATED)
async def create_tax_rate(
    body: TaxRateCreate,
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(_write),
):
    return await create_reference(store, TaxRate, body)


# ── HSN / SAC codes ──────────────────────────────────────────

@router.get("/hsn-sac-codes", response_model=list[HsnSacCode])
async def list_sac_codes(store: DocumentStore = Depends(get_document_store), _user: Employee = Depends(_read)):
    return await list_reference(store, HsnSacCode)


@router.post("/hsn-sac-codes", response_model=HsnSacCode, status_code=status.HTTP_201_CREATED)
async def create_sac_code(
    body: HsnSacCodeCreate,
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(_write),
):
    return await create_reference(store, HsnSacCode, body)


# ── Sales items ──────────────────────────────────────────────

@router.get("/sales-items", response_model=list[SalesItem])
async def list_sales_items(store: DocumentStore = Depends(get_document_store), _user: Employee = Depends(_read)):
    return await list_reference(store, SalesItem)


@router.post("/sales-items", response_model=SalesItem, status_code=status.HTTP_201_CREATED)
async def create_sales_item(
    body: SalesItemCreate,
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(_write),
):
    return await create_reference(store, SalesItem, body)


# ── Engagement types ─────────────────────────────────────────

@router.get("/engagement-types", response_model=list[EngagementType])
async def list_engagement_types(
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(_read),
):
    return await list_reference(store, EngagementType)


@router.post("/engagement-types", response_model=EngagementType, status_code=status.HTTP_201_CREATED)
async def create_engagement_type(
    body: EngagementTypeCreate,
    store: DocumentStore = Depends(get_document_store),
    _user: Employee = Depends(_write),
):
    return await create_reference(store, EngagementType, body)
