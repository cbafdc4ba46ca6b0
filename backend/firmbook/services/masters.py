"""Reference data: firms, tax rates, HSN/SAC codes, sales items and
engagement types.

Reads go through the Redis cache; every create invalidates it.
"""

import logging
from typing import TypeVar

from pydantic import BaseModel

from firmbook.documents.repository import parse_document
from firmbook.documents.store import DocumentStore
from firmbook.schemas.documents import (
    Document,
    EngagementType,
    Firm,
    HsnSacCode,
    SalesItem,
    TaxRate,
)
from firmbook.utils.cache import cached, invalidate_cache

logger = logging.getLogger(__name__)

D = TypeVar("D", bound=Document)

MASTER_MODELS: tuple[type[Document], ...] = (Firm, TaxRate, HsnSacCode, SalesItem, EngagementType)


@cached(prefix="masters")
async def fetch_reference(store: DocumentStore, *, collection: str) -> list[dict]:
    return await store.query(collection)


async def list_reference(store: DocumentStore, model: type[D]) -> list[D]:
    docs = [parse_document(model, data) for data in await fetch_reference(store, collection=model.collection)]
    return sorted(docs, key=lambda d: (getattr(d, "name", None) or getattr(d, "code", "")).casefold())


async def reference_map(store: DocumentStore, model: type[D]) -> dict[str, D]:
    return {doc.id: doc for doc in await list_reference(store, model)}


async def create_reference(store: DocumentStore, model: type[D], payload: BaseModel) -> D:
    """Store a new reference document and drop the cached lists."""
    doc = model(id=store.new_id(model.collection), **payload.model_dump())
    batch = store.batch()
    batch.set(model.collection, doc.id, doc.to_document())
    await batch.commit()
    await invalidate_cache("masters:*")
    logger.info("Created %s %s", model.collection, doc.id)
    return doc


async def default_tax_rate(store: DocumentStore) -> TaxRate | None:
    rates = await list_reference(store, TaxRate)
    return next((r for r in rates if r.is_default), None)


async def default_sac_code(store: DocumentStore) -> HsnSacCode | None:
    codes = await list_reference(store, HsnSacCode)
    return next((c for c in codes if c.is_default), None)
