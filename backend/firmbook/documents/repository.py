"""Typed reads over the document store.

Every read in the services goes through these helpers so raw dicts
never leave the storage boundary.
"""

import logging
from typing import TypeVar

from pydantic import ValidationError

from firmbook.documents.store import DocumentStore, FieldFilter
from firmbook.middleware.exceptions import DocumentSchemaError, ResourceNotFoundError
from firmbook.schemas.documents import Document

logger = logging.getLogger(__name__)

D = TypeVar("D", bound=Document)

_RESOURCE_NAMES = {
    "engagements": "Engagement",
    "pendingInvoices": "Pending invoice",
    "invoices": "Invoice",
    "clients": "Client",
    "employees": "Employee",
    "firms": "Firm",
    "engagementTypes": "Engagement type",
    "taxRates": "Tax rate",
    "hsnSacCodes": "HSN/SAC code",
    "salesItems": "Sales item",
}


def parse_document(model: type[D], data: dict) -> D:
    """Validate one raw document against its model."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        doc_id = str(data.get("id", "?"))
        logger.error(
            "Document %s/%s does not match %s: %s",
            model.collection, doc_id, model.__name__, e.errors(include_url=False),
        )
        raise DocumentSchemaError(
            model.collection,
            doc_id,
            e.errors(include_url=False, include_input=False),
        ) from e


async def get_document(store: DocumentStore, model: type[D], doc_id: str | None) -> D | None:
    if not doc_id:
        return None
    data = await store.get(model.collection, doc_id)
    return parse_document(model, data) if data is not None else None


async def require_document(store: DocumentStore, model: type[D], doc_id: str) -> D:
    """Like get_document() but a miss raises ResourceNotFoundError (404)."""
    doc = await get_document(store, model, doc_id)
    if doc is None:
        raise ResourceNotFoundError(_RESOURCE_NAMES.get(model.collection, model.__name__), doc_id)
    return doc


async def list_documents(store: DocumentStore, model: type[D], *filters: FieldFilter) -> list[D]:
    return [parse_document(model, data) for data in await store.query(model.collection, *filters)]


async def load_map(store: DocumentStore, model: type[D]) -> dict[str, D]:
    """Whole collection keyed by id, for in-memory joins."""
    return {doc.id: doc for doc in await list_documents(store, model)}
