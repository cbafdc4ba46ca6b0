"""Document store access.

``get_document_store()`` is the FastAPI dependency every router uses;
tests override it with a ``MemoryDocumentStore``.
"""

import logging

from firmbook.config import settings
from firmbook.documents.store import (  # noqa: F401
    DELETE_FIELD,
    DocumentStore,
    FieldFilter,
    WriteBatch,
    where,
)

logger = logging.getLogger(__name__)

_store: DocumentStore | None = None


def build_document_store() -> DocumentStore:
    """Instantiate the backend named by ``settings.document_store``."""
    backend = settings.document_store.lower()
    if backend == "memory":
        from firmbook.documents.memory import MemoryDocumentStore

        logger.warning("Using in-memory document store; data is lost on restart")
        return MemoryDocumentStore()
    if backend == "firestore":
        from firmbook.documents.firestore import FirestoreDocumentStore

        return FirestoreDocumentStore(
            project=settings.firestore_project,
            database=settings.firestore_database,
        )
    raise ValueError(f"Unknown document store backend: {settings.document_store!r}")


def get_document_store() -> DocumentStore:
    """Return the process-wide store, creating it on first use."""
    global _store
    if _store is None:
        _store = build_document_store()
    return _store


async def close_document_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None
