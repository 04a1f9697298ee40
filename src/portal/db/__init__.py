"""Database package - document store protocol and backends."""
from .document_store import (
    DocumentStore,
    FirebaseDocumentStore,
    InMemoryDocumentStore,
    create_document_store,
    get_document_store,
    set_document_store,
    utc_now_iso,
)

__all__ = [
    "DocumentStore",
    "FirebaseDocumentStore",
    "InMemoryDocumentStore",
    "create_document_store",
    "get_document_store",
    "set_document_store",
    "utc_now_iso",
]
