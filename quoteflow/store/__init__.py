"""Persistence adapters: document store and blob store."""

from quoteflow.store.base import BlobStore, DocumentStore
from quoteflow.store.blob import LocalBlobStore
from quoteflow.store.sql import SqlDocumentStore

__all__ = [
    "BlobStore",
    "DocumentStore",
    "LocalBlobStore",
    "SqlDocumentStore",
]
