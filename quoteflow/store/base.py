"""Persistence contracts consumed by the workflow engine.

The engine only talks to these abstract adapters. ``SqlDocumentStore`` and
``LocalBlobStore`` are the bundled implementations; anything with the same
semantics (merge updates, store-assigned ids, created-at ordering) can be
injected instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any

from quoteflow.errors import NotFound
from quoteflow.models import (
    Document,
    DocumentDraft,
    DocumentType,
    Quotation,
    QuotationDraft,
    Thread,
    Vessel,
    VesselDraft,
)


class DocumentStore(ABC):
    """Threads with nested quotations and documents, plus vessel reference data."""

    @abstractmethod
    def atomic(self) -> AbstractAsyncContextManager[None]:
        """Group the calls made inside the block into one transaction.

        Nested blocks join the outer transaction.
        """

    # Threads

    @abstractmethod
    async def find_thread(self, thread_id: str) -> Thread | None: ...

    async def get_thread(self, thread_id: str) -> Thread:
        """Raises NotFound when the thread does not exist."""
        thread = await self.find_thread(thread_id)
        if thread is None:
            raise NotFound("thread", thread_id)
        return thread

    @abstractmethod
    async def create_thread(self, thread: Thread) -> Thread: ...

    @abstractmethod
    async def upsert_thread(self, thread_id: str, **fields: Any) -> Thread:
        """Merge ``fields`` into the thread and refresh ``updated_at``."""

    @abstractmethod
    async def list_threads(self) -> list[Thread]:
        """All threads, newest first."""

    # Quotations

    @abstractmethod
    async def list_quotations(self, thread_id: str) -> list[Quotation]:
        """Quotations of one thread, newest first."""

    @abstractmethod
    async def get_quotation(self, thread_id: str, quotation_id: str) -> Quotation: ...

    @abstractmethod
    async def add_quotation(self, thread_id: str, quotation: QuotationDraft) -> Quotation: ...

    @abstractmethod
    async def update_quotation(
        self, thread_id: str, quotation_id: str, **fields: Any
    ) -> Quotation: ...

    @abstractmethod
    async def delete_quotation(self, thread_id: str, quotation_id: str) -> None: ...

    @abstractmethod
    async def latest_quotations(self) -> dict[str, Quotation]:
        """Newest quotation of each thread, keyed by thread id."""

    # Documents

    @abstractmethod
    async def list_documents(
        self, thread_id: str, type: DocumentType | None = None
    ) -> list[Document]:
        """Documents of one thread (optionally of one type), newest first."""

    @abstractmethod
    async def list_all_documents(self, type: DocumentType | None = None) -> list[Document]:
        """Documents of every thread (optionally of one type), newest first."""

    @abstractmethod
    async def get_document(self, thread_id: str, document_id: str) -> Document: ...

    @abstractmethod
    async def add_document(
        self,
        thread_id: str,
        document: DocumentDraft,
        document_id: str | None = None,
    ) -> Document:
        """Insert a document; ``document_id`` lets callers pre-allocate the id
        used in the blob path."""

    @abstractmethod
    async def update_document(
        self, thread_id: str, document_id: str, **fields: Any
    ) -> Document: ...

    # Vessels

    @abstractmethod
    async def list_vessels(self) -> list[Vessel]: ...

    @abstractmethod
    async def get_vessel(self, vessel_id: str) -> Vessel: ...

    @abstractmethod
    async def find_vessels(self, **equals: str) -> list[Vessel]:
        """Vessels whose columns equal every given value."""

    @abstractmethod
    async def add_vessel(self, vessel: VesselDraft) -> Vessel: ...

    @abstractmethod
    async def update_vessel(self, vessel_id: str, **fields: Any) -> Vessel: ...

    @abstractmethod
    async def delete_vessel(self, vessel_id: str) -> None: ...


class BlobStore(ABC):
    """Binary file storage returning retrievable URLs."""

    @abstractmethod
    async def upload(
        self, path: str, data: bytes, content_type: str | None = None
    ) -> str:
        """Store ``data`` at ``path`` and return its URL."""
