"""Thread lifecycle: quotation, purchase order, delivery note, invoice.

Each operation checks its guards against the current store state and then
writes. Files go to the blob store first, document records second, and the
thread status update is the last write. Guard reads, document records and
the status update share one store transaction, so a failed status write
also drops the document record and the transition can be retried.
"""

from __future__ import annotations

import json
import logging
import random
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from quoteflow.config import WorkflowConfig
from quoteflow.errors import PreconditionFailed, ValidationFailed
from quoteflow.models import (
    ORIGINAL_VERSION,
    DeliveryNoteContent,
    DeliveryNoteItem,
    Document,
    DocumentDraft,
    DocumentType,
    InvoiceContent,
    Quotation,
    QuotationContent,
    QuotationDraft,
    QuotationStatus,
    RegisteredDocument,
    Thread,
    ThreadStatus,
    ThreadSummary,
    ThreadWithRelations,
    UploadedFile,
    utcnow,
)
from quoteflow.store.base import BlobStore, DocumentStore
from quoteflow.workflow.refids import next_ref_id, thread_refs
from quoteflow.workflow.revisions import RevisionEngine, coerce_content

logger = logging.getLogger(__name__)

PURCHASE_ORDER_STAGE = ThreadStatus.PURCHASE_ORDER_RECEIVED.stage

# Document types that hold a user upload rather than generated JSON
UPLOADED_TYPES = frozenset({DocumentType.PURCHASE_ORDER, DocumentType.DELIVERY_NOTE_SIGNED})


class ThreadWorkflow:
    """State machine over threads, backed by injected document and blob stores.

    Args:
        store: Document store holding threads, quotations and documents
        blobs: Blob store for uploaded PDFs and generated documents
        config: Numbering and currency settings (defaults when omitted)
    """

    def __init__(
        self,
        store: DocumentStore,
        blobs: BlobStore,
        config: WorkflowConfig | None = None,
    ):
        self.store = store
        self.blobs = blobs
        self.config = config or WorkflowConfig()
        self.revisions = RevisionEngine(store, self.config)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_thread(self, thread_id: str) -> Thread:
        return await self.store.get_thread(thread_id)

    async def get_thread_with_relations(self, thread_id: str) -> ThreadWithRelations:
        thread = await self.store.get_thread(thread_id)
        quotations = await self.store.list_quotations(thread_id)
        documents = await self.store.list_documents(thread_id)
        return ThreadWithRelations(
            **thread.model_dump(), quotations=quotations, documents=documents
        )

    async def list_threads(self) -> list[Thread]:
        return await self.store.list_threads()

    async def list_thread_summaries(self) -> list[ThreadSummary]:
        """Threads, newest first, each with its newest quotation."""
        threads = await self.store.list_threads()
        latest = await self.store.latest_quotations()
        return [
            ThreadSummary(**thread.model_dump(), latest_quotation=latest.get(thread.thread_id))
            for thread in threads
        ]

    async def document_register(
        self, doc_type: DocumentType | None = None
    ) -> list[RegisteredDocument]:
        """Documents across all threads, newest first.

        Backs the purchase order, delivery note and invoice registers; each
        row carries the PO number, client and status of its thread.
        """
        documents = await self.store.list_all_documents(doc_type)
        threads = {thread.thread_id: thread for thread in await self.store.list_threads()}
        register = []
        for document in documents:
            thread = threads[document.thread_id]
            register.append(
                RegisteredDocument(
                    **document.model_dump(),
                    po_id=thread.po_id,
                    client_name=thread.client_name,
                    thread_status=thread.status,
                )
            )
        return register

    async def next_ref_id(self) -> str:
        threads = await self.store.list_threads()
        return next_ref_id(
            thread_refs(threads), self.config.ref_prefix, self.config.ref_seed
        )

    # ------------------------------------------------------------------
    # Quotation stage
    # ------------------------------------------------------------------

    async def create_thread(
        self,
        content: QuotationContent | dict[str, Any],
        ref_id: str | None = None,
    ) -> tuple[Thread, Quotation]:
        """Open a thread with its original quotation.

        Raises:
            ValidationFailed: If ``content`` is malformed
            PreconditionFailed: If ``ref_id`` is already in use
        """
        content = coerce_content(content)
        ref_id = (ref_id or "").strip() or await self.next_ref_id()

        async with self.store.atomic():
            if await self.store.find_thread(ref_id) is not None:
                raise PreconditionFailed("ref_id_unused", f"Thread {ref_id} already exists")

            content = self.revisions.price(content.model_copy(update={"ref_id": ref_id}))
            thread = await self.store.create_thread(
                Thread(thread_id=ref_id, user_ref_id=ref_id, client_name=content.party_name)
            )
            quotation = await self.store.add_quotation(
                ref_id, QuotationDraft(version=ORIGINAL_VERSION, content=content)
            )

        self._log_transition(thread)
        return thread, quotation

    async def decline(self, thread_id: str) -> Thread:
        """Decline every open quotation and clear the final selection."""
        async with self.store.atomic():
            thread = await self.store.get_thread(thread_id)
            if thread.status not in (
                ThreadStatus.QUOTATION_CREATED,
                ThreadStatus.QUOTATION_ACCEPTED,
            ):
                raise PreconditionFailed(
                    "thread_declinable",
                    f"Thread {thread_id} cannot be declined from {thread.status.value}",
                )

            for quotation in await self.store.list_quotations(thread_id):
                fields: dict[str, Any] = {}
                if quotation.status != QuotationStatus.DECLINED:
                    fields["status"] = QuotationStatus.DECLINED
                if quotation.is_final:
                    fields["is_final"] = False
                if fields:
                    await self.store.update_quotation(thread_id, quotation.id, **fields)

            thread = await self.store.upsert_thread(
                thread_id,
                status=ThreadStatus.QUOTATION_DECLINED,
                final_quotation_id=None,
            )

        self._log_transition(thread)
        return thread

    async def undo_decline(self, thread_id: str) -> Thread:
        """Reopen a declined thread; every declined quotation becomes pending."""
        async with self.store.atomic():
            thread = await self.store.get_thread(thread_id)
            if not thread.is_declined:
                raise PreconditionFailed(
                    "thread_declined", f"Thread {thread_id} is not declined"
                )

            for quotation in await self.store.list_quotations(thread_id):
                if quotation.status == QuotationStatus.DECLINED:
                    await self.store.update_quotation(
                        thread_id, quotation.id, status=QuotationStatus.PENDING
                    )

            thread = await self.store.upsert_thread(
                thread_id, status=ThreadStatus.QUOTATION_CREATED
            )

        self._log_transition(thread)
        return thread

    async def accept_quotation(
        self, thread_id: str, quotation_id: str, mark_final: bool = False
    ) -> Quotation:
        async with self.store.atomic():
            thread = await self.store.get_thread(thread_id)
            await self.store.get_quotation(thread_id, quotation_id)
            self._ensure_open(thread)

            quotation = await self.store.update_quotation(
                thread_id, quotation_id, status=QuotationStatus.ACCEPTED
            )
            if mark_final:
                quotation = await self.revisions.set_final(thread_id, quotation_id)
            else:
                await self.store.upsert_thread(thread_id)

        logger.info("Quotation %s accepted in thread %s", quotation_id, thread_id)
        return quotation

    async def mark_final(self, thread_id: str, quotation_id: str) -> Quotation:
        quotation = await self.revisions.set_final(thread_id, quotation_id)
        self._log_transition(await self.store.get_thread(thread_id))
        return quotation

    # ------------------------------------------------------------------
    # Purchase order and work
    # ------------------------------------------------------------------

    async def attach_purchase_order(
        self, thread_id: str, po_id: str, file: UploadedFile
    ) -> Document:
        """Store the client's PO file and move the thread to PurchaseOrderRecieved.

        Raises:
            ValidationFailed: If ``po_id`` is blank or the file is not a PDF
            PreconditionFailed: If no quotation is final, the thread is past
                the purchase-order stage or a PO is already attached
        """
        po_id = _require_text(po_id, "po_id")
        _require_pdf(file)

        async with self.store.atomic():
            thread = await self.store.get_thread(thread_id)
            await self._require_po_stage(thread)
            if await self.store.list_documents(thread_id, DocumentType.PURCHASE_ORDER):
                raise PreconditionFailed(
                    "purchase_order_absent",
                    f"Thread {thread_id} already has a purchase order; replace it instead",
                )

            document = await self._store_upload(thread_id, DocumentType.PURCHASE_ORDER, file)
            thread = await self.store.upsert_thread(
                thread_id, po_id=po_id, status=ThreadStatus.PURCHASE_ORDER_RECEIVED
            )

        self._log_transition(thread)
        return document

    async def mark_purchase_order_uploaded(self, thread_id: str, po_id: str) -> Thread:
        po_id = _require_text(po_id, "po_id")
        async with self.store.atomic():
            thread = await self.store.get_thread(thread_id)
            await self._require_po_stage(thread)

            thread = await self.store.upsert_thread(
                thread_id, po_id=po_id, status=ThreadStatus.PURCHASE_ORDER_RECEIVED
            )
        self._log_transition(thread)
        return thread

    async def start_work(self, thread_id: str) -> Thread:
        thread = await self.store.get_thread(thread_id)
        if thread.status != ThreadStatus.PURCHASE_ORDER_RECEIVED:
            raise PreconditionFailed(
                "purchase_order_received",
                f"Work can only start once a purchase order is received "
                f"(thread {thread_id} is {thread.status.value})",
            )

        thread = await self.store.upsert_thread(thread_id, status=ThreadStatus.WORK_STARTED)
        self._log_transition(thread)
        return thread

    # ------------------------------------------------------------------
    # Delivery note
    # ------------------------------------------------------------------

    async def create_delivery_note(
        self, thread_id: str, overrides: dict[str, Any] | None = None
    ) -> Document:
        """Generate the unsigned delivery note from the final quotation.

        ``overrides`` replaces any generated field (attn, tel, dispatch_date,
        per-item delivered quantities via ``items`` and so on).
        """
        async with self.store.atomic():
            thread = await self.store.get_thread(thread_id)
            if not thread.po_id:
                raise PreconditionFailed(
                    "po_id_set", f"Thread {thread_id} has no purchase order number"
                )
            if thread.status not in (
                ThreadStatus.PURCHASE_ORDER_RECEIVED,
                ThreadStatus.WORK_STARTED,
            ):
                raise PreconditionFailed(
                    "delivery_note_stage",
                    f"Cannot create a delivery note while thread {thread_id} is {thread.status.value}",
                )
            if await self.store.list_documents(thread_id, DocumentType.DELIVERY_NOTE_UNSIGNED):
                raise PreconditionFailed(
                    "delivery_note_absent", f"Thread {thread_id} already has a delivery note"
                )

            final = await self._require_final_quotation(thread_id)
            content = build_delivery_note(thread, final.content, overrides)

            document = await self._store_generated(
                thread_id,
                DocumentType.DELIVERY_NOTE_UNSIGNED,
                f"delivery_note_{thread.po_id}.json",
                content,
            )
            thread = await self.store.upsert_thread(
                thread_id, status=ThreadStatus.DELIVERY_NOTE_CREATED
            )

        self._log_transition(thread)
        return document

    async def upload_signed_delivery_note(
        self, thread_id: str, file: UploadedFile
    ) -> Document:
        _require_pdf(file)
        async with self.store.atomic():
            thread = await self.store.get_thread(thread_id)
            self._ensure_open(thread)

            if not await self.store.list_documents(thread_id, DocumentType.DELIVERY_NOTE_UNSIGNED):
                raise PreconditionFailed(
                    "delivery_note_exists",
                    f"Thread {thread_id} has no delivery note to sign",
                )
            if await self.store.list_documents(thread_id, DocumentType.DELIVERY_NOTE_SIGNED):
                raise PreconditionFailed(
                    "signed_delivery_note_absent",
                    f"Thread {thread_id} already has a signed delivery note; replace it instead",
                )

            document = await self._store_upload(thread_id, DocumentType.DELIVERY_NOTE_SIGNED, file)
            thread = await self.store.upsert_thread(
                thread_id, status=ThreadStatus.UPLOADED_SIGNED_DELIVERY_NOTE
            )

        self._log_transition(thread)
        return document

    # ------------------------------------------------------------------
    # Invoice and completion
    # ------------------------------------------------------------------

    async def generate_invoice(self, thread_id: str) -> Document:
        """Stamp the final quotation with an invoice number and store it."""
        async with self.store.atomic():
            thread = await self.store.get_thread(thread_id)
            if not await self.store.list_documents(thread_id, DocumentType.DELIVERY_NOTE_SIGNED):
                raise PreconditionFailed(
                    "signed_delivery_note_exists",
                    f"Thread {thread_id} needs a signed delivery note before invoicing",
                )
            if await self.store.list_documents(thread_id, DocumentType.INVOICE):
                raise PreconditionFailed(
                    "invoice_absent", f"Thread {thread_id} already has an invoice"
                )

            final = await self._require_final_quotation(thread_id)
            priced = self.revisions.price(final.content)
            invoice = InvoiceContent(
                **priced.model_dump(),
                po_id=thread.po_id,
                invoice_number=self.invoice_number(),
            )

            document = await self._store_generated(
                thread_id,
                DocumentType.INVOICE,
                f"invoice_{thread.po_id or thread_id}.json",
                invoice,
            )
            thread = await self.store.upsert_thread(thread_id, status=ThreadStatus.INVOICE_CREATED)

        logger.info("Invoice %s issued for thread %s", invoice.invoice_number, thread_id)
        self._log_transition(thread)
        return document

    def invoice_number(self, now: datetime | None = None) -> str:
        """``INV-<year>-<5 digits>``. Not guaranteed unique across threads."""
        year = (now or utcnow()).year
        return f"{self.config.invoice_prefix}-{year}-{random.randint(10000, 99999)}"

    async def complete_thread(self, thread_id: str) -> Thread:
        thread = await self.store.get_thread(thread_id)
        self._ensure_open(thread)
        if not await self.store.list_documents(thread_id, DocumentType.INVOICE):
            raise PreconditionFailed(
                "invoice_exists", f"Thread {thread_id} cannot complete without an invoice"
            )

        thread = await self.store.upsert_thread(thread_id, status=ThreadStatus.COMPLETED)
        self._log_transition(thread)
        return thread

    async def replace_document(
        self, thread_id: str, document_id: str, file: UploadedFile
    ) -> Document:
        """Re-upload a document in place; its id and type are kept."""
        thread = await self.store.get_thread(thread_id)
        document = await self.store.get_document(thread_id, document_id)
        self._ensure_open(thread)
        if document.type in UPLOADED_TYPES:
            _require_pdf(file)

        filename = _safe_filename(file.filename)
        path = _document_path(thread_id, document_id, filename)
        url = await self.blobs.upload(path, file.data, file.content_type)

        async with self.store.atomic():
            document = await self.store.update_document(
                thread_id,
                document_id,
                filename=filename,
                filepath=url,
                content_type=file.content_type,
            )
            await self.store.upsert_thread(thread_id)

        logger.info("Replaced %s document %s in thread %s", document.type.value, document_id, thread_id)
        return document

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_final_quotation(self, thread_id: str) -> Quotation:
        quotations = await self.store.list_quotations(thread_id)
        final = next((q for q in quotations if q.is_final), None)
        if final is None:
            raise PreconditionFailed(
                "final_quotation_exists", f"No quotation in thread {thread_id} is marked final"
            )
        return final

    async def _require_po_stage(self, thread: Thread) -> None:
        await self._require_final_quotation(thread.thread_id)
        if thread.status.stage > PURCHASE_ORDER_STAGE:
            raise PreconditionFailed(
                "purchase_order_stage",
                f"Thread {thread.thread_id} is already past the purchase order stage",
            )

    def _ensure_open(self, thread: Thread) -> None:
        if thread.is_declined:
            raise PreconditionFailed("thread_not_declined", f"Thread {thread.thread_id} is declined")
        if thread.is_closed:
            raise PreconditionFailed("thread_open", f"Thread {thread.thread_id} is completed")

    async def _store_upload(
        self, thread_id: str, doc_type: DocumentType, file: UploadedFile
    ) -> Document:
        document_id = uuid4().hex
        filename = _safe_filename(file.filename)
        url = await self.blobs.upload(
            _document_path(thread_id, document_id, filename), file.data, file.content_type
        )
        return await self.store.add_document(
            thread_id,
            DocumentDraft(
                type=doc_type,
                filename=filename,
                filepath=url,
                content_type=file.content_type,
            ),
            document_id=document_id,
        )

    async def _store_generated(
        self,
        thread_id: str,
        doc_type: DocumentType,
        filename: str,
        content: BaseModel,
    ) -> Document:
        document_id = uuid4().hex
        payload = content.model_dump(mode="json")
        data = json.dumps(payload, indent=2).encode("utf-8")
        url = await self.blobs.upload(
            _document_path(thread_id, document_id, filename), data, "application/json"
        )
        return await self.store.add_document(
            thread_id,
            DocumentDraft(
                type=doc_type,
                filename=filename,
                filepath=url,
                content_type="application/json",
                content=payload,
            ),
            document_id=document_id,
        )

    @staticmethod
    def _log_transition(thread: Thread) -> None:
        logger.info("Thread %s is now %s", thread.thread_id, thread.status.value)


def build_delivery_note(
    thread: Thread,
    content: QuotationContent,
    overrides: dict[str, Any] | None = None,
) -> DeliveryNoteContent:
    """Delivery note fields derived from the final quotation.

    Both ordered and delivered quantities start at the quoted quantity.

    Raises:
        ValidationFailed: If ``overrides`` produce an invalid delivery note
    """
    ref = thread.user_ref_id or thread.thread_id
    generated = {
        "delivery_note_no": f"DN-{ref}",
        "party_name": content.party_name,
        "party_address": content.party_address,
        "tel": content.mobile_number,
        "order_date": content.date,
        "lpo_no": thread.po_id,
        "project_code": content.vessel_name,
        "items": [
            DeliveryNoteItem(
                sl_no=item.sl_no,
                description=item.description,
                order_qty=item.qty,
                delivered_qty=item.qty,
            ).model_dump()
            for item in content.items
        ],
    }
    try:
        return DeliveryNoteContent.model_validate({**generated, **(overrides or {})})
    except ValidationError as exc:
        raise ValidationFailed(f"Invalid delivery note: {exc}") from exc


def _require_text(value: str | None, name: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationFailed(f"{name} is required")
    return value


def _require_pdf(file: UploadedFile) -> None:
    if not file.data:
        raise ValidationFailed(f"Uploaded file {file.filename!r} is empty")
    if not file.is_pdf:
        raise ValidationFailed(f"Only PDF files are allowed, got {file.filename!r}")


def _safe_filename(filename: str) -> str:
    name = PurePosixPath((filename or "").replace("\\", "/")).name.strip()
    if not name or name in {".", ".."}:
        raise ValidationFailed(f"Invalid filename: {filename!r}")
    return name


def _document_path(thread_id: str, document_id: str, filename: str) -> str:
    return f"threads/{thread_id}/documents/{document_id}/{filename}"
