"""quoteflow Pydantic models for type-safe workflow data.

Quotation content is an explicit, versioned schema (``schema_version``) so
the engine never handles untyped maps. Money and quantities are Decimal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThreadStatus(str, Enum):
    """Workflow stage of a thread. Values are stored verbatim."""

    QUOTATION_CREATED = "QuotationCreated"
    QUOTATION_DECLINED = "QuotationDeclined"
    QUOTATION_ACCEPTED = "QuotationAccepted"
    PURCHASE_ORDER_RECEIVED = "PurchaseOrderRecieved"
    WORK_STARTED = "WorkStarted"
    DELIVERY_NOTE_CREATED = "DeliveryNoteCreated"
    UPLOADED_SIGNED_DELIVERY_NOTE = "UploadedSignedDeliveryNote"
    INVOICE_CREATED = "InvoiceCreated"
    COMPLETED = "Completed"

    @property
    def stage(self) -> int:
        """Position in the document pipeline; declined shares stage 0."""
        return _STAGES[self]

    @property
    def is_pre_acceptance(self) -> bool:
        return self.stage <= _STAGES[ThreadStatus.QUOTATION_ACCEPTED]


_STAGES = {
    ThreadStatus.QUOTATION_CREATED: 0,
    ThreadStatus.QUOTATION_DECLINED: 0,
    ThreadStatus.QUOTATION_ACCEPTED: 1,
    ThreadStatus.PURCHASE_ORDER_RECEIVED: 2,
    ThreadStatus.WORK_STARTED: 3,
    ThreadStatus.DELIVERY_NOTE_CREATED: 4,
    ThreadStatus.UPLOADED_SIGNED_DELIVERY_NOTE: 5,
    ThreadStatus.INVOICE_CREATED: 6,
    ThreadStatus.COMPLETED: 7,
}


class QuotationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class DocumentType(str, Enum):
    PURCHASE_ORDER = "purchase_order"
    DELIVERY_NOTE_UNSIGNED = "delivery_note_unsigned"
    DELIVERY_NOTE_SIGNED = "delivery_note_signed"
    INVOICE = "invoice"


ORIGINAL_VERSION = "Quotation"
REVISION_PREFIX = "QuotationRevised"


class QuotationItem(BaseModel):
    """One priced line of a quotation."""

    sl_no: str
    description: str = ""
    qty: Decimal = Decimal("1")
    unit_price: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")  # derived: qty * unit_price

    @field_validator("qty", "unit_price")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("qty and unit_price must be non-negative")
        return v


class QuotationContent(BaseModel):
    """High Range Star quotation document, schema version 1."""

    schema_version: Literal[1] = 1
    ref_id: str = ""
    party_name: str
    party_address: str = ""
    date: datetime = Field(default_factory=utcnow)
    vessel_name: str = ""
    items: list[QuotationItem] = Field(min_length=1)
    total: Decimal = Decimal("0")
    total_amount_in_words: str = ""
    note: str = "Quotation validity is only one week."
    delivery_terms: str = "07 Working Days from the Date of issue PO."
    payment_terms: str = "Payment must be made within 30 days of invoice submission."
    mobile_number: str = ""
    email: str = ""

    @field_validator("party_name")
    @classmethod
    def validate_party_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("party_name is required")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "ref_id": "HRS-QN-25001",
                "party_name": "Gulf Marine Services",
                "party_address": "Doha, Qatar",
                "vessel_name": "HALUL-45",
                "items": [
                    {
                        "sl_no": "H01",
                        "description": "Hydraulic hose replacement",
                        "qty": "2",
                        "unit_price": "100.00",
                    }
                ],
            }
        }


class InvoiceContent(QuotationContent):
    """Final quotation content stamped with PO and invoice numbers."""

    po_id: str | None = None
    invoice_number: str
    invoice_date: datetime = Field(default_factory=utcnow)


class DeliveryNoteItem(BaseModel):
    sl_no: str
    description: str = ""
    order_qty: Decimal
    delivered_qty: Decimal


class DeliveryNoteContent(BaseModel):
    """Delivery note (service report) generated from the final quotation."""

    schema_version: Literal[1] = 1
    delivery_note_no: str
    party_name: str
    party_address: str = ""
    attn: str = ""
    tel: str = ""
    order_date: datetime | None = None
    lpo_no: str | None = None
    dispatch_date: datetime = Field(default_factory=utcnow)
    project_code: str = ""
    items: list[DeliveryNoteItem] = Field(default_factory=list)


class Thread(BaseModel):
    """One client engagement from quotation through invoice."""

    thread_id: str
    user_ref_id: str | None = None
    status: ThreadStatus = ThreadStatus.QUOTATION_CREATED
    po_id: str | None = None
    final_quotation_id: str | None = None
    client_name: str | None = None
    revision_counter: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_declined(self) -> bool:
        return self.status == ThreadStatus.QUOTATION_DECLINED

    @property
    def is_closed(self) -> bool:
        return self.status == ThreadStatus.COMPLETED


class QuotationDraft(BaseModel):
    """Quotation fields supplied by the caller; the store assigns id/created_at."""

    version: str
    status: QuotationStatus = QuotationStatus.PENDING
    content: QuotationContent
    is_final: bool = False


class Quotation(QuotationDraft):
    id: str
    thread_id: str
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def is_revision(self) -> bool:
        return self.version.startswith(REVISION_PREFIX)


class DocumentDraft(BaseModel):
    type: DocumentType
    filename: str
    filepath: str
    content_type: str | None = None
    content: dict[str, Any] | None = None


class Document(DocumentDraft):
    id: str
    thread_id: str
    uploaded_at: datetime


class ThreadWithRelations(Thread):
    quotations: list[Quotation] = Field(default_factory=list)
    documents: list[Document] = Field(default_factory=list)

    @property
    def final_quotation(self) -> Quotation | None:
        return next((q for q in self.quotations if q.is_final), None)

    def documents_of(self, doc_type: DocumentType) -> list[Document]:
        return [d for d in self.documents if d.type == doc_type]


class ThreadSummary(Thread):
    """Thread listing row carrying its newest quotation."""

    latest_quotation: Quotation | None = None


class RegisteredDocument(Document):
    """Cross-thread register row: a document plus its thread's PO, client and status."""

    po_id: str | None = None
    client_name: str | None = None
    thread_status: ThreadStatus


class VesselDraft(BaseModel):
    name: str
    number: str
    slno_format: str = "H##"
    code: str = ""  # derived from name + number when empty

    @field_validator("name", "number")
    @classmethod
    def validate_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("vessel name and number are required")
        return v

    @field_validator("slno_format")
    @classmethod
    def validate_slno_format(cls, v: str) -> str:
        if "#" not in v:
            raise ValueError("slno_format must contain '#' digit placeholders, e.g. H##")
        return v


class Vessel(VesselDraft):
    id: str
    created_at: datetime
    updated_at: datetime | None = None


@dataclass(slots=True)
class UploadedFile:
    """Binary payload handed to the workflow by the web layer or CLI."""

    filename: str
    data: bytes
    content_type: str | None = None

    @property
    def is_pdf(self) -> bool:
        if self.content_type == "application/pdf":
            return True
        return self.filename.lower().endswith(".pdf")
