"""Unit tests for quoteflow Pydantic models."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from quoteflow.models import (
    InvoiceContent,
    Quotation,
    QuotationContent,
    QuotationItem,
    ThreadStatus,
    UploadedFile,
    VesselDraft,
)


class TestThreadStatus:
    def test_stored_values_are_verbatim(self):
        assert ThreadStatus.PURCHASE_ORDER_RECEIVED.value == "PurchaseOrderRecieved"
        assert ThreadStatus("UploadedSignedDeliveryNote") is ThreadStatus.UPLOADED_SIGNED_DELIVERY_NOTE

    def test_stages_follow_the_document_pipeline(self):
        ordered = [
            ThreadStatus.QUOTATION_CREATED,
            ThreadStatus.QUOTATION_ACCEPTED,
            ThreadStatus.PURCHASE_ORDER_RECEIVED,
            ThreadStatus.WORK_STARTED,
            ThreadStatus.DELIVERY_NOTE_CREATED,
            ThreadStatus.UPLOADED_SIGNED_DELIVERY_NOTE,
            ThreadStatus.INVOICE_CREATED,
            ThreadStatus.COMPLETED,
        ]
        stages = [status.stage for status in ordered]
        assert stages == sorted(stages)
        assert len(set(stages)) == len(stages)

    def test_pre_acceptance(self):
        assert ThreadStatus.QUOTATION_DECLINED.is_pre_acceptance
        assert ThreadStatus.QUOTATION_ACCEPTED.is_pre_acceptance
        assert not ThreadStatus.PURCHASE_ORDER_RECEIVED.is_pre_acceptance


class TestQuotationContent:
    def test_defaults_for_terms(self):
        content = QuotationContent(party_name="Client", items=[QuotationItem(sl_no="H01")])

        assert content.schema_version == 1
        assert content.note == "Quotation validity is only one week."
        assert content.delivery_terms == "07 Working Days from the Date of issue PO."
        assert content.payment_terms.startswith("Payment must be made within 30 days")

    def test_party_name_is_required(self):
        with pytest.raises(ValidationError):
            QuotationContent(party_name="   ", items=[QuotationItem(sl_no="H01")])

    def test_at_least_one_item(self):
        with pytest.raises(ValidationError):
            QuotationContent(party_name="Client", items=[])

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValidationError):
            QuotationItem(sl_no="H01", qty=Decimal("-1"))

    def test_unknown_schema_version_rejected(self):
        with pytest.raises(ValidationError):
            QuotationContent.model_validate(
                {"schema_version": 2, "party_name": "Client", "items": [{"sl_no": "H01"}]}
            )

    def test_json_round_trip_keeps_decimals(self, sample_content):
        restored = QuotationContent.model_validate(sample_content.model_dump(mode="json"))
        assert restored.items[0].unit_price == Decimal("100.00")

    def test_invoice_requires_number(self, sample_content):
        with pytest.raises(ValidationError):
            InvoiceContent(**sample_content.model_dump())


class TestQuotation:
    def test_is_revision(self, sample_content):
        now = datetime.now(timezone.utc)
        original = Quotation(
            id="q1", thread_id="t", version="Quotation", content=sample_content, created_at=now
        )
        revision = original.model_copy(update={"version": "QuotationRevised2"})

        assert not original.is_revision
        assert revision.is_revision


class TestVesselDraft:
    def test_slno_format_needs_placeholder(self):
        with pytest.raises(ValidationError):
            VesselDraft(name="Halul", number="45", slno_format="H")

    def test_name_is_stripped(self):
        assert VesselDraft(name="  Halul ", number="45").name == "Halul"


class TestUploadedFile:
    def test_pdf_by_content_type(self):
        assert UploadedFile("scan", b"x", "application/pdf").is_pdf

    def test_pdf_by_extension(self):
        assert UploadedFile("PO-1.PDF", b"x").is_pdf

    def test_not_pdf(self):
        assert not UploadedFile("po.png", b"x", "image/png").is_pdf
