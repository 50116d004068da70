"""Tests for quoteflow.web.routes.threads - thread workflow routes."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from quoteflow.errors import NotFound, PreconditionFailed
from quoteflow.models import (
    Document,
    DocumentType,
    Quotation,
    QuotationContent,
    QuotationItem,
    Thread,
    ThreadStatus,
    ThreadSummary,
    ThreadWithRelations,
    UploadedFile,
)
from quoteflow.web.app import create_app
from quoteflow.web.dependencies import get_workflow

NOW = datetime(2025, 1, 15, 9, 30, tzinfo=timezone.utc)

CONTENT_PAYLOAD = {
    "party_name": "Gulf Marine Services",
    "vessel_name": "HALUL-45",
    "items": [{"sl_no": "H01", "description": "Hose", "qty": "2", "unit_price": "100"}],
}


@pytest.fixture
def content():
    return QuotationContent(
        party_name="Gulf Marine Services",
        items=[QuotationItem(sl_no="H01", qty=Decimal("2"), unit_price=Decimal("100"))],
    )


@pytest.fixture
def thread():
    return Thread(thread_id="HRS-QN-25001", user_ref_id="HRS-QN-25001", created_at=NOW, updated_at=NOW)


@pytest.fixture
def quotation(content):
    return Quotation(
        id="q1", thread_id="HRS-QN-25001", version="Quotation", content=content, created_at=NOW
    )


@pytest.fixture
def document():
    return Document(
        id="d1",
        thread_id="HRS-QN-25001",
        type=DocumentType.PURCHASE_ORDER,
        filename="po.pdf",
        filepath="/files/threads/HRS-QN-25001/documents/d1/po.pdf",
        content_type="application/pdf",
        uploaded_at=NOW,
    )


@pytest.fixture
def mock_workflow():
    """Workflow double; every coroutine method is an AsyncMock."""
    workflow = MagicMock()
    workflow.revisions = MagicMock()
    return workflow


@pytest.fixture
def client(mock_workflow):
    app = create_app()
    app.dependency_overrides[get_workflow] = lambda: mock_workflow
    return TestClient(app)


class TestThreadCollection:
    def test_list_threads_with_latest_quotation(self, client, mock_workflow, thread, quotation):
        summary = ThreadSummary(**thread.model_dump(), latest_quotation=quotation)
        mock_workflow.list_thread_summaries = AsyncMock(return_value=[summary])

        response = client.get("/api/threads")

        assert response.status_code == 200
        row = response.json()[0]
        assert row["thread_id"] == "HRS-QN-25001"
        assert row["status"] == "QuotationCreated"
        assert row["latest_quotation"]["version"] == "Quotation"

    def test_list_threads_without_quotation(self, client, mock_workflow, thread):
        mock_workflow.list_thread_summaries = AsyncMock(
            return_value=[ThreadSummary(**thread.model_dump())]
        )

        response = client.get("/api/threads")

        assert response.json()[0]["latest_quotation"] is None

    def test_next_ref(self, client, mock_workflow):
        mock_workflow.next_ref_id = AsyncMock(return_value="HRS-QN-25002")

        response = client.get("/api/threads/next-ref")

        assert response.status_code == 200
        assert response.json() == {"ref_id": "HRS-QN-25002"}

    def test_create_thread(self, client, mock_workflow, thread, quotation):
        mock_workflow.create_thread = AsyncMock(return_value=(thread, quotation))

        response = client.post(
            "/api/threads", json={"content": CONTENT_PAYLOAD, "ref_id": "HRS-QN-25001"}
        )

        assert response.status_code == 201
        assert response.json()["quotation"]["version"] == "Quotation"
        content, ref_id = mock_workflow.create_thread.call_args.args
        assert isinstance(content, QuotationContent)
        assert content.items[0].qty == Decimal("2")
        assert ref_id == "HRS-QN-25001"

    def test_create_thread_validates_body(self, client, mock_workflow):
        mock_workflow.create_thread = AsyncMock()

        response = client.post("/api/threads", json={"content": {"party_name": "X", "items": []}})

        assert response.status_code == 422
        mock_workflow.create_thread.assert_not_called()

    def test_get_thread(self, client, mock_workflow, thread, quotation):
        mock_workflow.get_thread_with_relations = AsyncMock(
            return_value=ThreadWithRelations(**thread.model_dump(), quotations=[quotation])
        )

        response = client.get("/api/threads/HRS-QN-25001")

        assert response.status_code == 200
        assert response.json()["quotations"][0]["id"] == "q1"
        assert response.json()["documents"] == []

    def test_get_missing_thread(self, client, mock_workflow):
        mock_workflow.get_thread_with_relations = AsyncMock(side_effect=NotFound("thread", "nope"))

        response = client.get("/api/threads/nope")

        assert response.status_code == 404
        assert response.json()["detail"] == "thread not found: nope"


class TestTransitions:
    def test_decline(self, client, mock_workflow, thread):
        declined = thread.model_copy(update={"status": ThreadStatus.QUOTATION_DECLINED})
        mock_workflow.decline = AsyncMock(return_value=declined)

        response = client.post("/api/threads/HRS-QN-25001/decline")

        assert response.status_code == 200
        assert response.json()["status"] == "QuotationDeclined"
        mock_workflow.decline.assert_awaited_once_with("HRS-QN-25001")

    def test_precondition_failure_is_conflict(self, client, mock_workflow):
        mock_workflow.decline = AsyncMock(
            side_effect=PreconditionFailed("thread_declinable", "cannot decline")
        )

        response = client.post("/api/threads/HRS-QN-25001/decline")

        assert response.status_code == 409
        assert response.json()["precondition"] == "thread_declinable"
        assert response.json()["error"] == "PreconditionFailed"

    def test_create_revision_without_body(self, client, mock_workflow, quotation):
        revision = quotation.model_copy(update={"id": "q2", "version": "QuotationRevised1"})
        mock_workflow.revisions.create_revision = AsyncMock(return_value=revision)

        response = client.post("/api/threads/HRS-QN-25001/quotations/q1/revisions")

        assert response.status_code == 201
        assert response.json()["version"] == "QuotationRevised1"
        mock_workflow.revisions.create_revision.assert_awaited_once_with(
            "HRS-QN-25001", "q1", content_override=None, renumber=False
        )

    def test_create_revision_with_renumber(self, client, mock_workflow, quotation):
        mock_workflow.revisions.create_revision = AsyncMock(return_value=quotation)

        response = client.post(
            "/api/threads/HRS-QN-25001/quotations/q1/revisions",
            json={"content": CONTENT_PAYLOAD, "renumber": True},
        )

        assert response.status_code == 201
        kwargs = mock_workflow.revisions.create_revision.call_args.kwargs
        assert kwargs["renumber"] is True
        assert kwargs["content_override"].party_name == "Gulf Marine Services"

    def test_mark_final(self, client, mock_workflow, quotation):
        mock_workflow.mark_final = AsyncMock(return_value=quotation.model_copy(update={"is_final": True}))

        response = client.post("/api/threads/HRS-QN-25001/quotations/q1/final")

        assert response.status_code == 200
        assert response.json()["is_final"] is True

    def test_accept_with_mark_final(self, client, mock_workflow, quotation):
        mock_workflow.accept_quotation = AsyncMock(return_value=quotation)

        response = client.post(
            "/api/threads/HRS-QN-25001/quotations/q1/accept", json={"mark_final": True}
        )

        assert response.status_code == 200
        mock_workflow.accept_quotation.assert_awaited_once_with("HRS-QN-25001", "q1", True)

    def test_delete_quotation_returns_remaining(self, client, mock_workflow, quotation):
        mock_workflow.revisions.delete_quotation = AsyncMock(return_value=[quotation])

        response = client.delete("/api/threads/HRS-QN-25001/quotations/q2")

        assert response.status_code == 200
        assert [q["id"] for q in response.json()] == ["q1"]

    def test_update_quotation(self, client, mock_workflow, quotation):
        mock_workflow.revisions.update_content = AsyncMock(return_value=quotation)

        response = client.put("/api/threads/HRS-QN-25001/quotations/q1", json=CONTENT_PAYLOAD)

        assert response.status_code == 200
        _, _, content = mock_workflow.revisions.update_content.call_args.args
        assert content.vessel_name == "HALUL-45"


class TestDocuments:
    def test_attach_purchase_order(self, client, mock_workflow, document):
        mock_workflow.attach_purchase_order = AsyncMock(return_value=document)

        response = client.post(
            "/api/threads/HRS-QN-25001/purchase-order",
            data={"po_id": "PO-1"},
            files={"file": ("po.pdf", b"%PDF-1.4", "application/pdf")},
        )

        assert response.status_code == 201
        assert response.json()["type"] == "purchase_order"
        thread_id, po_id, uploaded = mock_workflow.attach_purchase_order.call_args.args
        assert (thread_id, po_id) == ("HRS-QN-25001", "PO-1")
        assert uploaded == UploadedFile("po.pdf", b"%PDF-1.4", "application/pdf")

    def test_attach_purchase_order_requires_file(self, client, mock_workflow):
        mock_workflow.attach_purchase_order = AsyncMock()

        response = client.post("/api/threads/HRS-QN-25001/purchase-order", data={"po_id": "PO-1"})

        assert response.status_code == 422
        mock_workflow.attach_purchase_order.assert_not_called()

    def test_mark_purchase_order(self, client, mock_workflow, thread):
        mock_workflow.mark_purchase_order_uploaded = AsyncMock(return_value=thread)

        response = client.post(
            "/api/threads/HRS-QN-25001/purchase-order/mark", json={"po_id": "PO-1"}
        )

        assert response.status_code == 200
        mock_workflow.mark_purchase_order_uploaded.assert_awaited_once_with("HRS-QN-25001", "PO-1")

    def test_delivery_note_with_overrides(self, client, mock_workflow, document):
        mock_workflow.create_delivery_note = AsyncMock(return_value=document)

        response = client.post(
            "/api/threads/HRS-QN-25001/delivery-note", json={"overrides": {"attn": "Capt. Ahmed"}}
        )

        assert response.status_code == 201
        mock_workflow.create_delivery_note.assert_awaited_once_with(
            "HRS-QN-25001", {"attn": "Capt. Ahmed"}
        )

    def test_signed_delivery_note(self, client, mock_workflow, document):
        mock_workflow.upload_signed_delivery_note = AsyncMock(return_value=document)

        response = client.post(
            "/api/threads/HRS-QN-25001/delivery-note/signed",
            files={"file": ("signed.pdf", b"%PDF", "application/pdf")},
        )

        assert response.status_code == 201

    def test_invoice_and_complete(self, client, mock_workflow, document, thread):
        mock_workflow.generate_invoice = AsyncMock(return_value=document)
        mock_workflow.complete_thread = AsyncMock(
            return_value=thread.model_copy(update={"status": ThreadStatus.COMPLETED})
        )

        assert client.post("/api/threads/HRS-QN-25001/invoice").status_code == 201
        response = client.post("/api/threads/HRS-QN-25001/complete")

        assert response.json()["status"] == "Completed"

    def test_replace_document(self, client, mock_workflow, document):
        mock_workflow.replace_document = AsyncMock(return_value=document)

        response = client.put(
            "/api/threads/HRS-QN-25001/documents/d1",
            files={"file": ("po_v2.pdf", b"%PDF", "application/pdf")},
        )

        assert response.status_code == 200
        assert mock_workflow.replace_document.call_args.args[1] == "d1"
