"""Integration tests for quoteflow end-to-end workflows.

Tests:
1. Happy path: quotation through revision, PO, delivery note, invoice, completion
2. Declined thread blocks the purchase order
3. Finalizing a quotation overrides a decline
4. The same flow driven over HTTP against a real SQLite database
"""

from __future__ import annotations

import asyncio
import re
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from quoteflow.config import DBConfig, reset_config
from quoteflow.db import connection
from quoteflow.db.connection import build_engine, init_db
from quoteflow.errors import PreconditionFailed
from quoteflow.models import DocumentType, QuotationStatus, ThreadStatus, UploadedFile
from quoteflow.web import dependencies
from quoteflow.web.app import create_app

pytestmark = pytest.mark.integration


def _pdf(name: str) -> UploadedFile:
    return UploadedFile(name, b"%PDF-1.4\n" + name.encode(), "application/pdf")


@pytest.mark.asyncio
async def test_happy_path_to_completion(workflow, sample_content):
    thread, original = await workflow.create_thread(sample_content)
    assert thread.thread_id == "HRS-QN-25001"
    assert original.content.total == Decimal("200")

    revision = await workflow.revisions.create_revision(thread.thread_id, original.id, renumber=True)
    assert revision.version == "QuotationRevised1"

    await workflow.accept_quotation(thread.thread_id, revision.id, mark_final=True)
    await workflow.attach_purchase_order(thread.thread_id, "PO-7781", _pdf("po.pdf"))
    await workflow.start_work(thread.thread_id)
    await workflow.create_delivery_note(thread.thread_id)
    await workflow.upload_signed_delivery_note(thread.thread_id, _pdf("signed.pdf"))
    invoice = await workflow.generate_invoice(thread.thread_id)
    completed = await workflow.complete_thread(thread.thread_id)

    assert completed.status == ThreadStatus.COMPLETED
    assert re.fullmatch(r"INV-\d{4}-\d{5}", invoice.content["invoice_number"])
    assert Decimal(invoice.content["total"]) == Decimal("200")

    full = await workflow.get_thread_with_relations(thread.thread_id)
    assert full.final_quotation.id == revision.id
    assert full.final_quotation.status == QuotationStatus.ACCEPTED
    assert {d.type for d in full.documents} == set(DocumentType)
    assert full.po_id == "PO-7781"


@pytest.mark.asyncio
async def test_declined_thread_blocks_purchase_order(workflow, sample_content):
    thread, _ = await workflow.create_thread(sample_content)
    await workflow.decline(thread.thread_id)

    with pytest.raises(PreconditionFailed):
        await workflow.attach_purchase_order(thread.thread_id, "PO-1", _pdf("po.pdf"))

    reloaded = await workflow.get_thread(thread.thread_id)
    assert reloaded.status == ThreadStatus.QUOTATION_DECLINED
    assert reloaded.po_id is None


@pytest.mark.asyncio
async def test_final_overrides_decline(workflow, sample_content):
    thread, original = await workflow.create_thread(sample_content)
    await workflow.decline(thread.thread_id)

    await workflow.mark_final(thread.thread_id, original.id)

    full = await workflow.get_thread_with_relations(thread.thread_id)
    assert full.status == ThreadStatus.QUOTATION_ACCEPTED
    assert full.final_quotation.status == QuotationStatus.PENDING
    assert full.final_quotation_id == original.id


@pytest.fixture
def api_client(monkeypatch, tmp_path):
    """App wired to a real SQLite file; tables created before the app starts."""
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"
    monkeypatch.setenv("DATABASE_URL", database_url)
    monkeypatch.setenv("BLOB_ROOT", str(tmp_path / "blobs"))
    monkeypatch.setattr(connection, "_engine", None)
    monkeypatch.setattr(connection, "_session_factory", None)
    reset_config()
    dependencies.reset_dependencies()

    async def _create_tables():
        engine = build_engine(DBConfig(url=database_url))
        await init_db(engine)
        await engine.dispose()

    asyncio.run(_create_tables())

    with TestClient(create_app()) as client:
        yield client

    dependencies.reset_dependencies()
    reset_config()


def test_http_flow(api_client):
    created = api_client.post(
        "/api/threads",
        json={
            "content": {
                "party_name": "Gulf Marine Services",
                "items": [{"sl_no": "H01", "qty": "2", "unit_price": "100"}],
            }
        },
    )
    assert created.status_code == 201, created.text
    thread_id = created.json()["thread"]["thread_id"]
    quotation_id = created.json()["quotation"]["id"]

    blocked = api_client.post(
        f"/api/threads/{thread_id}/purchase-order",
        data={"po_id": "PO-1"},
        files={"file": ("po.pdf", b"%PDF-1.4", "application/pdf")},
    )
    assert blocked.status_code == 409
    assert blocked.json()["precondition"] == "final_quotation_exists"

    assert api_client.post(f"/api/threads/{thread_id}/quotations/{quotation_id}/final").status_code == 200
    attached = api_client.post(
        f"/api/threads/{thread_id}/purchase-order",
        data={"po_id": "PO-1"},
        files={"file": ("po.pdf", b"%PDF-1.4", "application/pdf")},
    )
    assert attached.status_code == 201, attached.text

    detail = api_client.get(f"/api/threads/{thread_id}").json()
    assert detail["status"] == "PurchaseOrderRecieved"
    assert detail["documents"][0]["type"] == "purchase_order"

    register = api_client.get("/api/documents", params={"type": "purchase_order"}).json()
    assert [(row["thread_id"], row["po_id"]) for row in register] == [(thread_id, "PO-1")]

    listed = api_client.get("/api/threads").json()
    assert listed[0]["latest_quotation"]["id"] == quotation_id

    assert api_client.get("/api/threads/HRS-QN-00001").status_code == 404
