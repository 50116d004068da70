"""Thread workflow routes.

Every handler is a thin call into ``ThreadWorkflow``; workflow errors are
turned into HTTP responses by the handlers registered in ``web.app``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile

from quoteflow.models import (
    Document,
    Quotation,
    QuotationContent,
    Thread,
    ThreadSummary,
    ThreadWithRelations,
)
from quoteflow.web.dependencies import get_workflow, to_uploaded_file
from quoteflow.web.models import (
    AcceptRequest,
    CreateThreadRequest,
    CreateThreadResponse,
    DeliveryNoteRequest,
    NextRefResponse,
    PurchaseOrderMarkRequest,
    RevisionRequest,
)
from quoteflow.workflow import ThreadWorkflow

router = APIRouter(prefix="/api/threads", tags=["threads"])


@router.get("", response_model=list[ThreadSummary])
async def list_threads(workflow: ThreadWorkflow = Depends(get_workflow)):
    """List all threads, newest first, each with its newest quotation."""
    return await workflow.list_thread_summaries()


@router.get("/next-ref", response_model=NextRefResponse)
async def next_ref(workflow: ThreadWorkflow = Depends(get_workflow)):
    """Preview the reference id the next thread would get."""
    return NextRefResponse(ref_id=await workflow.next_ref_id())


@router.post("", response_model=CreateThreadResponse, status_code=201)
async def create_thread(
    request: CreateThreadRequest,
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    thread, quotation = await workflow.create_thread(request.content, request.ref_id)
    return CreateThreadResponse(thread=thread, quotation=quotation)


@router.get("/{thread_id}", response_model=ThreadWithRelations)
async def get_thread(thread_id: str, workflow: ThreadWorkflow = Depends(get_workflow)):
    """Thread with its quotations and documents."""
    return await workflow.get_thread_with_relations(thread_id)


@router.post("/{thread_id}/decline", response_model=Thread)
async def decline_thread(thread_id: str, workflow: ThreadWorkflow = Depends(get_workflow)):
    return await workflow.decline(thread_id)


@router.post("/{thread_id}/undo-decline", response_model=Thread)
async def undo_decline(thread_id: str, workflow: ThreadWorkflow = Depends(get_workflow)):
    return await workflow.undo_decline(thread_id)


# ----------------------------------------------------------------------------
# Quotations
# ----------------------------------------------------------------------------


@router.get("/{thread_id}/quotations", response_model=list[Quotation])
async def list_quotations(thread_id: str, workflow: ThreadWorkflow = Depends(get_workflow)):
    return await workflow.revisions.list_quotations(thread_id)


@router.get(
    "/{thread_id}/quotations/{quotation_id}/revision-draft",
    response_model=QuotationContent,
)
async def revision_draft(
    thread_id: str,
    quotation_id: str,
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    """Renumbered, re-priced copy of a quotation for the revision editor."""
    return await workflow.revisions.prepare_revision_draft(thread_id, quotation_id)


@router.post(
    "/{thread_id}/quotations/{quotation_id}/revisions",
    response_model=Quotation,
    status_code=201,
)
async def create_revision(
    thread_id: str,
    quotation_id: str,
    request: RevisionRequest | None = None,
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    request = request or RevisionRequest()
    return await workflow.revisions.create_revision(
        thread_id,
        quotation_id,
        content_override=request.content,
        renumber=request.renumber,
    )


@router.post("/{thread_id}/quotations/{quotation_id}/final", response_model=Quotation)
async def mark_final(
    thread_id: str,
    quotation_id: str,
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    return await workflow.mark_final(thread_id, quotation_id)


@router.post("/{thread_id}/quotations/{quotation_id}/accept", response_model=Quotation)
async def accept_quotation(
    thread_id: str,
    quotation_id: str,
    request: AcceptRequest | None = None,
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    request = request or AcceptRequest()
    return await workflow.accept_quotation(thread_id, quotation_id, request.mark_final)


@router.put("/{thread_id}/quotations/{quotation_id}", response_model=Quotation)
async def update_quotation(
    thread_id: str,
    quotation_id: str,
    content: QuotationContent,
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    return await workflow.revisions.update_content(thread_id, quotation_id, content)


@router.delete("/{thread_id}/quotations/{quotation_id}", response_model=list[Quotation])
async def delete_quotation(
    thread_id: str,
    quotation_id: str,
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    """Delete a quotation; returns the remaining ones, newest first."""
    return await workflow.revisions.delete_quotation(thread_id, quotation_id)


# ----------------------------------------------------------------------------
# Documents
# ----------------------------------------------------------------------------


@router.post("/{thread_id}/purchase-order", response_model=Document, status_code=201)
async def attach_purchase_order(
    thread_id: str,
    po_id: str = Form(...),
    file: UploadFile = File(...),
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    """Upload the client's purchase order PDF."""
    uploaded = await to_uploaded_file(file)
    return await workflow.attach_purchase_order(thread_id, po_id, uploaded)


@router.post("/{thread_id}/purchase-order/mark", response_model=Thread)
async def mark_purchase_order(
    thread_id: str,
    request: PurchaseOrderMarkRequest,
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    """Record a PO number without a file."""
    return await workflow.mark_purchase_order_uploaded(thread_id, request.po_id)


@router.post("/{thread_id}/start-work", response_model=Thread)
async def start_work(thread_id: str, workflow: ThreadWorkflow = Depends(get_workflow)):
    return await workflow.start_work(thread_id)


@router.post("/{thread_id}/delivery-note", response_model=Document, status_code=201)
async def create_delivery_note(
    thread_id: str,
    request: DeliveryNoteRequest | None = None,
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    overrides = request.overrides if request else None
    return await workflow.create_delivery_note(thread_id, overrides)


@router.post("/{thread_id}/delivery-note/signed", response_model=Document, status_code=201)
async def upload_signed_delivery_note(
    thread_id: str,
    file: UploadFile = File(...),
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    uploaded = await to_uploaded_file(file)
    return await workflow.upload_signed_delivery_note(thread_id, uploaded)


@router.post("/{thread_id}/invoice", response_model=Document, status_code=201)
async def generate_invoice(thread_id: str, workflow: ThreadWorkflow = Depends(get_workflow)):
    return await workflow.generate_invoice(thread_id)


@router.post("/{thread_id}/complete", response_model=Thread)
async def complete_thread(thread_id: str, workflow: ThreadWorkflow = Depends(get_workflow)):
    return await workflow.complete_thread(thread_id)


@router.put("/{thread_id}/documents/{document_id}", response_model=Document)
async def replace_document(
    thread_id: str,
    document_id: str,
    file: UploadFile = File(...),
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    """Re-upload a document, keeping its id and type."""
    uploaded = await to_uploaded_file(file)
    return await workflow.replace_document(thread_id, document_id, uploaded)
