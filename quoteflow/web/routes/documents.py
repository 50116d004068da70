"""Cross-thread document registers (purchase orders, delivery notes, invoices)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from quoteflow.models import DocumentType, RegisteredDocument
from quoteflow.web.dependencies import get_workflow
from quoteflow.workflow import ThreadWorkflow

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.get("", response_model=list[RegisteredDocument])
async def document_register(
    doc_type: DocumentType | None = Query(None, alias="type", description="Only this document type"),
    workflow: ThreadWorkflow = Depends(get_workflow),
):
    """List documents of every thread, newest first."""
    return await workflow.document_register(doc_type)
