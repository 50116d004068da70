"""Request models for the quoteflow HTTP API.

Responses reuse the domain models in ``quoteflow.models`` directly.

Usage:
    from quoteflow.web.models import CreateThreadRequest

    @router.post("/api/threads")
    async def create_thread(request: CreateThreadRequest):
        ...
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel

from quoteflow.models import Quotation, QuotationContent, Thread


# ============================================================================
# Thread & Quotation Models
# ============================================================================


class CreateThreadRequest(BaseModel):
    """Used by: POST /api/threads"""

    content: QuotationContent
    ref_id: Optional[str] = None


class CreateThreadResponse(BaseModel):
    thread: Thread
    quotation: Quotation


class RevisionRequest(BaseModel):
    """Used by: POST /api/threads/{thread_id}/quotations/{quotation_id}/revisions

    Without ``content`` the previous quotation is copied.
    """

    content: Optional[QuotationContent] = None
    renumber: bool = False


class AcceptRequest(BaseModel):
    mark_final: bool = False


class NextRefResponse(BaseModel):
    ref_id: str


# ============================================================================
# Purchase Order & Delivery Note Models
# ============================================================================


class PurchaseOrderMarkRequest(BaseModel):
    """Used by: POST /api/threads/{thread_id}/purchase-order/mark"""

    po_id: str


class DeliveryNoteRequest(BaseModel):
    """Fields that replace the generated delivery note values."""

    overrides: Optional[dict[str, Any]] = None


# ============================================================================
# Vessel Models
# ============================================================================


class VesselUpdateRequest(BaseModel):
    """Partial vessel update; unset fields are left as they are."""

    name: Optional[str] = None
    number: Optional[str] = None
    slno_format: Optional[str] = None
    code: Optional[str] = None
