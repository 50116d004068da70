"""Workflow engine: reference ids, pricing, revisions and the thread state machine."""

from quoteflow.workflow.pricing import amount_in_words, compute_totals, price_content
from quoteflow.workflow.refids import next_ref_id
from quoteflow.workflow.revisions import RevisionEngine
from quoteflow.workflow.state_machine import ThreadWorkflow

__all__ = [
    "RevisionEngine",
    "ThreadWorkflow",
    "amount_in_words",
    "compute_totals",
    "next_ref_id",
    "price_content",
]
