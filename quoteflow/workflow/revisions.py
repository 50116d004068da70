"""Quotation versions within a thread.

Enforces two invariants:
- at most one quotation per thread has ``is_final`` set;
- a thread always keeps at least one quotation.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from quoteflow.config import WorkflowConfig
from quoteflow.errors import PreconditionFailed, ValidationFailed
from quoteflow.models import (
    REVISION_PREFIX,
    Quotation,
    QuotationContent,
    QuotationDraft,
    QuotationStatus,
    Thread,
    ThreadStatus,
)
from quoteflow.store.base import DocumentStore
from quoteflow.vessels import VesselService, format_serial
from quoteflow.workflow.pricing import price_content

logger = logging.getLogger(__name__)

ACCEPTED_STAGE = ThreadStatus.QUOTATION_ACCEPTED.stage


def coerce_content(content: QuotationContent | dict[str, Any]) -> QuotationContent:
    """Validate raw content against the current quotation schema.

    Raises:
        ValidationFailed: If required fields are missing or malformed
    """
    if isinstance(content, QuotationContent):
        return content
    try:
        return QuotationContent.model_validate(content)
    except ValidationError as exc:
        raise ValidationFailed(f"Invalid quotation content: {exc}") from exc


class RevisionEngine:
    """Creates, finalizes, edits and deletes quotation versions."""

    def __init__(self, store: DocumentStore, config: WorkflowConfig | None = None):
        self.store = store
        self.config = config or WorkflowConfig()
        self.vessels = VesselService(store)

    def price(self, content: QuotationContent) -> QuotationContent:
        return price_content(content, self.config.currency_name, self.config.currency_subunit)

    async def list_quotations(self, thread_id: str) -> list[Quotation]:
        """Quotations newest first; index 0 is the one to select after a delete."""
        await self.store.get_thread(thread_id)
        return await self.store.list_quotations(thread_id)

    def next_version_label(self, thread: Thread, quotations: list[Quotation]) -> str:
        revisions = sum(1 for q in quotations if q.is_revision)
        if self.config.revision_numbering == "monotonic":
            number = max(thread.revision_counter, revisions) + 1
        else:
            # count+1: a deleted revision's label can be issued again
            number = revisions + 1
        return f"{REVISION_PREFIX}{number}"

    async def renumber(self, content: QuotationContent) -> QuotationContent:
        """Sequential serials in the vessel's format, with amounts re-derived."""
        slno_format = await self.vessels.slno_format_for(
            content.vessel_name, self.config.default_slno_format
        )
        items = [
            item.model_copy(update={"sl_no": format_serial(slno_format, index)})
            for index, item in enumerate(content.items, start=1)
        ]
        return self.price(content.model_copy(update={"items": items}))

    async def prepare_revision_draft(self, thread_id: str, quotation_id: str) -> QuotationContent:
        previous = await self.store.get_quotation(thread_id, quotation_id)
        return await self.renumber(previous.content)

    async def create_revision(
        self,
        thread_id: str,
        previous_quotation_id: str,
        content_override: QuotationContent | dict[str, Any] | None = None,
        renumber: bool = False,
    ) -> Quotation:
        """Add a new pending version derived from ``previous_quotation_id``.

        The thread status and the previous quotation are left as they are.

        Raises:
            NotFound: If the thread or previous quotation does not exist
            PreconditionFailed: If the thread is declined or completed
            ValidationFailed: If ``content_override`` is malformed
        """
        thread = await self.store.get_thread(thread_id)
        previous = await self.store.get_quotation(thread_id, previous_quotation_id)

        if thread.is_declined:
            raise PreconditionFailed(
                "thread_not_declined",
                f"Thread {thread_id} is declined; undo the decline before revising",
            )
        if thread.is_closed:
            raise PreconditionFailed("thread_open", f"Thread {thread_id} is completed")

        if content_override is not None:
            content = coerce_content(content_override)
        else:
            content = previous.content.model_copy(deep=True)
        if renumber:
            content = await self.renumber(content)
        else:
            content = self.price(content)

        async with self.store.atomic():
            quotations = await self.store.list_quotations(thread_id)
            version = self.next_version_label(thread, quotations)
            quotation = await self.store.add_quotation(
                thread_id, QuotationDraft(version=version, content=content)
            )
            await self.store.upsert_thread(
                thread_id, revision_counter=thread.revision_counter + 1
            )

        logger.info("Created %s in thread %s from %s", version, thread_id, previous_quotation_id)
        return quotation

    async def set_final(self, thread_id: str, quotation_id: str) -> Quotation:
        """Mark one quotation final and clear the flag on every sibling.

        A declined target goes back to pending and a pre-acceptance thread
        moves to QuotationAccepted. Threads further down the pipeline keep
        their status.
        """
        async with self.store.atomic():
            thread = await self.store.get_thread(thread_id)
            target = await self.store.get_quotation(thread_id, quotation_id)
            if thread.is_closed:
                raise PreconditionFailed("thread_open", f"Thread {thread_id} is completed")

            for quotation in await self.store.list_quotations(thread_id):
                if quotation.id != quotation_id and quotation.is_final:
                    await self.store.update_quotation(thread_id, quotation.id, is_final=False)

            status = target.status
            if status == QuotationStatus.DECLINED:
                status = QuotationStatus.PENDING

            final = await self.store.update_quotation(
                thread_id,
                quotation_id,
                is_final=True,
                status=status,
                content=self.price(target.content),
            )

            fields: dict[str, Any] = {"final_quotation_id": quotation_id}
            if thread.status.is_pre_acceptance:
                fields["status"] = ThreadStatus.QUOTATION_ACCEPTED
            await self.store.upsert_thread(thread_id, **fields)

        logger.info("Quotation %s is final for thread %s", quotation_id, thread_id)
        return final

    async def update_content(
        self,
        thread_id: str,
        quotation_id: str,
        content: QuotationContent | dict[str, Any],
    ) -> Quotation:
        thread = await self.store.get_thread(thread_id)
        target = await self.store.get_quotation(thread_id, quotation_id)
        if thread.is_closed:
            raise PreconditionFailed("thread_open", f"Thread {thread_id} is completed")
        if target.is_final and thread.status.stage > ACCEPTED_STAGE:
            raise PreconditionFailed(
                "final_quotation_editable",
                f"Quotation {quotation_id} is referenced by downstream documents",
            )

        priced = self.price(coerce_content(content))
        async with self.store.atomic():
            updated = await self.store.update_quotation(thread_id, quotation_id, content=priced)
            await self.store.upsert_thread(thread_id)
        return updated

    async def delete_quotation(self, thread_id: str, quotation_id: str) -> list[Quotation]:
        """Delete a version and return the rest, newest first.

        Raises:
            NotFound: If the thread or quotation does not exist
            PreconditionFailed: If it is the last quotation, or the final one
                after downstream documents exist
        """
        async with self.store.atomic():
            thread = await self.store.get_thread(thread_id)
            target = await self.store.get_quotation(thread_id, quotation_id)
            quotations = await self.store.list_quotations(thread_id)

            if len(quotations) <= 1:
                raise PreconditionFailed(
                    "minimum_one_quotation",
                    f"Thread {thread_id} must keep at least one quotation",
                )

            is_final = target.is_final or thread.final_quotation_id == quotation_id
            if is_final and thread.status.stage > ACCEPTED_STAGE:
                raise PreconditionFailed(
                    "final_quotation_deletable",
                    f"Quotation {quotation_id} is referenced by downstream documents",
                )

            await self.store.delete_quotation(thread_id, quotation_id)

            fields: dict[str, Any] = {}
            if is_final:
                fields["final_quotation_id"] = None
                if thread.status == ThreadStatus.QUOTATION_ACCEPTED:
                    fields["status"] = ThreadStatus.QUOTATION_CREATED
            await self.store.upsert_thread(thread_id, **fields)

            remaining = await self.store.list_quotations(thread_id)

        logger.info("Deleted quotation %s from thread %s", quotation_id, thread_id)
        return remaining
