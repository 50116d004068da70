"""SQLAlchemy implementation of the document store.

Every public call runs in its own session and commits, unless it is made
inside ``atomic()``, in which case it joins the block's session and the
whole block commits or rolls back together.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from quoteflow.db.models import QuotationModel, ThreadDocumentModel, ThreadModel, VesselModel
from quoteflow.errors import NotFound, StoreUnavailable, ValidationFailed
from quoteflow.models import (
    Document,
    DocumentDraft,
    DocumentType,
    Quotation,
    QuotationContent,
    QuotationDraft,
    Thread,
    ThreadStatus,
    Vessel,
    VesselDraft,
    utcnow,
)
from quoteflow.store.base import DocumentStore

logger = logging.getLogger(__name__)

_THREAD_FIELDS = {
    "user_ref_id",
    "status",
    "po_id",
    "final_quotation_id",
    "client_name",
    "revision_counter",
}
_QUOTATION_FIELDS = {"version", "status", "content", "is_final"}
_DOCUMENT_FIELDS = {"filename", "filepath", "content_type", "content"}
_VESSEL_FIELDS = {"name", "number", "slno_format", "code"}


class SqlDocumentStore(DocumentStore):
    """Document store backed by an async SQLAlchemy engine."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._active: ContextVar[AsyncSession | None] = ContextVar(
            f"quoteflow_store_session_{id(self)}", default=None
        )

    @classmethod
    def from_engine(cls, engine: AsyncEngine) -> SqlDocumentStore:
        return cls(async_sessionmaker(engine, expire_on_commit=False))

    @asynccontextmanager
    async def atomic(self) -> AsyncGenerator[None, None]:
        if self._active.get() is not None:
            yield
            return

        session = self._session_factory()
        token = self._active.set(session)
        try:
            yield
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.error("Transaction failed: %s", exc)
            raise StoreUnavailable(f"transaction failed: {exc}") from exc
        except Exception:
            await session.rollback()
            raise
        finally:
            self._active.reset(token)
            await session.close()

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        active = self._active.get()
        if active is not None:
            try:
                yield active
            except SQLAlchemyError as exc:
                raise StoreUnavailable(f"store operation failed: {exc}") from exc
            return

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.error("Store operation failed: %s", exc)
            raise StoreUnavailable(f"store operation failed: {exc}") from exc
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # ------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------

    async def find_thread(self, thread_id: str) -> Thread | None:
        async with self._session() as session:
            model = await session.get(ThreadModel, thread_id)
            return _to_thread(model) if model else None

    async def create_thread(self, thread: Thread) -> Thread:
        async with self._session() as session:
            model = ThreadModel(
                thread_id=thread.thread_id,
                user_ref_id=thread.user_ref_id,
                status=thread.status.value,
                po_id=thread.po_id,
                final_quotation_id=thread.final_quotation_id,
                client_name=thread.client_name,
                revision_counter=thread.revision_counter,
                created_at=thread.created_at,
                updated_at=thread.updated_at,
            )
            session.add(model)
            await session.flush()
            return _to_thread(model)

    async def upsert_thread(self, thread_id: str, **fields: Any) -> Thread:
        _check_fields("thread", fields, _THREAD_FIELDS)
        async with self._session() as session:
            model = await session.get(ThreadModel, thread_id)
            if model is None:
                model = ThreadModel(
                    thread_id=thread_id,
                    status=ThreadStatus.QUOTATION_CREATED.value,
                    revision_counter=0,
                    created_at=utcnow(),
                )
                session.add(model)
            for key, value in fields.items():
                setattr(model, key, _column_value(value))
            model.updated_at = utcnow()
            await session.flush()
            return _to_thread(model)

    async def list_threads(self) -> list[Thread]:
        async with self._session() as session:
            stmt = select(ThreadModel).order_by(
                ThreadModel.created_at.desc(), ThreadModel.thread_id.desc()
            )
            rows = await session.execute(stmt)
            return [_to_thread(model) for model in rows.scalars()]

    # ------------------------------------------------------------------
    # Quotations
    # ------------------------------------------------------------------

    async def list_quotations(self, thread_id: str) -> list[Quotation]:
        async with self._session() as session:
            stmt = (
                select(QuotationModel)
                .where(QuotationModel.thread_id == thread_id)
                .order_by(QuotationModel.created_at.desc(), QuotationModel.pk.desc())
            )
            rows = await session.execute(stmt)
            return [_to_quotation(model) for model in rows.scalars()]

    async def get_quotation(self, thread_id: str, quotation_id: str) -> Quotation:
        async with self._session() as session:
            model = await _load_quotation(session, thread_id, quotation_id)
            return _to_quotation(model)

    async def add_quotation(self, thread_id: str, quotation: QuotationDraft) -> Quotation:
        async with self._session() as session:
            if await session.get(ThreadModel, thread_id) is None:
                raise NotFound("thread", thread_id)
            model = QuotationModel(
                thread_id=thread_id,
                version=quotation.version,
                status=quotation.status.value,
                is_final=quotation.is_final,
                content=_column_value(quotation.content),
                created_at=utcnow(),
            )
            session.add(model)
            await session.flush()
            return _to_quotation(model)

    async def update_quotation(
        self, thread_id: str, quotation_id: str, **fields: Any
    ) -> Quotation:
        _check_fields("quotation", fields, _QUOTATION_FIELDS)
        async with self._session() as session:
            model = await _load_quotation(session, thread_id, quotation_id)
            for key, value in fields.items():
                setattr(model, key, _column_value(value))
            model.updated_at = utcnow()
            await session.flush()
            return _to_quotation(model)

    async def delete_quotation(self, thread_id: str, quotation_id: str) -> None:
        async with self._session() as session:
            model = await _load_quotation(session, thread_id, quotation_id)
            await session.delete(model)
            await session.flush()

    async def latest_quotations(self) -> dict[str, Quotation]:
        async with self._session() as session:
            stmt = select(QuotationModel).order_by(
                QuotationModel.created_at.desc(), QuotationModel.pk.desc()
            )
            rows = await session.execute(stmt)
            latest: dict[str, Quotation] = {}
            for model in rows.scalars():
                if model.thread_id not in latest:
                    latest[model.thread_id] = _to_quotation(model)
            return latest

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def list_documents(
        self, thread_id: str, type: DocumentType | None = None
    ) -> list[Document]:
        stmt = _documents_stmt(type).where(ThreadDocumentModel.thread_id == thread_id)
        async with self._session() as session:
            rows = await session.execute(stmt)
            return [_to_document(model) for model in rows.scalars()]

    async def list_all_documents(self, type: DocumentType | None = None) -> list[Document]:
        async with self._session() as session:
            rows = await session.execute(_documents_stmt(type))
            return [_to_document(model) for model in rows.scalars()]

    async def get_document(self, thread_id: str, document_id: str) -> Document:
        async with self._session() as session:
            model = await _load_document(session, thread_id, document_id)
            return _to_document(model)

    async def add_document(
        self,
        thread_id: str,
        document: DocumentDraft,
        document_id: str | None = None,
    ) -> Document:
        async with self._session() as session:
            if await session.get(ThreadModel, thread_id) is None:
                raise NotFound("thread", thread_id)
            model = ThreadDocumentModel(
                thread_id=thread_id,
                type=document.type.value,
                filename=document.filename,
                filepath=document.filepath,
                content_type=document.content_type,
                content=document.content,
                uploaded_at=utcnow(),
            )
            if document_id is not None:
                model.id = document_id
            session.add(model)
            await session.flush()
            return _to_document(model)

    async def update_document(
        self, thread_id: str, document_id: str, **fields: Any
    ) -> Document:
        _check_fields("document", fields, _DOCUMENT_FIELDS)
        async with self._session() as session:
            model = await _load_document(session, thread_id, document_id)
            for key, value in fields.items():
                setattr(model, key, _column_value(value))
            model.uploaded_at = utcnow()
            await session.flush()
            return _to_document(model)

    # ------------------------------------------------------------------
    # Vessels
    # ------------------------------------------------------------------

    async def list_vessels(self) -> list[Vessel]:
        async with self._session() as session:
            stmt = select(VesselModel).order_by(VesselModel.created_at.desc(), VesselModel.pk.desc())
            rows = await session.execute(stmt)
            return [_to_vessel(model) for model in rows.scalars()]

    async def get_vessel(self, vessel_id: str) -> Vessel:
        async with self._session() as session:
            model = await _load_vessel(session, vessel_id)
            return _to_vessel(model)

    async def find_vessels(self, **equals: str) -> list[Vessel]:
        _check_fields("vessel", equals, _VESSEL_FIELDS)
        async with self._session() as session:
            stmt = select(VesselModel)
            for key, value in equals.items():
                stmt = stmt.where(getattr(VesselModel, key) == value)
            rows = await session.execute(stmt.order_by(VesselModel.pk))
            return [_to_vessel(model) for model in rows.scalars()]

    async def add_vessel(self, vessel: VesselDraft) -> Vessel:
        async with self._session() as session:
            model = VesselModel(
                name=vessel.name,
                number=vessel.number,
                slno_format=vessel.slno_format,
                code=vessel.code,
                created_at=utcnow(),
            )
            session.add(model)
            await session.flush()
            return _to_vessel(model)

    async def update_vessel(self, vessel_id: str, **fields: Any) -> Vessel:
        _check_fields("vessel", fields, _VESSEL_FIELDS)
        async with self._session() as session:
            model = await _load_vessel(session, vessel_id)
            for key, value in fields.items():
                setattr(model, key, value)
            model.updated_at = utcnow()
            await session.flush()
            return _to_vessel(model)

    async def delete_vessel(self, vessel_id: str) -> None:
        async with self._session() as session:
            model = await _load_vessel(session, vessel_id)
            await session.delete(model)
            await session.flush()


async def _load_quotation(
    session: AsyncSession, thread_id: str, quotation_id: str
) -> QuotationModel:
    stmt = select(QuotationModel).where(
        QuotationModel.id == quotation_id,
        QuotationModel.thread_id == thread_id,
    )
    model = (await session.execute(stmt)).scalar_one_or_none()
    if model is None:
        raise NotFound("quotation", quotation_id)
    return model


async def _load_document(
    session: AsyncSession, thread_id: str, document_id: str
) -> ThreadDocumentModel:
    stmt = select(ThreadDocumentModel).where(
        ThreadDocumentModel.id == document_id,
        ThreadDocumentModel.thread_id == thread_id,
    )
    model = (await session.execute(stmt)).scalar_one_or_none()
    if model is None:
        raise NotFound("document", document_id)
    return model


async def _load_vessel(session: AsyncSession, vessel_id: str) -> VesselModel:
    stmt = select(VesselModel).where(VesselModel.id == vessel_id)
    model = (await session.execute(stmt)).scalar_one_or_none()
    if model is None:
        raise NotFound("vessel", vessel_id)
    return model


def _documents_stmt(type: DocumentType | None):
    stmt = select(ThreadDocumentModel).order_by(
        ThreadDocumentModel.uploaded_at.desc(), ThreadDocumentModel.pk.desc()
    )
    if type is not None:
        stmt = stmt.where(ThreadDocumentModel.type == type.value)
    return stmt


def _check_fields(kind: str, fields: dict[str, Any], allowed: set[str]) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValidationFailed(f"Unknown {kind} field(s): {', '.join(sorted(unknown))}")


def _column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


def _to_thread(model: ThreadModel) -> Thread:
    return Thread(
        thread_id=model.thread_id,
        user_ref_id=model.user_ref_id,
        status=ThreadStatus(model.status),
        po_id=model.po_id,
        final_quotation_id=model.final_quotation_id,
        client_name=model.client_name,
        revision_counter=model.revision_counter,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _to_quotation(model: QuotationModel) -> Quotation:
    try:
        content = QuotationContent.model_validate(model.content)
    except ValidationError as exc:
        raise ValidationFailed(
            f"Stored content of quotation {model.id} does not match schema: {exc}"
        ) from exc

    return Quotation(
        id=model.id,
        thread_id=model.thread_id,
        version=model.version,
        status=model.status,
        content=content,
        is_final=model.is_final,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _to_document(model: ThreadDocumentModel) -> Document:
    return Document(
        id=model.id,
        thread_id=model.thread_id,
        type=DocumentType(model.type),
        filename=model.filename,
        filepath=model.filepath,
        content_type=model.content_type,
        content=model.content,
        uploaded_at=model.uploaded_at,
    )


def _to_vessel(model: VesselModel) -> Vessel:
    return Vessel(
        id=model.id,
        name=model.name,
        number=model.number,
        slno_format=model.slno_format,
        code=model.code,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
