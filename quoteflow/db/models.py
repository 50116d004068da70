"""SQLAlchemy async database models for quoteflow.

Threads own their quotations and documents (cascade delete). Quotation
content and generated document payloads are stored as JSON.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from quoteflow.models import utcnow


def _new_id() -> str:
    return uuid4().hex


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ThreadModel(Base):
    """One client engagement; thread_id is usually the human reference id."""

    __tablename__ = "threads"

    thread_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_ref_id: Mapped[str | None] = mapped_column(String(64), index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    po_id: Mapped[str | None] = mapped_column(Text)
    final_quotation_id: Mapped[str | None] = mapped_column(String(32))
    client_name: Mapped[str | None] = mapped_column(Text)
    revision_counter: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    quotations: Mapped[list["QuotationModel"]] = relationship(
        back_populates="thread", cascade="all, delete-orphan"
    )
    documents: Mapped[list["ThreadDocumentModel"]] = relationship(
        back_populates="thread", cascade="all, delete-orphan"
    )


class QuotationModel(Base):
    """One quotation version inside a thread."""

    __tablename__ = "quotations"

    # Surrogate key gives a stable insertion order when created_at ties
    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, default=_new_id)
    thread_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("threads.thread_id", ondelete="CASCADE"), nullable=False
    )
    version: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    is_final: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    content: Mapped[dict] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    thread: Mapped["ThreadModel"] = relationship(back_populates="quotations")

    __table_args__ = (
        Index("idx_quotations_thread_created", "thread_id", "created_at"),
    )


class ThreadDocumentModel(Base):
    """Uploaded or generated workflow document (PO, delivery note, invoice)."""

    __tablename__ = "thread_documents"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, default=_new_id)
    thread_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("threads.thread_id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    filename: Mapped[str] = mapped_column(Text, nullable=False)
    filepath: Mapped[str] = mapped_column(Text, nullable=False)  # blob store URL
    content_type: Mapped[str | None] = mapped_column(Text)
    content: Mapped[dict | None] = mapped_column(JSON)  # generated documents only

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    thread: Mapped["ThreadModel"] = relationship(back_populates="documents")

    __table_args__ = (
        Index("idx_thread_documents_thread_type", "thread_id", "type"),
    )


class VesselModel(Base):
    """Vessel reference data used to seed quotation content."""

    __tablename__ = "vessels"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, default=_new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    number: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    slno_format: Mapped[str] = mapped_column(String(16), nullable=False, default="H##")
    code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
