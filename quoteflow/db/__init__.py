"""Database layer for quoteflow with async SQLAlchemy."""

from quoteflow.db.connection import init_db
from quoteflow.db.models import (
    Base,
    QuotationModel,
    ThreadDocumentModel,
    ThreadModel,
    VesselModel,
)

__all__ = [
    "Base",
    "ThreadModel",
    "QuotationModel",
    "ThreadDocumentModel",
    "VesselModel",
    "init_db",
]
