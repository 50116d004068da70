"""Pytest configuration and fixtures for quoteflow tests.

Store-backed fixtures use a file SQLite database under ``tmp_path`` so every
test starts from an empty schema.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from quoteflow.config import WorkflowConfig
from quoteflow.db.connection import init_db
from quoteflow.models import QuotationContent, QuotationItem, UploadedFile
from quoteflow.store import LocalBlobStore, SqlDocumentStore
from quoteflow.workflow import ThreadWorkflow


@pytest.fixture
def workflow_config() -> WorkflowConfig:
    """Default numbering: HRS-QN ids seeded at 25000, count revision labels."""
    return WorkflowConfig()


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Async SQLite engine with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'quoteflow.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine) -> SqlDocumentStore:
    return SqlDocumentStore.from_engine(engine)


@pytest.fixture
def blobs(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs", base_url="/files")


@pytest.fixture
def workflow(store, blobs, workflow_config) -> ThreadWorkflow:
    return ThreadWorkflow(store, blobs, workflow_config)


@pytest.fixture
def sample_content() -> QuotationContent:
    """One line: 2 x 100.00 for a vessel job."""
    return QuotationContent(
        party_name="Gulf Marine Services",
        party_address="Doha, Qatar",
        vessel_name="HALUL-45",
        items=[
            QuotationItem(
                sl_no="H01",
                description="Hydraulic hose replacement",
                qty=Decimal("2"),
                unit_price=Decimal("100.00"),
            )
        ],
    )


@pytest.fixture
def pdf_file() -> UploadedFile:
    return UploadedFile(
        filename="purchase_order.pdf",
        data=b"%PDF-1.4\n%test\n",
        content_type="application/pdf",
    )


@pytest_asyncio.fixture
async def opened_thread(workflow, sample_content):
    """A fresh thread (HRS-QN-25001) and its original quotation."""
    return await workflow.create_thread(sample_content)
