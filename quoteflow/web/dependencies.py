"""Shared dependencies for quoteflow web routes.

Routes receive the workflow engine through FastAPI's Depends() system so
tests can swap it with ``app.dependency_overrides``.

Usage:
    from fastapi import Depends
    from quoteflow.web.dependencies import get_workflow

    @router.post("/api/threads/{thread_id}/decline")
    async def decline(thread_id: str, workflow=Depends(get_workflow)):
        return await workflow.decline(thread_id)
"""

from __future__ import annotations

from fastapi import UploadFile

from quoteflow.config import get_config
from quoteflow.db.connection import get_session_factory
from quoteflow.models import UploadedFile
from quoteflow.store import LocalBlobStore, SqlDocumentStore
from quoteflow.vessels import VesselService
from quoteflow.workflow import ThreadWorkflow

# Global singletons, built on first request
_store: SqlDocumentStore | None = None
_workflow: ThreadWorkflow | None = None


def get_store() -> SqlDocumentStore:
    """Document store bound to the application's session factory.

    Raises:
        KeyError: If DATABASE_URL is not configured
    """
    global _store
    if _store is None:
        _store = SqlDocumentStore(get_session_factory())
    return _store


def get_workflow() -> ThreadWorkflow:
    global _workflow
    if _workflow is None:
        config = get_config()
        _workflow = ThreadWorkflow(
            get_store(),
            LocalBlobStore.from_config(config.blob),
            config.workflow,
        )
    return _workflow


def get_vessel_service() -> VesselService:
    return VesselService(get_store())


def reset_dependencies() -> None:
    """Forget cached singletons (after close_db or a config change)."""
    global _store, _workflow
    _store = None
    _workflow = None


async def to_uploaded_file(upload: UploadFile) -> UploadedFile:
    """Read a multipart upload into the workflow's file type."""
    return UploadedFile(
        filename=upload.filename or "",
        data=await upload.read(),
        content_type=upload.content_type,
    )
