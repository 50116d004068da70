"""FastAPI application for the quoteflow HTTP API."""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware

from quoteflow import __version__
from quoteflow.config import BlobConfig
from quoteflow.core.logging import configure_logging
from quoteflow.db.connection import close_db
from quoteflow.errors import (
    NotFound,
    PreconditionFailed,
    StoreUnavailable,
    ValidationFailed,
    WorkflowError,
)
from quoteflow.web.dependencies import reset_dependencies
from quoteflow.web.routes import documents, threads, vessels

# Initialize structured logging
configure_logging(os.getenv("LOG_LEVEL", "INFO"), os.getenv("LOG_FORMAT", "json"))
logger = structlog.get_logger()

ERROR_STATUS: dict[type[WorkflowError], int] = {
    NotFound: 404,
    PreconditionFailed: 409,
    ValidationFailed: 422,
    StoreUnavailable: 503,
}


# Request Logging Middleware
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise

        logger.info("request_completed", status_code=response.status_code)
        response.headers["X-Request-ID"] = request_id
        return response


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """Render a workflow error with the status code of its type."""
    status_code = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)),
        500,
    )
    body: dict = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, PreconditionFailed):
        body["precondition"] = exc.precondition

    if status_code >= 500:
        logger.error("workflow_error", error=str(exc), error_type=type(exc).__name__)
    else:
        logger.info("workflow_rejected", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WorkflowError, workflow_error_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_db()
    reset_dependencies()


def create_app() -> FastAPI:
    """Build the application; the database is only touched on first request."""
    app = FastAPI(
        title="quoteflow",
        description="Quotation, purchase order, delivery note and invoice tracking",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(threads.router)
    app.include_router(vessels.router)
    app.include_router(documents.router)

    # Serve stored files if the blob root exists
    blob_config = BlobConfig.from_env()
    if blob_config.root.exists():
        app.mount(
            blob_config.base_url or "/files",
            StaticFiles(directory=str(blob_config.root)),
            name="files",
        )

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
