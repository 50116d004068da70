"""quoteflow web route modules.

Each module exports a ``router`` (APIRouter instance) that ``web.app``
includes:

    from quoteflow.web.routes import threads
    app.include_router(threads.router)
"""

from quoteflow.web.routes import documents, threads, vessels

__all__ = ["documents", "threads", "vessels"]
