"""Typed errors raised by the workflow engine and its store adapters.

The engine never recovers from these silently; callers (web routes, CLI)
decide how to present them.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for all quoteflow errors."""


class NotFound(WorkflowError):
    """A referenced thread, quotation, document or vessel does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class PreconditionFailed(WorkflowError):
    """A state-machine guard was not satisfied; no state was changed."""

    def __init__(self, precondition: str, message: str):
        self.precondition = precondition
        super().__init__(message)


class ValidationFailed(WorkflowError):
    """Malformed input (bad content, missing field, non-PDF upload)."""


class StoreUnavailable(WorkflowError):
    """Document or blob store I/O failure. Not retried by the core."""
