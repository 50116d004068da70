"""quoteflow CLI - thread workflow administration.

Commands:
- init: Initialize database schema
- next-ref: Show the next thread reference id
- create: Open a thread from a quotation JSON file
- threads: List threads with their latest quotation
- documents: Register of documents across threads
- show: Show one thread with its quotations and documents
- decline / undo-decline: Decline a thread or reopen it
- finalize: Mark a quotation as the final one
- complete: Close an invoiced thread
- vessels add / vessels list: Manage vessel reference data
- web serve: Run the HTTP API
"""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from quoteflow.config import get_config
from quoteflow.core.logging import configure_logging
from quoteflow.db.connection import close_db, get_engine, get_session_factory, init_db
from quoteflow.errors import WorkflowError
from quoteflow.models import DocumentType, VesselDraft
from quoteflow.store import LocalBlobStore, SqlDocumentStore
from quoteflow.vessels import VesselService
from quoteflow.workflow import ThreadWorkflow

app = typer.Typer(
    name="quoteflow",
    help="quoteflow - quotation to invoice workflow tracking",
    no_args_is_help=True,
)
vessels_cli = typer.Typer(help="Vessel reference data")
app.add_typer(vessels_cli, name="vessels")

web_cli = typer.Typer(help="Web API")
app.add_typer(web_cli, name="web")

console = Console()

T = TypeVar("T")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
):
    configure_logging(
        "DEBUG" if verbose else os.getenv("LOG_LEVEL", "WARNING"),
        os.getenv("LOG_FORMAT", "text"),
    )


def _build_workflow() -> ThreadWorkflow:
    config = get_config()
    return ThreadWorkflow(
        SqlDocumentStore(get_session_factory()),
        LocalBlobStore.from_config(config.blob),
        config.workflow,
    )


def _run(action: Callable[[ThreadWorkflow], Awaitable[T]]) -> T:
    """Run one async workflow action; workflow errors exit with code 1."""

    async def _main() -> T:
        try:
            return await action(_build_workflow())
        finally:
            await close_db()

    try:
        return asyncio.run(_main())
    except WorkflowError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(code=1) from exc


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        try:
            if drop:
                console.print("[yellow]Dropping existing tables...[/yellow]")
            await init_db(get_engine(), drop=drop)
        finally:
            await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command(name="next-ref")
def next_ref():
    """Show the reference id the next thread will get."""
    ref_id = _run(lambda workflow: workflow.next_ref_id())
    console.print(ref_id)


@app.command()
def create(
    content_file: Path = typer.Argument(..., exists=True, help="Quotation content JSON"),
    ref_id: str | None = typer.Option(None, "--ref", help="Reference id (generated if omitted)"),
):
    """Open a thread from a quotation content file."""
    content = json.loads(content_file.read_text())
    thread, quotation = _run(lambda workflow: workflow.create_thread(content, ref_id))
    console.print(
        f"[bold green]✓[/bold green] Created {thread.thread_id} "
        f"(quotation {quotation.id}, total {quotation.content.total})"
    )


@app.command()
def threads():
    """List threads, newest first."""
    rows = _run(lambda workflow: workflow.list_thread_summaries())
    if not rows:
        console.print("[yellow]No threads found[/yellow]")
        return

    table = Table(title="Threads")
    table.add_column("Thread", style="cyan")
    table.add_column("Client")
    table.add_column("Status", style="magenta")
    table.add_column("PO")
    table.add_column("Latest")
    table.add_column("Total", justify="right")
    table.add_column("Updated", style="dim")
    for thread in rows:
        latest = thread.latest_quotation
        table.add_row(
            thread.thread_id,
            thread.client_name or "-",
            thread.status.value,
            thread.po_id or "-",
            latest.version if latest else "-",
            f"{latest.content.total:,.2f}" if latest else "-",
            thread.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def documents(
    doc_type: DocumentType | None = typer.Option(None, "--type", "-t", help="Only this document type"),
):
    """List documents across all threads, newest first."""
    rows = _run(lambda workflow: workflow.document_register(doc_type))
    if not rows:
        console.print("[yellow]No documents found[/yellow]")
        return

    table = Table(title="Documents")
    table.add_column("Type", style="cyan")
    table.add_column("File")
    table.add_column("Thread")
    table.add_column("PO")
    table.add_column("Client")
    table.add_column("Uploaded", style="dim")
    for document in rows:
        table.add_row(
            document.type.value,
            document.filename,
            document.thread_id,
            document.po_id or "-",
            document.client_name or "-",
            document.uploaded_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def show(thread_id: str = typer.Argument(..., help="Thread id")):
    """Show a thread with its quotations and documents."""
    thread = _run(lambda workflow: workflow.get_thread_with_relations(thread_id))

    console.print(f"\n[bold]{thread.thread_id}[/bold] {thread.client_name or ''}")
    console.print(f"  Status: [magenta]{thread.status.value}[/magenta]")
    if thread.po_id:
        console.print(f"  PO: {thread.po_id}")

    table = Table(title="Quotations")
    table.add_column("Id", style="dim")
    table.add_column("Version", style="cyan")
    table.add_column("Status")
    table.add_column("Final")
    table.add_column("Total", justify="right")
    for quotation in thread.quotations:
        table.add_row(
            quotation.id,
            quotation.version,
            quotation.status.value,
            "✓" if quotation.is_final else "",
            f"{quotation.content.total:,.2f}",
        )
    console.print(table)

    for document in thread.documents:
        console.print(f"  [green]•[/green] {document.type.value}: {document.filename}")


@app.command()
def decline(thread_id: str = typer.Argument(..., help="Thread id")):
    """Decline a thread and all of its open quotations."""
    thread = _run(lambda workflow: workflow.decline(thread_id))
    console.print(f"[yellow]{thread.thread_id}[/yellow] is now {thread.status.value}")


@app.command(name="undo-decline")
def undo_decline(thread_id: str = typer.Argument(..., help="Thread id")):
    """Reopen a declined thread."""
    thread = _run(lambda workflow: workflow.undo_decline(thread_id))
    console.print(f"[green]{thread.thread_id}[/green] is now {thread.status.value}")


@app.command()
def finalize(
    thread_id: str = typer.Argument(..., help="Thread id"),
    quotation_id: str = typer.Argument(..., help="Quotation id"),
):
    """Mark a quotation as the thread's final quotation."""
    quotation = _run(lambda workflow: workflow.mark_final(thread_id, quotation_id))
    console.print(
        f"[bold green]✓[/bold green] {quotation.version} ({quotation.id}) is final "
        f"for {thread_id}"
    )


@app.command()
def complete(thread_id: str = typer.Argument(..., help="Thread id")):
    """Close an invoiced thread."""
    thread = _run(lambda workflow: workflow.complete_thread(thread_id))
    console.print(f"[bold green]✓[/bold green] {thread.thread_id} completed")


@vessels_cli.command("add")
def vessels_add(
    name: str = typer.Argument(..., help="Vessel name"),
    number: str = typer.Argument(..., help="Vessel number"),
    slno_format: str = typer.Option("H##", "--slno-format", help="Item serial format"),
    code: str = typer.Option("", "--code", help="Vessel code (derived if omitted)"),
):
    """Register a vessel."""
    try:
        draft = VesselDraft(name=name, number=number, slno_format=slno_format, code=code)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    vessel = _run(lambda workflow: VesselService(workflow.store).create(draft))
    console.print(f"[bold green]✓[/bold green] Added {vessel.name} ({vessel.code})")


@vessels_cli.command("list")
def vessels_list():
    """List registered vessels."""
    rows = _run(lambda workflow: VesselService(workflow.store).list_vessels())
    if not rows:
        console.print("[yellow]No vessels found[/yellow]")
        return

    table = Table(title="Vessels")
    table.add_column("Name", style="cyan")
    table.add_column("Number")
    table.add_column("Code", style="magenta")
    table.add_column("Serial format")
    for vessel in rows:
        table.add_row(vessel.name, vessel.number, vessel.code, vessel.slno_format)
    console.print(table)


@web_cli.command("serve")
def web_serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8001, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the FastAPI web API."""
    import uvicorn

    typer.echo(f"Starting quoteflow API on http://{host}:{port}")
    uvicorn.run("quoteflow.web.app:app", host=host, port=port, reload=reload, workers=1)


if __name__ == "__main__":
    app()
