# paper_kb/cli/ingest_cli.py

from __future__ import annotations

from datetime import date
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from paper_kb.arxiv.client import CatalogError, normalize_arxiv_id
from paper_kb.cli import context
from paper_kb.cli.worker_cli import drain
from paper_kb.ingest.queue import InMemoryQueue
from paper_kb.ingest.sweep import run_sweep

app = typer.Typer(help="Submit papers for ingestion.")
console = Console()


def _print_results(rows: List[tuple]) -> None:
    table = Table(title="Submissions")
    table.add_column("arXiv ID", style="cyan")
    table.add_column("Status")
    table.add_column("Paper ID", style="dim")
    table.add_column("Note")
    for arxiv_id, status, paper_id, note in rows:
        style = "red" if status == "error" else "green" if status == "queued" else "yellow"
        table.add_row(arxiv_id, f"[{style}]{status}[/{style}]", paper_id or "", note or "")
    console.print(table)


@app.command("submit")
def submit(
    arxiv_ids: List[str] = typer.Argument(
        ...,
        help="arXiv IDs, 'arXiv:' prefixed IDs or abs/pdf URLs.",
    ),
    process: bool = typer.Option(
        True,
        "--process/--no-process",
        help="Run the queued stages in this process after submitting.",
    ),
):
    """
    Submit one or more papers.
    """
    store = context.get_store()
    queue = InMemoryQueue()
    pipeline = context.build_pipeline(store, queue)

    rows = []
    for raw in arxiv_ids:
        arxiv_id = normalize_arxiv_id(raw)
        try:
            result = pipeline.submit(arxiv_id)
        except ValidationError:
            rows.append((raw, "error", None, "invalid arXiv ID"))
            continue
        rows.append((arxiv_id, result.status, result.paper_id, result.message))

    _print_results(rows)

    if process and len(queue):
        drain(pipeline, queue)


@app.command("batch")
def batch(
    ids: Optional[List[str]] = typer.Option(
        None,
        "--id",
        "-i",
        help="arXiv ID to submit (repeatable).",
    ),
    query: Optional[str] = typer.Option(
        None,
        "--query",
        "-q",
        help="Catalog search query whose hits are submitted.",
    ),
    process: bool = typer.Option(
        True,
        "--process/--no-process",
        help="Run the queued stages in this process after submitting.",
    ),
):
    """
    Submit explicit IDs and/or the results of a catalog search (max 50 papers).
    """
    store = context.get_store()
    queue = InMemoryQueue()
    pipeline = context.build_pipeline(store, queue)

    try:
        result = pipeline.batch_submit(
            arxiv_ids=[normalize_arxiv_id(i) for i in ids] if ids else None,
            search_query=query,
        )
    except ValidationError as exc:
        console.print(f"[red]Invalid batch request:[/red] {exc.errors()[0]['msg']}")
        raise typer.Exit(code=1)
    except CatalogError as exc:
        console.print(f"[red]Catalog search failed:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    _print_results([(r.arxiv_id, r.status, r.paper_id, r.error) for r in result.results])
    console.print(f"Total: {result.total}")

    if process and len(queue):
        drain(pipeline, queue)


@app.command("sweep")
def sweep(
    categories: Optional[List[str]] = typer.Option(
        None,
        "--category",
        "-c",
        help="arXiv category to sweep (repeatable). Defaults to PAPERKB_ARXIV_CATEGORIES.",
    ),
    day: Optional[str] = typer.Option(
        None,
        "--day",
        help="Announcement day as YYYY-MM-DD. Defaults to yesterday.",
    ),
    process: bool = typer.Option(
        False,
        "--process/--no-process",
        help="Run the queued stages in this process after submitting.",
    ),
):
    """
    Discover newly announced papers via OAI-PMH and submit them.
    """
    try:
        sweep_day = date.fromisoformat(day) if day else None
    except ValueError:
        console.print(f"[red]Invalid --day:[/red] {day!r} (expected YYYY-MM-DD)")
        raise typer.Exit(code=1)

    store = context.get_store()
    queue = InMemoryQueue()
    pipeline = context.build_pipeline(store, queue)

    stats = run_sweep(pipeline, context.build_harvester(), categories=categories or None, day=sweep_day)

    console.print(
        f"found [bold]{stats.found}[/bold], queued [green]{stats.queued}[/green], "
        f"skipped [yellow]{stats.skipped}[/yellow], errors [red]{len(stats.errors)}[/red]"
    )
    for err in stats.errors:
        console.print(f"  [red]{escape(err)}[/red]")

    if process and len(queue):
        drain(pipeline, queue)
