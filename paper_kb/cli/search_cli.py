# paper_kb/cli/search_cli.py

from __future__ import annotations

from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from paper_kb.cli import context
from paper_kb.models import ExtractionType

app = typer.Typer(help="Hybrid keyword + semantic search.")
console = Console()


def _truncate(text: Optional[str], width: int) -> str:
    text = text or ""
    return text if len(text) <= width else text[: width - 1] + "…"


@app.command("papers")
def search_papers(
    query: str = typer.Argument(..., help="Free-text query."),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Category filter, e.g. cs.CL."),
    year_from: Optional[int] = typer.Option(None, "--from", help="Earliest publication year."),
    year_to: Optional[int] = typer.Option(None, "--to", help="Latest publication year."),
    limit: int = typer.Option(10, "--limit", "-n", help="Max number of hits (1-50)."),
):
    """
    Search ready papers, fusing keyword and semantic ranks.
    """
    store = context.get_store()
    searcher = context.build_searcher(store)
    try:
        hits = searcher.search_papers(query, category=category, year_from=year_from, year_to=year_to, limit=limit)
    except ValidationError as exc:
        console.print(f"[red]Invalid search:[/red] {exc.errors()[0]['msg']}")
        raise typer.Exit(code=1)

    if not hits:
        console.print("[yellow]No matching papers.[/yellow]")
        return

    table = Table(title=f"Papers matching {query!r}")
    table.add_column("#", justify="right")
    table.add_column("arXiv ID", style="cyan")
    table.add_column("Title")
    table.add_column("Published", style="dim")
    table.add_column("Score", justify="right")
    for i, hit in enumerate(hits, start=1):
        table.add_row(
            str(i),
            hit.arxiv_id,
            _truncate(hit.title, 70),
            (hit.published_at or "")[:10],
            f"{hit.score:.4f}",
        )
    console.print(table)


@app.command("extractions")
def search_extractions(
    query: str = typer.Argument(..., help="Free-text query."),
    type_: Optional[ExtractionType] = typer.Option(None, "--type", "-t", help="Restrict to one extraction type."),
    limit: int = typer.Option(20, "--limit", "-n", help="Max number of hits (1-50)."),
):
    """
    Search extracted methods, datasets, results, ...
    """
    store = context.get_store()
    searcher = context.build_searcher(store)
    try:
        hits = searcher.search_extractions(query, type=type_, limit=limit)
    except ValidationError as exc:
        console.print(f"[red]Invalid search:[/red] {exc.errors()[0]['msg']}")
        raise typer.Exit(code=1)

    if not hits:
        console.print("[yellow]No matching extractions.[/yellow]")
        return

    table = Table(title=f"Extractions matching {query!r}")
    table.add_column("Type", style="magenta")
    table.add_column("Name", style="bold")
    table.add_column("Detail")
    table.add_column("Paper", style="cyan")
    for hit in hits:
        table.add_row(
            hit.type.value,
            hit.name,
            _truncate(hit.detail, 60),
            f"{hit.arxiv_id} {_truncate(hit.paper_title, 40)}",
        )
    console.print(table)
