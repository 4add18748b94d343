# paper_kb/cli/papers_cli.py

from __future__ import annotations

import json
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from paper_kb.api.papers import get_paper, get_status, list_papers
from paper_kb.arxiv.client import normalize_arxiv_id
from paper_kb.cli import context
from paper_kb.graph.related import find_related
from paper_kb.models import PaperStatus

app = typer.Typer(help="Inspect stored papers.")
console = Console()

_STATUS_STYLE = {
    PaperStatus.READY: "green",
    PaperStatus.FAILED: "red",
}


def _status(status: PaperStatus) -> str:
    style = _STATUS_STYLE.get(status, "yellow")
    return f"[{style}]{status.value}[/{style}]"


def _describe_error(error: Optional[str]) -> str:
    if not error:
        return ""
    try:
        payload = json.loads(error)
    except ValueError:
        return escape(error)
    return escape(f"[{payload.get('stage')}] {payload.get('name')}: {payload.get('message')}")


@app.command("show")
def show(
    paper_id: str = typer.Argument(..., help="Internal id or arXiv ID."),
    sections: bool = typer.Option(False, "--sections", help="Print section bodies."),
):
    """
    Show metadata, extractions, citations and related papers.
    """
    store = context.get_store()
    detail = get_paper(store, normalize_arxiv_id(paper_id))
    if detail is None:
        console.print(f"[red]Paper not found:[/red] {paper_id}")
        raise typer.Exit(code=1)

    p = detail.paper
    header = [
        f"[bold]{escape(p.title or '(no title yet)')}[/bold]",
        f"arXiv: [cyan]{p.arxiv_id}[/cyan]   id: [dim]{p.id}[/dim]   status: {_status(p.status)}",
    ]
    if p.authors:
        header.append(", ".join(p.authors))
    if p.categories:
        header.append(" ".join(p.categories))
    if p.error:
        header.append(f"[red]{_describe_error(p.error)}[/red]")
    console.print(Panel("\n".join(header)))

    if p.abstract:
        console.print(p.abstract)

    if detail.sections:
        console.rule(f"Sections ({len(detail.sections)})")
        for s in detail.sections:
            console.print(f"{'  ' * (s.level - 1)}[bold]{s.position}. {s.heading}[/bold]")
            if sections:
                console.print(s.content)

    if detail.extractions:
        table = Table(title="Extractions")
        table.add_column("Type", style="magenta")
        table.add_column("Name", style="bold")
        table.add_column("Detail")
        for e in detail.extractions:
            table.add_row(e.type.value, e.name, e.detail or "")
        console.print(table)

    if detail.citations:
        console.rule(f"Citations ({len(detail.citations)})")
        for c in detail.citations:
            ref = c.target_arxiv_id or c.target_doi or ""
            local = " [green](local)[/green]" if c.target_paper_id else ""
            console.print(f"- [cyan]{ref}[/cyan]{local} {escape(c.target_title or '')}")

    if detail.cited_by:
        console.rule(f"Cited by ({len(detail.cited_by)})")
        for c in detail.cited_by:
            console.print(f"- [cyan]{c.source_arxiv_id}[/cyan] {escape(c.source_title or '')}")


@app.command("status")
def status(paper_id: str = typer.Argument(..., help="Internal id or arXiv ID.")):
    """
    Print the ingestion status of a paper.
    """
    store = context.get_store()
    result = get_status(store, normalize_arxiv_id(paper_id))
    if result is None:
        console.print(f"[red]Paper not found:[/red] {paper_id}")
        raise typer.Exit(code=1)

    console.print(f"{result.arxiv_id}: {_status(result.status)}")
    if result.error:
        console.print(f"[red]{_describe_error(result.error)}[/red]")


@app.command("list")
def list_(
    category: Optional[str] = typer.Option(None, "--category", "-c"),
    year: Optional[int] = typer.Option(None, "--year", "-y"),
    status_: Optional[PaperStatus] = typer.Option(None, "--status", "-s"),
    sort_by: str = typer.Option("created_at", "--sort-by", help="published_at, created_at or title."),
    sort_order: str = typer.Option("desc", "--order", help="asc or desc."),
    cursor: Optional[str] = typer.Option(None, "--cursor", help="Cursor printed by the previous page."),
    limit: int = typer.Option(20, "--limit", "-n", help="Page size (1-100)."),
):
    """
    List papers, one page at a time.
    """
    store = context.get_store()
    try:
        page = list_papers(
            store,
            category=category,
            year=year,
            status=status_,
            sort_by=sort_by,
            sort_order=sort_order,
            cursor=cursor,
            limit=limit,
        )
    except ValidationError as exc:
        console.print(f"[red]Invalid listing request:[/red] {exc.errors()[0]['msg']}")
        raise typer.Exit(code=1)

    table = Table(title="Papers")
    table.add_column("arXiv ID", style="cyan")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Published", style="dim")
    for p in page.papers:
        table.add_row(p.arxiv_id, p.title or "", _status(p.status), (p.published_at or "")[:10])
    console.print(table)

    if page.has_more:
        console.print(f"More results: --cursor {page.cursor}")


@app.command("related")
def related(
    paper_id: str = typer.Argument(..., help="Internal id or arXiv ID."),
    link_types: Optional[List[str]] = typer.Option(
        None,
        "--link",
        "-l",
        help="citation, cited_by, shared_method, shared_dataset or shared_author (repeatable).",
    ),
    limit: int = typer.Option(10, "--limit", "-n", help="Max number of papers (1-50)."),
):
    """
    Papers linked by citations or shared methods / datasets / authors.
    """
    store = context.get_store()
    try:
        rows = find_related(store, normalize_arxiv_id(paper_id), link_types=link_types or None, limit=limit)
    except ValidationError as exc:
        console.print(f"[red]Invalid request:[/red] {exc.errors()[0]['msg']}")
        raise typer.Exit(code=1)

    if not rows:
        console.print("[yellow]No related papers.[/yellow]")
        return

    table = Table(title=f"Related to {paper_id}")
    table.add_column("arXiv ID", style="cyan")
    table.add_column("Title")
    table.add_column("Link", style="magenta")
    table.add_column("Via")
    for r in rows:
        table.add_row(r.arxiv_id, r.title or "", r.link_type, r.link_detail or "")
    console.print(table)
