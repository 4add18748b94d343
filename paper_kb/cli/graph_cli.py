# paper_kb/cli/graph_cli.py

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from paper_kb.cli import context
from paper_kb.graph.builder import build_full_graph
from paper_kb.graph.schema import NodeType
from paper_kb.graph.storage import save_graph

app = typer.Typer(help="Relationship graph utilities.")
console = Console()


@app.command("export")
def export(
    name: Optional[str] = typer.Option(None, "--name", help="Snapshot file name (default: timestamped)."),
    directory: Optional[Path] = typer.Option(None, "--dir", help="Output directory (default: DATA_DIR/graph)."),
):
    """
    Build the corpus graph (papers, citations, shared entities) and pickle it.
    """
    store = context.get_store()
    G = build_full_graph(store)
    path = save_graph(G, name=name, directory=directory)

    papers = sum(1 for _, d in G.nodes(data=True) if d.get("type") == NodeType.PAPER.value)
    entities = G.number_of_nodes() - papers
    console.print(
        f"[green]Saved graph[/green] with {papers} papers, {entities} entities and "
        f"{G.number_of_edges()} edges to [bold]{path}[/bold]"
    )
