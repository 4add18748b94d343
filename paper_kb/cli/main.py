# paper_kb/cli/main.py

from __future__ import annotations

from typing import Optional

import typer

from paper_kb.cli import context, graph_cli, ingest_cli, papers_cli, search_cli, worker_cli

app = typer.Typer(help="Ingest arXiv papers and search the resulting knowledge base.")

app.add_typer(ingest_cli.app, name="ingest")
app.add_typer(worker_cli.app, name="worker")
app.add_typer(search_cli.app, name="search")
app.add_typer(papers_cli.app, name="papers")
app.add_typer(graph_cli.app, name="graph")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Override PAPERKB_LOG_LEVEL for this run.",
    ),
):
    context.configure_logging(log_level)


if __name__ == "__main__":
    app()
