# paper_kb/cli/worker_cli.py

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from paper_kb.cli import context
from paper_kb.ingest.pipeline import IngestionPipeline
from paper_kb.ingest.queue import InMemoryQueue, QueueWorker, WorkerStats

app = typer.Typer(help="Run ingestion stages.")
console = Console()


def drain(
    pipeline: IngestionPipeline,
    queue: InMemoryQueue,
    max_messages: Optional[int] = None,
) -> WorkerStats:
    """Process the queue to exhaustion and print a summary."""
    worker = QueueWorker(pipeline, queue)
    with console.status("[bold cyan]Processing ingestion stages...[/bold cyan]"):
        stats = worker.run_until_empty(max_messages=max_messages)

    console.print(
        f"processed [green]{stats.processed}[/green], retried [yellow]{stats.retried}[/yellow], "
        f"failed [red]{stats.failed}[/red], skipped {stats.skipped}"
    )
    for err in stats.errors:
        console.print(f"  [red]{escape(err)}[/red]")
    return stats


@app.command("run")
def run(
    max_messages: Optional[int] = typer.Option(
        None,
        "--max-messages",
        "-n",
        min=1,
        help="Stop after this many deliveries.",
    ),
):
    """
    Resume every paper that has not reached a terminal status and run its
    remaining stages.
    """
    store = context.get_store()
    queue = InMemoryQueue()
    pipeline = context.build_pipeline(store, queue)

    resumed = pipeline.resume_incomplete()
    if not resumed:
        console.print("[green]Nothing to do:[/green] no incomplete papers.")
        return

    console.print(f"Resuming {resumed} paper(s)")
    drain(pipeline, queue, max_messages=max_messages)
