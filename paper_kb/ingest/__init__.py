# paper_kb/ingest/__init__.py

"""
Ingestion: submission, the staged pipeline, its queue / worker loop and
the scheduled discovery sweep.
"""

from .pipeline import ContentUnavailableError, IngestionPipeline
from .queue import InMemoryQueue, QueueMessage, QueueWorker, Stage, WorkerStats
from .sweep import SweepStats, run_sweep

__all__ = [
    "ContentUnavailableError",
    "InMemoryQueue",
    "IngestionPipeline",
    "QueueMessage",
    "QueueWorker",
    "Stage",
    "SweepStats",
    "WorkerStats",
    "run_sweep",
]
