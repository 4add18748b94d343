# paper_kb/ingest/sweep.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Protocol, Sequence

from paper_kb.config.settings import get_settings
from paper_kb.ingest.pipeline import ALREADY_EXISTS, IngestionPipeline

logger = logging.getLogger(__name__)


class Harvester(Protocol):
    def fetch_new_ids(self, categories: Sequence[str], from_date: str, until_date: str) -> List[str]: ...


@dataclass
class SweepStats:
    found: int = 0
    queued: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def run_sweep(
    pipeline: IngestionPipeline,
    harvester: Harvester,
    categories: Optional[Sequence[str]] = None,
    day: Optional[date] = None,
) -> SweepStats:
    """
    Submit every paper announced on `day` (default: yesterday) in the given
    categories (default: PAPERKB_ARXIV_CATEGORIES).

    Papers already in the store count as skipped; a failed submit is
    recorded in `errors` and does not stop the sweep.
    """
    if categories is None:
        categories = get_settings().arxiv_categories
    categories = [c for c in categories if c]

    stats = SweepStats()
    if not categories:
        logger.info("No arXiv categories configured; nothing to sweep")
        return stats

    day = day or (date.today() - timedelta(days=1))
    day_str = day.isoformat()
    logger.info("Sweeping %s for %s", ", ".join(categories), day_str)

    arxiv_ids = harvester.fetch_new_ids(categories, day_str, day_str)
    stats.found = len(arxiv_ids)

    for arxiv_id in arxiv_ids:
        try:
            result = pipeline.submit(arxiv_id)
        except Exception as exc:
            logger.error("Sweep: failed to submit %s: %s", arxiv_id, exc)
            stats.errors.append(f"{arxiv_id}: {exc}")
            continue
        if result.message == ALREADY_EXISTS:
            stats.skipped += 1
        else:
            stats.queued += 1

    logger.info(
        "Sweep done: found=%d queued=%d skipped=%d errors=%d",
        stats.found,
        stats.queued,
        stats.skipped,
        len(stats.errors),
    )
    return stats
