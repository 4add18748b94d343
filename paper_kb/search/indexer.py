# paper_kb/search/indexer.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from paper_kb.models import Section
from paper_kb.search.vector_index import VectorIndex, VectorRecord

logger = logging.getLogger(__name__)


class SupportsEncode(Protocol):
    def encode_text(self, text: str) -> Sequence[float]: ...


class SupportsUpsert(Protocol):
    def upsert(self, records: Sequence[VectorRecord]) -> int: ...


def index_section_embeddings(
    vector_index: SupportsUpsert,
    embedder: SupportsEncode,
    paper_id: str,
    sections: Sequence[Section],
    max_chars: int = 8000,
) -> int:
    """
    Embed each section body (truncated to `max_chars`) and upsert the
    vectors in a single call, keyed by section id.

    A section whose embedding fails is logged and skipped. Nothing is
    upserted when no section produced a vector. A failed upsert is logged
    and counts as zero vectors written. Returns the number of vectors
    written.
    """
    records: List[VectorRecord] = []
    for section in sections:
        try:
            vector = embedder.encode_text(section.content[:max_chars])
        except Exception:
            logger.warning("Embedding failed for section %s of paper %s", section.id, paper_id, exc_info=True)
            continue

        records.append(
            VectorRecord(
                id=section.id,
                vector=list(vector),
                metadata={
                    "paper_id": paper_id,
                    "section_id": section.id,
                    "heading": section.heading,
                },
            )
        )

    if not records:
        logger.warning("No section embeddings produced for paper %s", paper_id)
        return 0

    try:
        vector_index.upsert(records)
    except Exception:
        logger.warning("Vector upsert failed for paper %s", paper_id, exc_info=True)
        return 0
    logger.info("Indexed %d/%d sections for paper %s", len(records), len(sections), paper_id)
    return len(records)


class SectionIndexer:
    """
    Binds a vector index and an embedder for the ingestion pipeline.

    When `snapshot_path` is set the index is saved after every successful
    upsert, so separate CLI invocations share one index file. A failed
    snapshot is logged; the in-memory index keeps the vectors.
    """

    def __init__(
        self,
        vector_index: VectorIndex,
        embedder: SupportsEncode,
        max_chars: int = 8000,
        snapshot_path: Optional[Path] = None,
    ) -> None:
        self.vector_index = vector_index
        self.embedder = embedder
        self.max_chars = max_chars
        self.snapshot_path = snapshot_path

    def index(self, paper_id: str, sections: Sequence[Section]) -> int:
        count = index_section_embeddings(
            self.vector_index, self.embedder, paper_id, sections, max_chars=self.max_chars
        )
        if count:
            self._snapshot()
        return count

    def remove(self, section_ids: Sequence[str]) -> int:
        """Drop the vectors of the given sections; returns how many existed."""
        removed = self.vector_index.delete(section_ids)
        if removed:
            self._snapshot()
        return removed

    def _snapshot(self) -> None:
        if self.snapshot_path is None:
            return
        try:
            self.vector_index.save(self.snapshot_path)
        except Exception:
            logger.warning("Could not save vector index snapshot to %s", self.snapshot_path, exc_info=True)
