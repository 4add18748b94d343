"""
Hybrid paper retrieval.

Keyword ranks (FTS5 over papers, then over sections) and semantic ranks
(nearest section embeddings, mapped back to papers) are fused with
Reciprocal Rank Fusion:

    score(paper) = sum over sources of 1 / (k + rank)

with 0-based ranks and k = 60 by default.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from paper_kb.api.models import (
    ExtractionHit,
    PaperHit,
    SearchExtractionsRequest,
    SearchPapersRequest,
)
from paper_kb.config.settings import get_settings
from paper_kb.models import ExtractionType, Paper
from paper_kb.storage.database import PaperStore

logger = logging.getLogger(__name__)

RRF_K = 60


class SupportsQuery(Protocol):
    def query(self, vector: Sequence[float], top_k: int = 10) -> list: ...


class SupportsEncode(Protocol):
    def encode_text(self, text: str) -> Sequence[float]: ...


def rrf_merge(
    keyword_ranks: Mapping[str, int],
    vector_ranks: Mapping[str, int],
    k: int = RRF_K,
) -> Dict[str, float]:
    """
    Fuse two rank maps (id -> 0-based rank). Keys keep first-seen order:
    keyword ids first, then ids only known to the vector side.
    """
    combined: Dict[str, float] = {}
    for ranks in (keyword_ranks, vector_ranks):
        for paper_id, rank in ranks.items():
            combined[paper_id] = combined.get(paper_id, 0.0) + 1.0 / (k + rank)
    return combined


def _matches_filters(
    paper: Paper,
    category: Optional[str],
    year_from: Optional[int],
    year_to: Optional[int],
) -> bool:
    if category and not any(category in c for c in paper.categories):
        return False
    if year_from or year_to:
        year = paper.published_year
        if year is None:
            return False
        if year_from and year < year_from:
            return False
        if year_to and year > year_to:
            return False
    return True


class HybridSearcher:
    def __init__(
        self,
        store: PaperStore,
        vector_index: SupportsQuery,
        embedder: SupportsEncode,
        rrf_k: Optional[int] = None,
    ) -> None:
        self.store = store
        self.vector_index = vector_index
        self.embedder = embedder
        self.rrf_k = rrf_k if rrf_k is not None else get_settings().RRF_K

    # ------------------------------------------------------------------
    # Rank sources
    # ------------------------------------------------------------------
    def _keyword_ranks(self, query: str, pool: int, cache: Dict[str, Paper]) -> Dict[str, int]:
        ranks: Dict[str, int] = {}

        paper_rows = self.store.search_papers_fts(query, pool)
        for idx, paper in enumerate(paper_rows):
            ranks[paper.id] = idx
            cache[paper.id] = paper

        for idx, paper in enumerate(self.store.search_sections_fts(query, pool)):
            if paper.id not in ranks:
                ranks[paper.id] = len(paper_rows) + idx
                cache[paper.id] = paper

        return ranks

    def _vector_ranks(self, query: str, pool: int) -> Dict[str, int]:
        """Best (first) rank per owning paper; any failure means no vector results."""
        try:
            vector = self.embedder.encode_text(query)
            matches = self.vector_index.query(vector, top_k=pool)
        except Exception:
            logger.warning("Semantic search failed for %r; using keyword results only", query, exc_info=True)
            return {}

        ranks: Dict[str, int] = {}
        for idx, match in enumerate(matches):
            paper_id = (match.metadata or {}).get("paper_id") or match.id
            if paper_id not in ranks:
                ranks[paper_id] = idx
        return ranks

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def search_papers(
        self,
        query: str,
        category: Optional[str] = None,
        year_from: Optional[int] = None,
        year_to: Optional[int] = None,
        limit: int = 10,
    ) -> List[PaperHit]:
        req = SearchPapersRequest(
            query=query, category=category, year_from=year_from, year_to=year_to, limit=limit
        )
        pool = req.limit * 2

        cache: Dict[str, Paper] = {}
        keyword_ranks = self._keyword_ranks(req.query, pool, cache)
        vector_ranks = self._vector_ranks(req.query, pool)

        scores = rrf_merge(keyword_ranks, vector_ranks, k=self.rrf_k)

        missing = [pid for pid in scores if pid not in cache]
        if missing:
            # Restricted to ready papers, so stale vectors never surface.
            for paper in self.store.fetch_papers_by_ids(missing):
                cache[paper.id] = paper

        hits: List[PaperHit] = []
        for paper_id, score in sorted(scores.items(), key=lambda kv: kv[1], reverse=True):
            paper = cache.get(paper_id)
            if paper is None:
                continue
            if not _matches_filters(paper, req.category, req.year_from, req.year_to):
                continue
            hits.append(
                PaperHit(
                    id=paper.id,
                    arxiv_id=paper.arxiv_id,
                    title=paper.title,
                    authors=paper.authors,
                    abstract=paper.abstract,
                    categories=paper.categories,
                    published_at=paper.published_at,
                    status=paper.status,
                    created_at=paper.created_at,
                    ingested_at=paper.ingested_at,
                    score=score,
                )
            )
            if len(hits) >= req.limit:
                break

        logger.info(
            "search_papers %r: %d keyword, %d vector, %d returned",
            req.query,
            len(keyword_ranks),
            len(vector_ranks),
            len(hits),
        )
        return hits

    def search_extractions(
        self,
        query: str,
        type: Optional[ExtractionType] = None,
        limit: int = 20,
    ) -> List[ExtractionHit]:
        req = SearchExtractionsRequest(query=query, type=type, limit=limit)
        rows = self.store.search_extractions_fts(req.query, req.type, req.limit)
        return [
            ExtractionHit(
                id=row.extraction.id,
                paper_id=row.extraction.paper_id,
                type=row.extraction.type,
                name=row.extraction.name,
                detail=row.extraction.detail,
                paper_title=row.paper_title,
                arxiv_id=row.arxiv_id,
            )
            for row in rows
        ]
