# paper_kb/api/papers.py

from __future__ import annotations

from typing import Optional

from paper_kb.api.models import (
    CitationOut,
    CitedByOut,
    ExtractionOut,
    GetPaperRequest,
    ListPapersRequest,
    PaperDetail,
    PaperPage,
    PaperStatusResult,
    PaperSummary,
    RelatedByEntity,
    SectionOut,
)
from paper_kb.models import Paper, PaperStatus
from paper_kb.storage.database import PaperStore

RELATED_BY_ENTITY_LIMIT = 20


def paper_summary(paper: Paper) -> PaperSummary:
    return PaperSummary(
        id=paper.id,
        arxiv_id=paper.arxiv_id,
        title=paper.title,
        authors=paper.authors,
        abstract=paper.abstract,
        categories=paper.categories,
        published_at=paper.published_at,
        status=paper.status,
        error=paper.error,
        created_at=paper.created_at,
        ingested_at=paper.ingested_at,
    )


def get_paper(store: PaperStore, paper_id: str) -> Optional[PaperDetail]:
    """
    Everything known about one paper, looked up by internal id or arXiv ID.
    """
    req = GetPaperRequest(paper_id=paper_id)
    paper = store.get_paper(req.paper_id)
    if paper is None:
        return None

    sections = [
        SectionOut(id=s.id, heading=s.heading, level=s.level, content=s.content, position=s.position)
        for s in store.get_sections(paper.id)
    ]
    extractions = [
        ExtractionOut(id=e.id, section_id=e.section_id, type=e.type, name=e.name, detail=e.detail)
        for e in store.get_extractions(paper.id)
    ]
    citations = [
        CitationOut(
            id=c.id,
            target_paper_id=c.target_paper_id,
            target_arxiv_id=c.target_arxiv_id,
            target_doi=c.target_doi,
            target_title=c.target_title,
        )
        for c in store.get_citations_by_source(paper.id)
    ]
    cited_by = [
        CitedByOut(
            id=row.citation.id,
            source_paper_id=row.citation.source_paper_id,
            source_title=row.source_title,
            source_arxiv_id=row.source_arxiv_id,
            target_paper_id=row.citation.target_paper_id,
            target_arxiv_id=row.citation.target_arxiv_id,
            target_doi=row.citation.target_doi,
            target_title=row.citation.target_title,
        )
        for row in store.get_cited_by(paper.id)
    ]
    related = [
        RelatedByEntity(
            paper_id=row.paper_id,
            title=row.title,
            arxiv_id=row.arxiv_id,
            entity_type=row.entity_type.value,
            entity_name=row.entity_name,
        )
        for row in store.find_shared_entities(paper.id, limit=RELATED_BY_ENTITY_LIMIT)
    ]

    return PaperDetail(
        paper=paper_summary(paper),
        sections=sections,
        extractions=extractions,
        citations=citations,
        cited_by=cited_by,
        related_papers=related,
    )


def list_papers(
    store: PaperStore,
    category: Optional[str] = None,
    year: Optional[int] = None,
    status: Optional[PaperStatus] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    cursor: Optional[str] = None,
    limit: int = 20,
) -> PaperPage:
    req = ListPapersRequest(
        category=category,
        year=year,
        status=status,
        sort_by=sort_by,
        sort_order=sort_order,
        cursor=cursor,
        limit=limit,
    )
    papers, has_more = store.list_papers(
        category=req.category,
        year=req.year,
        status=req.status,
        sort_by=req.sort_by,
        sort_order=req.sort_order,
        cursor=req.cursor,
        limit=req.limit,
    )
    next_cursor = papers[-1].id if has_more and papers else None
    return PaperPage(papers=[paper_summary(p) for p in papers], cursor=next_cursor, has_more=has_more)


def get_status(store: PaperStore, paper_id: str) -> Optional[PaperStatusResult]:
    req = GetPaperRequest(paper_id=paper_id)
    paper = store.get_paper(req.paper_id)
    if paper is None:
        return None
    return PaperStatusResult(
        id=paper.id,
        arxiv_id=paper.arxiv_id,
        status=paper.status,
        error=paper.error,
        created_at=paper.created_at,
        ingested_at=paper.ingested_at,
    )
