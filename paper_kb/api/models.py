# paper_kb/api/models.py

from __future__ import annotations

import re
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from paper_kb.models import ExtractionType, PaperStatus


_ARXIV_ID_RE = re.compile(r"^\d{4}\.\d{4,5}(v\d+)?$")
_VERSION_RE = re.compile(r"v\d+$")

LinkType = Literal["citation", "cited_by", "shared_method", "shared_dataset", "shared_author"]
LINK_TYPES: List[str] = ["citation", "cited_by", "shared_method", "shared_dataset", "shared_author"]

SortBy = Literal["published_at", "created_at", "title"]
SortOrder = Literal["asc", "desc"]


def validate_arxiv_id(value: str) -> str:
    """Accept YYMM.NNNN[N] with an optional version suffix; return it version-less."""
    if not isinstance(value, str) or not _ARXIV_ID_RE.match(value):
        raise ValueError(f"Invalid arxiv ID format (e.g. 2401.15884): {value!r}")
    return _VERSION_RE.sub("", value)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class IngestRequest(BaseModel):
    arxiv_id: str = Field(..., description="arXiv ID, version suffix is stripped.")

    @field_validator("arxiv_id")
    @classmethod
    def _check_arxiv_id(cls, v: str) -> str:
        return validate_arxiv_id(v)


class BatchIngestRequest(BaseModel):
    arxiv_ids: Optional[List[str]] = Field(None, min_length=1, max_length=50)
    search_query: Optional[str] = Field(None, min_length=1, max_length=200)

    @field_validator("arxiv_ids")
    @classmethod
    def _check_arxiv_ids(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        return [validate_arxiv_id(x) for x in v]

    @model_validator(mode="after")
    def _require_one_input(self) -> "BatchIngestRequest":
        if not self.arxiv_ids and not self.search_query:
            raise ValueError("Either arxiv_ids or search_query must be provided")
        return self


class SearchPapersRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=500)
    category: Optional[str] = None
    year_from: Optional[int] = Field(None, ge=1990, le=2030)
    year_to: Optional[int] = Field(None, ge=1990, le=2030)
    limit: int = Field(10, ge=1, le=50)


class SearchExtractionsRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=500)
    type: Optional[ExtractionType] = None
    limit: int = Field(20, ge=1, le=50)


class GetPaperRequest(BaseModel):
    paper_id: str = Field(..., min_length=1, description="Internal id or arXiv ID.")


class ListPapersRequest(BaseModel):
    category: Optional[str] = None
    year: Optional[int] = Field(None, ge=1990, le=2030)
    status: Optional[PaperStatus] = None
    sort_by: SortBy = "created_at"
    sort_order: SortOrder = "desc"
    cursor: Optional[str] = None
    limit: int = Field(20, ge=1, le=100)


class FindRelatedRequest(BaseModel):
    paper_id: str = Field(..., min_length=1, description="Internal id or arXiv ID.")
    link_types: Optional[List[LinkType]] = None
    limit: int = Field(10, ge=1, le=50)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class IngestResult(BaseModel):
    status: str = Field(..., description="Status of the paper after the call.")
    paper_id: str
    message: Optional[str] = None


class BatchItemResult(BaseModel):
    arxiv_id: str
    status: str = Field(..., description="Paper status, or 'error' when submit raised.")
    paper_id: Optional[str] = None
    error: Optional[str] = None


class BatchIngestResult(BaseModel):
    results: List[BatchItemResult] = Field(default_factory=list)
    total: int = 0


class PaperSummary(BaseModel):
    """
    Basic metadata about a paper, as returned by listing and search.
    """
    id: str
    arxiv_id: str
    title: Optional[str] = None
    authors: List[str] = Field(default_factory=list)
    abstract: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    published_at: Optional[str] = None
    status: PaperStatus = PaperStatus.QUEUED
    error: Optional[str] = None
    created_at: Optional[str] = None
    ingested_at: Optional[str] = None


class PaperHit(PaperSummary):
    score: float = Field(..., description="Reciprocal Rank Fusion score.")


class ExtractionHit(BaseModel):
    id: str
    paper_id: str
    type: ExtractionType
    name: str
    detail: Optional[str] = None
    paper_title: Optional[str] = None
    arxiv_id: str


class PaperStatusResult(BaseModel):
    id: str
    arxiv_id: str
    status: PaperStatus
    error: Optional[str] = None
    created_at: Optional[str] = None
    ingested_at: Optional[str] = None


class PaperPage(BaseModel):
    papers: List[PaperSummary] = Field(default_factory=list)
    cursor: Optional[str] = Field(None, description="Pass back to fetch the next page.")
    has_more: bool = False


class RelatedPaper(BaseModel):
    paper_id: str
    arxiv_id: str
    title: Optional[str] = None
    link_type: LinkType
    link_detail: Optional[str] = Field(
        None,
        description="Shared entity name for shared_* links.",
    )


class SectionOut(BaseModel):
    id: str
    heading: str
    level: int
    content: str
    position: int


class ExtractionOut(BaseModel):
    id: str
    section_id: Optional[str] = None
    type: ExtractionType
    name: str
    detail: Optional[str] = None


class CitationOut(BaseModel):
    id: str
    target_paper_id: Optional[str] = None
    target_arxiv_id: Optional[str] = None
    target_doi: Optional[str] = None
    target_title: Optional[str] = None


class CitedByOut(CitationOut):
    source_paper_id: str
    source_title: Optional[str] = None
    source_arxiv_id: str


class RelatedByEntity(BaseModel):
    paper_id: str
    title: Optional[str] = None
    arxiv_id: str
    entity_type: str
    entity_name: str


class PaperDetail(BaseModel):
    paper: PaperSummary
    sections: List[SectionOut] = Field(default_factory=list)
    extractions: List[ExtractionOut] = Field(default_factory=list)
    citations: List[CitationOut] = Field(default_factory=list)
    cited_by: List[CitedByOut] = Field(default_factory=list)
    related_papers: List[RelatedByEntity] = Field(default_factory=list)
