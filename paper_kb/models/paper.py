# paper_kb/models/paper.py

from dataclasses import dataclass, field
from typing import List, Optional

from .status import PaperStatus


@dataclass
class Paper:
    id: str
    arxiv_id: str
    status: PaperStatus = PaperStatus.QUEUED

    title: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    abstract: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    published_at: Optional[str] = None  # ISO-8601, as reported by the catalog
    updated_at: Optional[str] = None

    error: Optional[str] = None
    created_at: Optional[str] = None
    ingested_at: Optional[str] = None

    @property
    def published_year(self) -> Optional[int]:
        if not self.published_at or len(self.published_at) < 4:
            return None
        try:
            return int(self.published_at[:4])
        except ValueError:
            return None
