# paper_kb/models/citation.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class Citation:
    """
    Directed edge from a locally ingested paper to a cited work.

    The cited work does not have to be ingested: `target_paper_id` is only
    set when a paper with `target_arxiv_id` existed at parse time. The
    arXiv ID / DOI / title are kept for display either way.
    """

    id: str
    source_paper_id: str
    target_paper_id: Optional[str] = None
    target_arxiv_id: Optional[str] = None
    target_doi: Optional[str] = None
    target_title: Optional[str] = None
