# paper_kb/arxiv/__init__.py

from .client import (
    ARXIV_ID_RE,
    ArxivClient,
    ArxivMetadata,
    CatalogError,
    is_arxiv_id,
    normalize_arxiv_id,
    strip_version,
)
from .oai_pmh import OaiPmhHarvester, category_to_set

__all__ = [
    "ARXIV_ID_RE",
    "ArxivClient",
    "ArxivMetadata",
    "CatalogError",
    "OaiPmhHarvester",
    "category_to_set",
    "is_arxiv_id",
    "normalize_arxiv_id",
    "strip_version",
]
