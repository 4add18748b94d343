# paper_kb/models/__init__.py

from .citation import Citation
from .extraction import EntityLink, EntityType, Extraction, ExtractionType
from .paper import Paper
from .section import Section
from .status import IllegalTransitionError, PaperStatus

__all__ = [
    "Citation",
    "EntityLink",
    "EntityType",
    "Extraction",
    "ExtractionType",
    "IllegalTransitionError",
    "Paper",
    "PaperStatus",
    "Section",
]
