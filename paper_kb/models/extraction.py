# paper_kb/models/extraction.py

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ExtractionType(str, Enum):
    METHOD = "method"
    DATASET = "dataset"
    BASELINE = "baseline"
    METRIC = "metric"
    RESULT = "result"
    CONTRIBUTION = "contribution"
    LIMITATION = "limitation"


class EntityType(str, Enum):
    METHOD = "method"
    DATASET = "dataset"
    AUTHOR = "author"


@dataclass
class Extraction:
    """
    One structured item pulled out of a paper by the LLM.

    `section_id` points at the section the item was extracted from, if any.
    """

    id: str
    paper_id: str
    type: ExtractionType
    name: str
    detail: Optional[str] = None
    section_id: Optional[str] = None


@dataclass
class EntityLink:
    """
    (paper, entity type, entity name) fact. Two papers sharing the same
    (type, name) are related through that entity.
    """

    id: str
    paper_id: str
    entity_type: EntityType
    entity_name: str
