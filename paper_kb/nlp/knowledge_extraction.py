# paper_kb/nlp/knowledge_extraction.py

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from paper_kb.config.settings import get_settings
from paper_kb.llm.client import LLMResponse, extract_json_text
from paper_kb.models import ExtractionType

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt / response schema
# ---------------------------------------------------------------------------

# JSON key in the LLM answer -> stored extraction type
KEY_TO_TYPE: Dict[str, ExtractionType] = {
    "methods": ExtractionType.METHOD,
    "datasets": ExtractionType.DATASET,
    "baselines": ExtractionType.BASELINE,
    "metrics": ExtractionType.METRIC,
    "results": ExtractionType.RESULT,
    "contributions": ExtractionType.CONTRIBUTION,
    "limitations": ExtractionType.LIMITATION,
}

PROMPT_TEMPLATE = """Extract structured knowledge from this research paper section as JSON.

Section: {heading}
Content: {content}

Extract the following as JSON arrays with {{name, detail}} objects:
- methods: research methods or techniques used
- datasets: datasets mentioned
- baselines: baseline methods compared against
- metrics: evaluation metrics
- results: key numerical or qualitative results
- contributions: main contributions claimed
- limitations: limitations discussed

Return only valid JSON with these keys."""


class SupportsRun(Protocol):
    def run(self, prompt: str) -> LLMResponse: ...


@dataclass
class ExtractedItem:
    type: ExtractionType
    name: str
    detail: Optional[str] = None


def build_prompt(heading: str, content: str, max_chars: int) -> str:
    return PROMPT_TEMPLATE.format(heading=heading, content=content[:max_chars])


def parse_extraction_payload(payload: Any) -> List[ExtractedItem]:
    """
    Turn the decoded JSON answer into typed items.

    Unknown keys, non-list values, non-object items and items without a
    name are ignored.
    """
    if not isinstance(payload, dict):
        return []

    items: List[ExtractedItem] = []
    for key, ext_type in KEY_TO_TYPE.items():
        values = payload.get(key)
        if not isinstance(values, list):
            continue
        for value in values:
            if not isinstance(value, dict):
                continue
            name = value.get("name")
            if not isinstance(name, str) or not name.strip():
                continue
            detail = value.get("detail")
            if detail is not None and not isinstance(detail, str):
                detail = json.dumps(detail) if isinstance(detail, (dict, list)) else str(detail)
            items.append(ExtractedItem(type=ext_type, name=name.strip(), detail=detail or None))
    return items


class KnowledgeExtractor:
    """
    One LLM call per section -> list of ExtractedItem.

    Never raises: a failed call or an unparseable answer is logged and
    produces no items, so one bad section cannot fail a paper.
    """

    def __init__(self, llm: SupportsRun, max_chars: Optional[int] = None) -> None:
        self.llm = llm
        self.max_chars = max_chars if max_chars is not None else get_settings().EXTRACTION_MAX_CHARS

    def extract_section(self, heading: str, content: str, section_id: Optional[str] = None) -> List[ExtractedItem]:
        prompt = build_prompt(heading, content, self.max_chars)
        try:
            response = self.llm.run(prompt)
            payload = json.loads(extract_json_text(response.text) or "{}")
        except Exception:
            logger.warning("Knowledge extraction failed for section %s (%r)", section_id, heading, exc_info=True)
            return []

        items = parse_extraction_payload(payload)
        logger.debug("Extracted %d items from section %s", len(items), section_id)
        return items
