"""
Line-based section splitter for text extracted from PDFs.

PDF text has no structural markup, so section boundaries are guessed from
short lines that look like headings ("1. Introduction", "A. Proofs",
"References", ...).
"""

from __future__ import annotations

import io
import logging
import re
from typing import List

from pypdf import PdfReader

from paper_kb.parsing.html_parser import MIN_SECTION_CHARS, ParsedContent, ParsedSection

logger = logging.getLogger(__name__)

MAX_HEADING_CHARS = 100
INITIAL_HEADING = "Abstract"

_HEADING_RE = re.compile(
    r"^(\d+\.?\s+|[A-Z]\.\s+|Abstract|Introduction|Conclusion|References|Acknowledgments)"
)


def extract_pdf_text(pdf_bytes: bytes) -> str:
    """Text of every page, pages joined by newlines."""
    reader = PdfReader(io.BytesIO(pdf_bytes))
    pages: List[str] = []
    for page in reader.pages:
        pages.append(page.extract_text() or "")
    logger.debug("Extracted text from %d PDF pages", len(pages))
    return "\n".join(pages)


def parse_plain_text(text: str) -> ParsedContent:
    sections: List[ParsedSection] = []

    heading = INITIAL_HEADING
    lines: List[str] = []

    def flush() -> None:
        content = " ".join(lines).strip()
        if len(content) > MIN_SECTION_CHARS:
            sections.append(
                ParsedSection(heading=heading, level=1, content=content, position=len(sections))
            )

    for raw in text.split("\n"):
        line = raw.strip()
        if _HEADING_RE.match(line) and len(line) < MAX_HEADING_CHARS:
            flush()
            heading = line
            lines = []
        elif line:
            lines.append(line)

    flush()
    return ParsedContent(sections=sections, references=[])
