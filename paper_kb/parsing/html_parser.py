from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional
import re


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


@dataclass
class ParsedSection:
    """
    One logical section of a paper's full text.

    Attributes
    ----------
    heading:
        Section title with markup stripped.
    level:
        1 for <h1>, 2 for <h2>, ... (always 1 for plain-text input).
    content:
        Sanitized body text of the section.
    position:
        0-based index among the *kept* sections, in document order.
    """

    heading: str
    level: int
    content: str
    position: int


@dataclass
class ParsedReference:
    arxiv_id: Optional[str]
    doi: Optional[str]
    title: str


@dataclass
class ParsedContent:
    sections: List[ParsedSection] = field(default_factory=list)
    references: List[ParsedReference] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Regexes
# ---------------------------------------------------------------------------

MIN_SECTION_CHARS = 20
MAX_REFERENCE_TITLE_CHARS = 300
FULL_TEXT_HEADING = "Full Text"

_HEADING_RE = re.compile(r"<(h[1-6])[^>]*>(.*?)</\1>", re.I | re.S)
_SCRIPT_RE = re.compile(r"<script.*?</script>", re.I | re.S)
_STYLE_RE = re.compile(r"<style.*?</style>", re.I | re.S)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_BODY_RE = re.compile(r"<body[^>]*>(.*?)</body>", re.I | re.S)

_REF_SECTION_RE = re.compile(
    r"<section[^>]*(?:id|class)=\"[^\"]*(?:bib|ref)[^\"]*\"[^>]*>(.*?)</section>",
    re.I | re.S,
)
_LI_RE = re.compile(r"<li[^>]*>(.*?)</li>", re.I | re.S)
_ARXIV_ID_RE = re.compile(r"(\d{4}\.\d{4,5})(v\d+)?")
_DOI_RE = re.compile(r"10\.\d{4,}/[^\s<>\"]+")

# Order matters: &amp; is decoded before the entities it could spell.
_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)


def _collapse(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def sanitize_html(fragment: str) -> str:
    """Drop script/style blocks and tags, decode common entities, collapse whitespace."""
    text = _SCRIPT_RE.sub("", fragment)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    for entity, replacement in _ENTITIES:
        text = text.replace(entity, replacement)
    return _collapse(text)


def _parse_references(html: str) -> List[ParsedReference]:
    m = _REF_SECTION_RE.search(html)
    if not m:
        return []

    refs: List[ParsedReference] = []
    for item in _LI_RE.findall(m.group(1)):
        text = _collapse(_TAG_RE.sub(" ", item))

        arxiv_match = _ARXIV_ID_RE.search(item)
        doi_match = _DOI_RE.search(item)
        doi = doi_match.group(0).rstrip(".,;)") if doi_match else None

        refs.append(
            ParsedReference(
                arxiv_id=arxiv_match.group(1) if arxiv_match else None,
                doi=doi or None,
                title=text[:MAX_REFERENCE_TITLE_CHARS],
            )
        )
    return refs


def parse_html_content(html: str) -> ParsedContent:
    """
    Split a structured HTML rendering of a paper into sections and references.

    Each <h1>..<h6> starts a section whose body runs from the end of that
    heading to the start of the next one (or the end of the document).
    Sections with 20 characters of text or less are dropped and positions
    are renumbered over the kept ones. If nothing survives, the whole
    <body> becomes a single "Full Text" section.
    """
    headings = list(_HEADING_RE.finditer(html))

    sections: List[ParsedSection] = []
    for i, m in enumerate(headings):
        start = m.end()
        end = headings[i + 1].start() if i + 1 < len(headings) else len(html)
        content = sanitize_html(html[start:end])
        if len(content) <= MIN_SECTION_CHARS:
            continue

        sections.append(
            ParsedSection(
                heading=_collapse(_TAG_RE.sub("", m.group(2))),
                level=int(m.group(1)[1]),
                content=content,
                position=len(sections),
            )
        )

    if not sections:
        body = _BODY_RE.search(html)
        text = sanitize_html(body.group(1) if body else html)
        if len(text) > MIN_SECTION_CHARS:
            sections.append(ParsedSection(heading=FULL_TEXT_HEADING, level=1, content=text, position=0))

    return ParsedContent(sections=sections, references=_parse_references(html))
