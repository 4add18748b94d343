# paper_kb/arxiv/client.py

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

import feedparser
import requests

from paper_kb.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)


# New-style arXiv ids: YYMM.NNNN or YYMM.NNNNN, optional version suffix.
ARXIV_ID_RE = re.compile(r"^\d{4}\.\d{4,5}(v\d+)?$")

_VERSION_RE = re.compile(r"v\d+$")
_ABS_ID_RE = re.compile(r"arxiv\.org/abs/(\d{4}\.\d{4,5})")
_PREFIX_RE = re.compile(r"^(?:arxiv:|https?://(?:www\.)?(?:arxiv\.org|ar5iv\.labs\.arxiv\.org)/(?:abs|pdf|html)/)", re.I)
_WS_RE = re.compile(r"\s+")


class CatalogError(Exception):
    """
    Anything that goes wrong talking to the external catalog (arXiv).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


def is_arxiv_id(value: str) -> bool:
    return bool(ARXIV_ID_RE.match(value))


def strip_version(arxiv_id: str) -> str:
    return _VERSION_RE.sub("", arxiv_id)


def normalize_arxiv_id(raw: str) -> str:
    """
    Normalize user input to a bare, version-less arXiv id.

        "arXiv:2401.15884v2"                  -> "2401.15884"
        "https://arxiv.org/abs/2401.15884"    -> "2401.15884"
        "https://arxiv.org/pdf/2401.15884.pdf"-> "2401.15884"

    Input that does not look like an arXiv id is returned stripped but
    otherwise untouched, so validation can reject it with a useful message.
    """
    value = (raw or "").strip()
    value = _PREFIX_RE.sub("", value)
    if value.endswith(".pdf"):
        value = value[: -len(".pdf")]
    value = value.rstrip("/")
    if is_arxiv_id(value):
        return strip_version(value)
    return value


def _collapse(text: str) -> str:
    return _WS_RE.sub(" ", text or "").strip()


@dataclass
class ArxivMetadata:
    title: str
    authors: List[str] = field(default_factory=list)
    abstract: str = ""
    categories: List[str] = field(default_factory=list)
    published_at: Optional[str] = None
    updated_at: Optional[str] = None


class ArxivClient:
    """
    HTTP client for the arXiv Atom API plus the HTML / PDF renderings.

    Metadata and search failures raise CatalogError. Content fetches return
    None when the rendering is unavailable so the caller can fall back.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        s = settings or get_settings()
        self.api_url = s.ARXIV_API_URL
        self.html_url = s.ARXIV_HTML_URL.rstrip("/")
        self.pdf_url = s.ARXIV_PDF_URL.rstrip("/")
        self.timeout = s.HTTP_TIMEOUT
        self.session = session or requests.Session()

    # ------------------------------------------------------------------
    # Atom API
    # ------------------------------------------------------------------
    def _get_feed(self, params: dict) -> feedparser.FeedParserDict:
        try:
            resp = self.session.get(self.api_url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise CatalogError(f"Error contacting arXiv API at {self.api_url}: {e}", url=self.api_url) from e

        if resp.status_code != 200:
            raise CatalogError(
                f"arXiv API returned {resp.status_code}",
                status_code=resp.status_code,
                url=resp.url,
            )
        return feedparser.parse(resp.text)

    def fetch_metadata(self, arxiv_id: str) -> ArxivMetadata:
        feed = self._get_feed({"id_list": arxiv_id})

        # The API answers unknown ids with an "Error" pseudo-entry without a title.
        entries = [e for e in feed.entries if e.get("title") and e.get("title") != "Error"]
        if not entries:
            raise CatalogError(f"No entry found for arxiv ID {arxiv_id}", url=self.api_url)

        entry = entries[0]
        return ArxivMetadata(
            title=_collapse(entry.get("title", "")),
            authors=[a.get("name", "").strip() for a in entry.get("authors", []) if a.get("name")],
            abstract=_collapse(entry.get("summary", "")),
            categories=[t.get("term") for t in entry.get("tags", []) if t.get("term")],
            published_at=entry.get("published"),
            updated_at=entry.get("updated"),
        )

    def search(self, query: str, max_results: int = 50) -> List[str]:
        """
        Full-text catalog search; returns version-less ids in feed order, deduplicated.
        """
        feed = self._get_feed({"search_query": f"all:{query}", "max_results": max_results})

        ids: List[str] = []
        for entry in feed.entries:
            m = _ABS_ID_RE.search(entry.get("id", ""))
            if m and m.group(1) not in ids:
                ids.append(m.group(1))
        logger.info("arXiv search %r returned %d ids", query, len(ids))
        return ids

    # ------------------------------------------------------------------
    # Renderings
    # ------------------------------------------------------------------
    def fetch_html(self, arxiv_id: str) -> Optional[str]:
        url = f"{self.html_url}/{arxiv_id}"
        try:
            resp = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        except requests.exceptions.RequestException as e:
            logger.warning("HTML fetch failed for %s: %s", arxiv_id, e)
            return None

        if resp.status_code != 200:
            logger.info("No HTML rendering for %s (HTTP %s)", arxiv_id, resp.status_code)
            return None
        if "text/html" not in resp.headers.get("content-type", ""):
            logger.info("HTML rendering for %s has content type %r", arxiv_id, resp.headers.get("content-type"))
            return None
        return resp.text

    def fetch_pdf(self, arxiv_id: str) -> Optional[bytes]:
        url = f"{self.pdf_url}/{arxiv_id}"
        try:
            resp = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        except requests.exceptions.RequestException as e:
            logger.warning("PDF fetch failed for %s: %s", arxiv_id, e)
            return None

        if resp.status_code != 200:
            logger.info("No PDF for %s (HTTP %s)", arxiv_id, resp.status_code)
            return None
        return resp.content
