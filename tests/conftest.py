# tests/conftest.py

from __future__ import annotations

import hashlib
import os
import tempfile
from typing import Any, Dict, List, Optional

import pytest

# Settings are read once at import time; keep test runs out of ./data.
os.environ.setdefault("PAPERKB_DATA_DIR", tempfile.mkdtemp(prefix="paper_kb_tests_"))

from paper_kb.arxiv.client import ArxivMetadata, CatalogError  # noqa: E402
from paper_kb.config.settings import Settings  # noqa: E402
from paper_kb.ingest.pipeline import IngestionPipeline  # noqa: E402
from paper_kb.ingest.queue import InMemoryQueue  # noqa: E402
from paper_kb.llm.client import LLMResponse  # noqa: E402
from paper_kb.models import PaperStatus  # noqa: E402
from paper_kb.nlp.knowledge_extraction import KnowledgeExtractor  # noqa: E402
from paper_kb.search.indexer import SectionIndexer  # noqa: E402
from paper_kb.search.vector_index import VectorIndex  # noqa: E402
from paper_kb.storage.blobs import BlobStore  # noqa: E402
from paper_kb.storage.database import PaperStore  # noqa: E402


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeCatalog:
    """
    In-memory stand-in for ArxivClient.

    Unknown ids raise CatalogError on metadata, and have no HTML / PDF.
    """

    def __init__(self) -> None:
        self.metadata: Dict[str, ArxivMetadata] = {}
        self.html: Dict[str, str] = {}
        self.pdf: Dict[str, bytes] = {}
        self.search_results: Dict[str, List[str]] = {}
        self.metadata_calls: List[str] = []

    def add(
        self,
        arxiv_id: str,
        title: str = "A Paper",
        authors: Optional[List[str]] = None,
        abstract: str = "An abstract.",
        categories: Optional[List[str]] = None,
        published_at: str = "2024-01-28T00:00:00Z",
        html: Optional[str] = None,
    ) -> None:
        self.metadata[arxiv_id] = ArxivMetadata(
            title=title,
            authors=authors if authors is not None else ["Ada Lovelace"],
            abstract=abstract,
            categories=categories if categories is not None else ["cs.CL"],
            published_at=published_at,
            updated_at=published_at,
        )
        if html is not None:
            self.html[arxiv_id] = html

    def fetch_metadata(self, arxiv_id: str) -> ArxivMetadata:
        self.metadata_calls.append(arxiv_id)
        if arxiv_id not in self.metadata:
            raise CatalogError(f"No entry found for arxiv ID {arxiv_id}")
        return self.metadata[arxiv_id]

    def fetch_html(self, arxiv_id: str) -> Optional[str]:
        return self.html.get(arxiv_id)

    def fetch_pdf(self, arxiv_id: str) -> Optional[bytes]:
        return self.pdf.get(arxiv_id)

    def search(self, query: str, max_results: int = 50) -> List[str]:
        return list(self.search_results.get(query, []))[:max_results]


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        text: str = "",
        content: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
        url: str = "https://export.arxiv.org/api/query",
        json_data: Any = None,
    ) -> None:
        self.status_code = status_code
        self.text = text
        self.content = content
        self.headers = headers or {}
        self.url = url
        self._json = json_data

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


class FakeSession:
    """Replays queued responses (or raises queued exceptions) and records every call."""

    def __init__(self, responses: List[Any]) -> None:
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.headers: Dict[str, str] = {}

    def _next(self):
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, params=None, timeout=None, allow_redirects=True):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        return self._next()

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        return self._next()


class FakeLLM:
    """Returns a canned answer and records prompts."""

    def __init__(self, answer: str = "{}") -> None:
        self.answer = answer
        self.prompts: List[str] = []

    def run(self, prompt: str, system_prompt: Optional[str] = None) -> LLMResponse:
        self.prompts.append(prompt)
        return LLMResponse(text=self.answer, model="fake")


class FakeEmbedder:
    """
    Deterministic bag-of-words hashing embedder.

    Texts containing "FAIL" raise, to exercise per-section failures.
    """

    dimension = 32

    def __init__(self) -> None:
        self.calls = 0

    def encode_text(self, text: str) -> List[float]:
        self.calls += 1
        if "FAIL" in text:
            raise RuntimeError("embedding backend exploded")
        vec = [0.0] * self.dimension
        for token in text.lower().split():
            h = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16)
            vec[h % self.dimension] += 1.0
        return vec

    def encode_texts(self, texts):
        return [self.encode_text(t) for t in texts]


class RecordingIndex(VectorIndex):
    """VectorIndex that remembers how often `upsert` was called."""

    def __init__(self) -> None:
        super().__init__()
        self.upsert_calls = 0

    def upsert(self, records):
        self.upsert_calls += 1
        return super().upsert(records)


SAMPLE_HTML = """
<html><head><title>x</title><style>h1 { color: red }</style></head>
<body>
<h1>Introduction</h1>
<p>Retrieval-augmented generation grounds language models in external documents.</p>
<h2>Tiny</h2>
<p>short</p>
<h2>Method</h2>
<p>We propose RAPTOR, a recursive tree of summaries evaluated on QuALITY and NarrativeQA.</p>
<section id="bib" class="ltx_bibliography">
<ul>
<li>Lewis et al. Retrieval-augmented generation. arXiv:2005.11401v4</li>
<li>Some journal paper. doi:10.1000/xyz123.</li>
<li>A book without identifiers.</li>
</ul>
</section>
</body></html>
"""

EXTRACTION_ANSWER = """```json
{
  "methods": [{"name": "RAPTOR", "detail": "recursive summarization tree"}],
  "datasets": [{"name": "QuALITY", "detail": "long-document QA"}],
  "metrics": [{"name": "accuracy"}]
}
```"""


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def kb_settings(tmp_path) -> Settings:
    return Settings(DATA_DIR=tmp_path, QUEUE_MAX_ATTEMPTS=3, OAI_REQUEST_DELAY=0)


@pytest.fixture
def store(tmp_path) -> PaperStore:
    s = PaperStore(tmp_path / "test.sqlite3")
    yield s
    s.close()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM(EXTRACTION_ANSWER)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def vector_index() -> RecordingIndex:
    return RecordingIndex()


@pytest.fixture
def queue() -> InMemoryQueue:
    return InMemoryQueue()


@pytest.fixture
def pipeline(store, queue, catalog, llm, embedder, vector_index, tmp_path, kb_settings) -> IngestionPipeline:
    return IngestionPipeline(
        store=store,
        queue=queue,
        catalog=catalog,
        blobs=BlobStore(tmp_path / "raw"),
        extractor=KnowledgeExtractor(llm, max_chars=4000),
        indexer=SectionIndexer(vector_index, embedder),
        settings=kb_settings,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def add_ready_paper(
    store: PaperStore,
    paper_id: str,
    arxiv_id: str,
    title: str,
    abstract: str = "",
    authors: Optional[List[str]] = None,
    categories: Optional[List[str]] = None,
    published_at: Optional[str] = "2024-01-01T00:00:00Z",
) -> None:
    """Insert a paper and walk it through every status up to `ready`."""
    store.insert_paper(paper_id, arxiv_id)
    store.update_paper_metadata(
        paper_id,
        title=title,
        authors=authors or [],
        abstract=abstract,
        categories=categories if categories is not None else ["cs.CL"],
        published_at=published_at,
        updated_at=None,
    )
    store.update_paper_status(paper_id, PaperStatus.PARSED)
    store.update_paper_status(paper_id, PaperStatus.EXTRACTED)
    store.mark_paper_ready(paper_id)
