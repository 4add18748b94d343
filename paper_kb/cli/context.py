# paper_kb/cli/context.py
"""
Wiring of the concrete collaborators used by the command line.

Commands go through these functions (never construct collaborators
themselves), so tests can monkeypatch them with fakes.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from paper_kb.arxiv.client import ArxivClient
from paper_kb.arxiv.oai_pmh import OaiPmhHarvester
from paper_kb.config.settings import Settings, get_settings
from paper_kb.ingest.pipeline import IngestionPipeline
from paper_kb.ingest.queue import InMemoryQueue
from paper_kb.llm.client import LLMClient
from paper_kb.nlp.knowledge_extraction import KnowledgeExtractor
from paper_kb.search.hybrid import HybridSearcher
from paper_kb.search.indexer import SectionIndexer
from paper_kb.search.vector_index import VectorIndex
from paper_kb.storage.blobs import BlobStore
from paper_kb.storage.database import PaperStore

logger = logging.getLogger(__name__)


class LazyEmbedder:
    """
    Defers loading the sentence-transformers model until the first
    embedding is requested; listing papers should not load torch weights.
    """

    def __init__(self) -> None:
        self._model = None

    def _get(self):
        if self._model is None:
            from paper_kb.nlp.embedding import get_embedding_model

            self._model = get_embedding_model()
        return self._model

    def encode_text(self, text: str) -> List[float]:
        return self._get().encode_text(text)

    def encode_texts(self, texts: Sequence[str]) -> List[List[float]]:
        return self._get().encode_texts(texts)


def configure_logging(level: Optional[str] = None) -> None:
    s = get_settings()
    logging.basicConfig(
        level=(level or s.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def get_store(settings: Optional[Settings] = None) -> PaperStore:
    s = settings or get_settings()
    return PaperStore(s.database_path)


def load_vector_index(settings: Optional[Settings] = None) -> VectorIndex:
    s = settings or get_settings()
    return VectorIndex.load(s.vector_index_path)


def build_pipeline(
    store: PaperStore,
    queue: Optional[InMemoryQueue] = None,
    settings: Optional[Settings] = None,
) -> IngestionPipeline:
    s = settings or get_settings()
    indexer = SectionIndexer(
        load_vector_index(s),
        LazyEmbedder(),
        max_chars=s.EMBEDDING_MAX_CHARS,
        snapshot_path=s.vector_index_path,
    )
    return IngestionPipeline(
        store=store,
        queue=queue if queue is not None else InMemoryQueue(),
        catalog=ArxivClient(s),
        blobs=BlobStore(s.raw_dir),
        extractor=KnowledgeExtractor(LLMClient(s), max_chars=s.EXTRACTION_MAX_CHARS),
        indexer=indexer,
        settings=s,
    )


def build_harvester(settings: Optional[Settings] = None) -> OaiPmhHarvester:
    return OaiPmhHarvester(settings or get_settings())


def build_searcher(store: PaperStore, settings: Optional[Settings] = None) -> HybridSearcher:
    s = settings or get_settings()
    return HybridSearcher(store, load_vector_index(s), LazyEmbedder(), rrf_k=s.RRF_K)
