"""
Queue-driven ingestion pipeline.

    submit -> [metadata] -> [content] -> [extraction] -> [embedding] -> ready

Each stage handler deletes the rows it owns before writing them again, so a
redelivered message converges to the same state. `handle()` returns the
message for the next stage; the worker loop (see `ingest.queue`) enqueues it.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Callable, Dict, FrozenSet, List, Optional, Protocol, Sequence

from paper_kb.api.models import (
    BatchIngestRequest,
    BatchIngestResult,
    BatchItemResult,
    IngestRequest,
    IngestResult,
)
from paper_kb.arxiv.client import ArxivMetadata
from paper_kb.config.settings import Settings, get_settings
from paper_kb.ingest.queue import QueueMessage, Stage
from paper_kb.models import (
    Citation,
    EntityLink,
    EntityType,
    Extraction,
    ExtractionType,
    Paper,
    PaperStatus,
    Section,
)
from paper_kb.nlp.knowledge_extraction import ExtractedItem
from paper_kb.parsing.html_parser import ParsedContent, parse_html_content
from paper_kb.parsing.text_parser import extract_pdf_text, parse_plain_text
from paper_kb.storage.blobs import BlobStore
from paper_kb.storage.database import PaperStore

logger = logging.getLogger(__name__)

ALREADY_EXISTS = "Paper already exists"
CONTENT_UNAVAILABLE = "Failed to fetch paper content (HTML and PDF both failed)"

# Paper statuses under which a stage message is still current. Anything else
# means the message is stale (already processed, or the paper is terminal).
_STAGE_ACCEPTS: Dict[Stage, FrozenSet[PaperStatus]] = {
    Stage.METADATA: frozenset({PaperStatus.QUEUED, PaperStatus.METADATA}),
    Stage.CONTENT: frozenset({PaperStatus.METADATA, PaperStatus.PARSED}),
    Stage.EXTRACTION: frozenset({PaperStatus.PARSED, PaperStatus.EXTRACTED}),
    Stage.EMBEDDING: frozenset({PaperStatus.EXTRACTED}),
}

# Stage still to run for a paper left in a given status.
_RESUME_STAGE: Dict[PaperStatus, Stage] = {
    PaperStatus.QUEUED: Stage.METADATA,
    PaperStatus.METADATA: Stage.CONTENT,
    PaperStatus.PARSED: Stage.EXTRACTION,
    PaperStatus.EXTRACTED: Stage.EMBEDDING,
}

_LINKED_TYPES = {
    ExtractionType.METHOD: EntityType.METHOD,
    ExtractionType.DATASET: EntityType.DATASET,
}


class ContentUnavailableError(Exception):
    """Neither the HTML rendering nor the PDF of a paper could be used."""


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------


class Catalog(Protocol):
    def fetch_metadata(self, arxiv_id: str) -> ArxivMetadata: ...

    def fetch_html(self, arxiv_id: str) -> Optional[str]: ...

    def fetch_pdf(self, arxiv_id: str) -> Optional[bytes]: ...

    def search(self, query: str, max_results: int = 50) -> List[str]: ...


class Queue(Protocol):
    def send(self, message: QueueMessage) -> None: ...


class Extractor(Protocol):
    def extract_section(
        self, heading: str, content: str, section_id: Optional[str] = None
    ) -> List[ExtractedItem]: ...


class Indexer(Protocol):
    def index(self, paper_id: str, sections: Sequence[Section]) -> int: ...

    def remove(self, section_ids: Sequence[str]) -> int: ...


def new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class IngestionPipeline:
    def __init__(
        self,
        store: PaperStore,
        queue: Queue,
        catalog: Catalog,
        blobs: BlobStore,
        extractor: Extractor,
        indexer: Indexer,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.queue = queue
        self.catalog = catalog
        self.blobs = blobs
        self.extractor = extractor
        self.indexer = indexer
        self.settings = settings or get_settings()

        self._handlers: Dict[Stage, Callable[[Paper, QueueMessage], Optional[QueueMessage]]] = {
            Stage.METADATA: self._process_metadata,
            Stage.CONTENT: self._process_content,
            Stage.EXTRACTION: self._process_extraction,
            Stage.EMBEDDING: self._process_embedding,
        }

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def submit(self, arxiv_id: str) -> IngestResult:
        """
        Start ingesting a paper.

        Idempotent while the paper exists in any non-failed status. A failed
        paper is deleted and recreated under a new internal id.
        """
        req = IngestRequest(arxiv_id=arxiv_id)

        existing = self.store.find_paper_by_arxiv_id(req.arxiv_id)
        if existing is not None:
            if existing.status != PaperStatus.FAILED:
                return IngestResult(
                    status=existing.status.value,
                    paper_id=existing.id,
                    message=ALREADY_EXISTS,
                )
            logger.info("Re-ingesting failed paper %s (old id %s)", req.arxiv_id, existing.id)
            self._drop_section_vectors(existing.id)
            self.store.delete_paper(existing.id)

        paper_id = new_id()
        self.store.insert_paper(paper_id, req.arxiv_id)
        try:
            self.queue.send(QueueMessage(paper_id=paper_id, arxiv_id=req.arxiv_id, stage=Stage.METADATA))
        except Exception:
            self.store.delete_paper(paper_id)
            raise

        resolved = self.store.link_incoming_citations(paper_id, req.arxiv_id)
        if resolved:
            logger.info("Resolved %d existing citations to %s", resolved, req.arxiv_id)

        logger.info("Queued %s as %s", req.arxiv_id, paper_id)
        return IngestResult(status=PaperStatus.QUEUED.value, paper_id=paper_id)

    def batch_submit(
        self,
        arxiv_ids: Optional[Sequence[str]] = None,
        search_query: Optional[str] = None,
    ) -> BatchIngestResult:
        req = BatchIngestRequest(
            arxiv_ids=list(arxiv_ids) if arxiv_ids is not None else None,
            search_query=search_query,
        )
        cap = self.settings.BATCH_MAX_PAPERS

        ids: List[str] = []
        for candidate in req.arxiv_ids or []:
            if candidate not in ids:
                ids.append(candidate)
        if req.search_query:
            for candidate in self.catalog.search(req.search_query, max_results=cap):
                if candidate not in ids:
                    ids.append(candidate)
        ids = ids[:cap]

        results: List[BatchItemResult] = []
        for candidate in ids:
            try:
                result = self.submit(candidate)
            except Exception as exc:
                logger.warning("Batch submit failed for %s: %s", candidate, exc)
                results.append(BatchItemResult(arxiv_id=candidate, status="error", error=str(exc)))
                continue
            results.append(
                BatchItemResult(arxiv_id=candidate, status=result.status, paper_id=result.paper_id)
            )

        return BatchIngestResult(results=results, total=len(results))

    # ------------------------------------------------------------------
    # Stage dispatch
    # ------------------------------------------------------------------
    def handle(self, message: QueueMessage) -> Optional[QueueMessage]:
        """
        Run the stage named by `message`. Returns the next stage's message,
        or None when the paper is done or the message is stale.

        On failure the paper is marked failed with a JSON error payload and
        the exception propagates to the caller.
        """
        stage = Stage(message.stage)
        paper = self.store.get_paper_by_id(message.paper_id)
        if paper is None:
            logger.warning("[%s] paper %s no longer exists; skipping", stage.value, message.paper_id)
            return None
        if paper.status not in _STAGE_ACCEPTS[stage]:
            logger.info(
                "[%s] paper %s is %s; skipping stale message",
                stage.value,
                paper.arxiv_id,
                paper.status.value,
            )
            return None

        try:
            next_message = self._handlers[stage](paper, message)
        except Exception as exc:
            self._fail(paper, message, exc)
            raise

        logger.info("[%s] completed for %s", stage.value, paper.arxiv_id)
        return next_message

    def _fail(self, paper: Paper, message: QueueMessage, exc: Exception) -> None:
        payload = json.dumps(
            {
                "stage": Stage(message.stage).value,
                "name": type(exc).__name__,
                "message": str(exc),
                "attempt": message.attempt,
            }
        )
        logger.error("[%s] failed for %s: %s", Stage(message.stage).value, paper.arxiv_id, exc, exc_info=exc)
        try:
            self.store.mark_paper_failed(paper.id, payload)
        except Exception:
            logger.exception("Could not record failure for paper %s", paper.id)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def _process_metadata(self, paper: Paper, message: QueueMessage) -> QueueMessage:
        self.store.delete_author_links(paper.id)

        meta = self.catalog.fetch_metadata(paper.arxiv_id)
        self.store.update_paper_metadata(
            paper.id,
            title=meta.title,
            authors=meta.authors,
            abstract=meta.abstract,
            categories=meta.categories,
            published_at=meta.published_at,
            updated_at=meta.updated_at,
        )

        seen_authors = set()
        for author in meta.authors:
            key = " ".join(author.split()).casefold()
            if not key or key in seen_authors:
                continue
            seen_authors.add(key)
            self.store.insert_entity_link(
                EntityLink(id=new_id(), paper_id=paper.id, entity_type=EntityType.AUTHOR, entity_name=author)
            )

        return message.next(Stage.CONTENT)

    def _fetch_content(self, arxiv_id: str) -> Optional[ParsedContent]:
        html = self.catalog.fetch_html(arxiv_id)
        if html:
            self.blobs.put("html", arxiv_id, html)
            parsed = parse_html_content(html)
            if parsed.sections:
                return parsed
            logger.warning("HTML for %s produced no sections; trying PDF", arxiv_id)

        pdf = self.catalog.fetch_pdf(arxiv_id)
        if pdf:
            self.blobs.put("pdf", arxiv_id, pdf)
            try:
                text = extract_pdf_text(pdf)
            except Exception:
                logger.warning("Could not extract text from PDF of %s", arxiv_id, exc_info=True)
                return None
            parsed = parse_plain_text(text)
            if parsed.sections:
                return parsed
            logger.warning("PDF text for %s produced no sections", arxiv_id)

        return None

    def _process_content(self, paper: Paper, message: QueueMessage) -> QueueMessage:
        self._drop_section_vectors(paper.id)
        self.store.delete_sections(paper.id)
        self.store.delete_citations_by_source(paper.id)

        parsed = self._fetch_content(paper.arxiv_id)
        if parsed is None:
            raise ContentUnavailableError(CONTENT_UNAVAILABLE)

        for position, section in enumerate(parsed.sections):
            self.store.insert_section(
                new_id(), paper.id, section.heading, section.level, section.content, position
            )

        cited = 0
        for ref in parsed.references:
            if not ref.arxiv_id and not ref.doi:
                continue
            if ref.arxiv_id == paper.arxiv_id:
                continue
            target_id = self.store.find_paper_id_by_arxiv_id(ref.arxiv_id) if ref.arxiv_id else None
            self.store.insert_citation(
                Citation(
                    id=new_id(),
                    source_paper_id=paper.id,
                    target_paper_id=target_id,
                    target_arxiv_id=ref.arxiv_id,
                    target_doi=ref.doi,
                    target_title=ref.title,
                )
            )
            cited += 1

        self.store.update_paper_status(paper.id, PaperStatus.PARSED)
        logger.info("Parsed %s: %d sections, %d citations", paper.arxiv_id, len(parsed.sections), cited)
        return message.next(Stage.EXTRACTION)

    def _process_extraction(self, paper: Paper, message: QueueMessage) -> QueueMessage:
        self.store.delete_extractions(paper.id)
        self.store.delete_non_author_links(paper.id)

        sections = self.store.get_sections(paper.id, limit=self.settings.EXTRACTION_MAX_SECTIONS)
        linked = set()
        total = 0

        for section in sections:
            try:
                items = self.extractor.extract_section(section.heading, section.content, section.id)
            except Exception:
                logger.warning("Extraction failed for section %s of %s", section.id, paper.arxiv_id, exc_info=True)
                continue

            for item in items:
                self.store.insert_extraction(
                    Extraction(
                        id=new_id(),
                        paper_id=paper.id,
                        type=item.type,
                        name=item.name,
                        detail=item.detail,
                        section_id=section.id,
                    )
                )
                total += 1

                entity_type = _LINKED_TYPES.get(ExtractionType(item.type))
                if entity_type is not None and (entity_type, item.name) not in linked:
                    linked.add((entity_type, item.name))
                    self.store.insert_entity_link(
                        EntityLink(id=new_id(), paper_id=paper.id, entity_type=entity_type, entity_name=item.name)
                    )

        self.store.update_paper_status(paper.id, PaperStatus.EXTRACTED)
        logger.info("Extracted %d items from %d sections of %s", total, len(sections), paper.arxiv_id)
        return message.next(Stage.EMBEDDING)

    def _process_embedding(self, paper: Paper, message: QueueMessage) -> None:
        sections = self.store.get_sections(paper.id, limit=self.settings.EMBEDDING_MAX_SECTIONS)
        try:
            indexed = self.indexer.index(paper.id, sections)
        except Exception:
            # The embedding stage always ends ready.
            logger.warning("Indexing failed for %s", paper.arxiv_id, exc_info=True)
            indexed = 0
        self.store.mark_paper_ready(paper.id)
        logger.info("Paper %s ready (%d/%d sections embedded)", paper.arxiv_id, indexed, len(sections))
        return None

    def _drop_section_vectors(self, paper_id: str) -> None:
        section_ids = [s.id for s in self.store.get_sections(paper_id)]
        if not section_ids:
            return
        try:
            removed = self.indexer.remove(section_ids)
        except Exception:
            logger.warning("Could not remove section vectors of paper %s", paper_id, exc_info=True)
            return
        if removed:
            logger.info("Removed %d stale section vectors of paper %s", removed, paper_id)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------
    def resume_incomplete(self) -> int:
        """
        Enqueue the pending stage of every non-terminal paper.

        The queue is in-process, so work submitted by an earlier process is
        only visible through paper statuses. Returns the number of messages sent.
        """
        sent = 0
        for paper in self.store.iter_papers():
            stage = _RESUME_STAGE.get(paper.status)
            if stage is None:
                continue
            self.queue.send(QueueMessage(paper_id=paper.id, arxiv_id=paper.arxiv_id, stage=stage))
            sent += 1
        if sent:
            logger.info("Resumed %d incomplete papers", sent)
        return sent
