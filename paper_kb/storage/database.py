"""
SQLite-backed relational store for papers and everything derived from them.

Tables
------
papers        one row per ingestion attempt, unique on arxiv_id
sections      ordered full-text sections of a paper
extractions   typed items extracted by the LLM
citations     outgoing references (target may not be ingested)
entity_links  (paper, method|dataset|author, name) facts

Keyword search uses FTS5 external-content tables kept in sync by triggers:
papers_fts (title, abstract), sections_fts (heading, content) and
extractions_fts (name, detail).

All child rows belong to their paper and are removed with it.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

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
from paper_kb.models.status import IllegalTransitionError

logger = logging.getLogger(__name__)

_FTS_TOKEN_RE = re.compile(r"\w+", re.UNICODE)

SORTABLE_COLUMNS = ("published_at", "created_at", "title")


class PaperNotFoundError(LookupError):
    """Raised when an operation targets a paper id that is not in the store."""

    def __init__(self, paper_id: str) -> None:
        super().__init__(f"Paper not found: {paper_id}")
        self.paper_id = paper_id


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def fts_query(text: str) -> str:
    """
    Turn free user text into a safe FTS5 MATCH expression.

    Every word token is quoted, so operators / punctuation in the input can
    never produce an FTS5 syntax error. Tokens are implicitly AND-ed.
    Returns an empty string if the text has no word tokens.
    """
    tokens = _FTS_TOKEN_RE.findall(text or "")
    return " ".join(f'"{t}"' for t in tokens)


@dataclass
class CitedByRow:
    citation: Citation
    source_title: Optional[str]
    source_arxiv_id: str


@dataclass
class SharedEntityRow:
    paper_id: str
    title: Optional[str]
    arxiv_id: str
    entity_type: EntityType
    entity_name: str


@dataclass
class ExtractionSearchRow:
    extraction: Extraction
    paper_title: Optional[str]
    arxiv_id: str


_SCHEMA = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS papers (
    seq INTEGER PRIMARY KEY,
    id TEXT NOT NULL UNIQUE,
    arxiv_id TEXT NOT NULL UNIQUE,
    title TEXT,
    authors TEXT,
    abstract TEXT,
    categories TEXT,
    published_at TEXT,
    updated_at TEXT,
    status TEXT NOT NULL DEFAULT 'queued'
        CHECK (status IN ('queued', 'metadata', 'parsed', 'extracted', 'ready', 'failed')),
    error TEXT,
    created_at TEXT NOT NULL,
    ingested_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_papers_status ON papers(status);
CREATE INDEX IF NOT EXISTS idx_papers_published_at ON papers(published_at);

CREATE TABLE IF NOT EXISTS sections (
    seq INTEGER PRIMARY KEY,
    id TEXT NOT NULL UNIQUE,
    paper_id TEXT NOT NULL REFERENCES papers(id) ON DELETE CASCADE,
    heading TEXT NOT NULL,
    level INTEGER NOT NULL DEFAULT 1,
    content TEXT NOT NULL,
    position INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sections_paper ON sections(paper_id, position);

CREATE TABLE IF NOT EXISTS extractions (
    seq INTEGER PRIMARY KEY,
    id TEXT NOT NULL UNIQUE,
    paper_id TEXT NOT NULL REFERENCES papers(id) ON DELETE CASCADE,
    section_id TEXT REFERENCES sections(id) ON DELETE SET NULL,
    type TEXT NOT NULL
        CHECK (type IN ('method', 'dataset', 'baseline', 'metric', 'result', 'contribution', 'limitation')),
    name TEXT NOT NULL,
    detail TEXT
);

CREATE INDEX IF NOT EXISTS idx_extractions_paper ON extractions(paper_id);
CREATE INDEX IF NOT EXISTS idx_extractions_type ON extractions(type);

CREATE TABLE IF NOT EXISTS citations (
    id TEXT PRIMARY KEY,
    source_paper_id TEXT NOT NULL REFERENCES papers(id) ON DELETE CASCADE,
    target_paper_id TEXT REFERENCES papers(id) ON DELETE SET NULL,
    target_arxiv_id TEXT,
    target_doi TEXT,
    target_title TEXT
);

CREATE INDEX IF NOT EXISTS idx_citations_source ON citations(source_paper_id);
CREATE INDEX IF NOT EXISTS idx_citations_target ON citations(target_paper_id);
CREATE INDEX IF NOT EXISTS idx_citations_target_arxiv ON citations(target_arxiv_id);

CREATE TABLE IF NOT EXISTS entity_links (
    id TEXT PRIMARY KEY,
    paper_id TEXT NOT NULL REFERENCES papers(id) ON DELETE CASCADE,
    entity_type TEXT NOT NULL CHECK (entity_type IN ('method', 'dataset', 'author')),
    entity_name TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_entity_links_paper ON entity_links(paper_id);
CREATE INDEX IF NOT EXISTS idx_entity_links_entity ON entity_links(entity_type, entity_name);

CREATE VIRTUAL TABLE IF NOT EXISTS papers_fts USING fts5(
    title, abstract, content='papers', content_rowid='seq'
);

CREATE TRIGGER IF NOT EXISTS papers_ai AFTER INSERT ON papers BEGIN
    INSERT INTO papers_fts(rowid, title, abstract) VALUES (new.seq, new.title, new.abstract);
END;
CREATE TRIGGER IF NOT EXISTS papers_ad AFTER DELETE ON papers BEGIN
    INSERT INTO papers_fts(papers_fts, rowid, title, abstract)
    VALUES ('delete', old.seq, old.title, old.abstract);
END;
CREATE TRIGGER IF NOT EXISTS papers_au AFTER UPDATE OF title, abstract ON papers BEGIN
    INSERT INTO papers_fts(papers_fts, rowid, title, abstract)
    VALUES ('delete', old.seq, old.title, old.abstract);
    INSERT INTO papers_fts(rowid, title, abstract) VALUES (new.seq, new.title, new.abstract);
END;

CREATE VIRTUAL TABLE IF NOT EXISTS sections_fts USING fts5(
    heading, content, content='sections', content_rowid='seq'
);

CREATE TRIGGER IF NOT EXISTS sections_ai AFTER INSERT ON sections BEGIN
    INSERT INTO sections_fts(rowid, heading, content) VALUES (new.seq, new.heading, new.content);
END;
CREATE TRIGGER IF NOT EXISTS sections_ad AFTER DELETE ON sections BEGIN
    INSERT INTO sections_fts(sections_fts, rowid, heading, content)
    VALUES ('delete', old.seq, old.heading, old.content);
END;

CREATE VIRTUAL TABLE IF NOT EXISTS extractions_fts USING fts5(
    name, detail, content='extractions', content_rowid='seq'
);

CREATE TRIGGER IF NOT EXISTS extractions_ai AFTER INSERT ON extractions BEGIN
    INSERT INTO extractions_fts(rowid, name, detail) VALUES (new.seq, new.name, new.detail);
END;
CREATE TRIGGER IF NOT EXISTS extractions_ad AFTER DELETE ON extractions BEGIN
    INSERT INTO extractions_fts(extractions_fts, rowid, name, detail)
    VALUES ('delete', old.seq, old.name, old.detail);
END;
"""


def _row_to_paper(row: sqlite3.Row) -> Paper:
    return Paper(
        id=row["id"],
        arxiv_id=row["arxiv_id"],
        status=PaperStatus(row["status"]),
        title=row["title"],
        authors=json.loads(row["authors"]) if row["authors"] else [],
        abstract=row["abstract"],
        categories=json.loads(row["categories"]) if row["categories"] else [],
        published_at=row["published_at"],
        updated_at=row["updated_at"],
        error=row["error"],
        created_at=row["created_at"],
        ingested_at=row["ingested_at"],
    )


def _row_to_section(row: sqlite3.Row) -> Section:
    return Section(
        id=row["id"],
        paper_id=row["paper_id"],
        heading=row["heading"],
        level=row["level"],
        content=row["content"],
        position=row["position"],
    )


def _row_to_extraction(row: sqlite3.Row) -> Extraction:
    return Extraction(
        id=row["id"],
        paper_id=row["paper_id"],
        type=ExtractionType(row["type"]),
        name=row["name"],
        detail=row["detail"],
        section_id=row["section_id"],
    )


def _row_to_citation(row: sqlite3.Row) -> Citation:
    return Citation(
        id=row["id"],
        source_paper_id=row["source_paper_id"],
        target_paper_id=row["target_paper_id"],
        target_arxiv_id=row["target_arxiv_id"],
        target_doi=row["target_doi"],
        target_title=row["target_title"],
    )


def _row_to_entity_link(row: sqlite3.Row) -> EntityLink:
    return EntityLink(
        id=row["id"],
        paper_id=row["paper_id"],
        entity_type=EntityType(row["entity_type"]),
        entity_name=row["entity_name"],
    )


class PaperStore:
    """
    Thin data-access layer over a single SQLite connection.

    Every mutating method commits its own transaction. Status changes go
    through `PaperStatus.transition`, so the store refuses to write a
    transition the ingestion state machine does not allow.
    """

    def __init__(
        self,
        db_path: Union[str, Path] = ":memory:",
        *,
        check_same_thread: bool = True,
    ) -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=check_same_thread)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.create_schema()

    def close(self) -> None:
        self.conn.close()

    def create_schema(self) -> None:
        self.conn.executescript(_SCHEMA)

    # ------------------------------------------------------------------
    # Papers
    # ------------------------------------------------------------------
    def insert_paper(self, paper_id: str, arxiv_id: str) -> Paper:
        now = utc_now()
        with self.conn:
            self.conn.execute(
                "INSERT INTO papers (id, arxiv_id, status, created_at) VALUES (?, ?, ?, ?)",
                (paper_id, arxiv_id, PaperStatus.QUEUED.value, now),
            )
        return Paper(id=paper_id, arxiv_id=arxiv_id, status=PaperStatus.QUEUED, created_at=now)

    def delete_paper(self, paper_id: str) -> None:
        with self.conn:
            # Children first so the FTS delete triggers see every row.
            self.conn.execute("DELETE FROM extractions WHERE paper_id = ?", (paper_id,))
            self.conn.execute("DELETE FROM sections WHERE paper_id = ?", (paper_id,))
            self.conn.execute("DELETE FROM citations WHERE source_paper_id = ?", (paper_id,))
            self.conn.execute("DELETE FROM entity_links WHERE paper_id = ?", (paper_id,))
            self.conn.execute("DELETE FROM papers WHERE id = ?", (paper_id,))

    def find_paper_by_arxiv_id(self, arxiv_id: str) -> Optional[Paper]:
        row = self.conn.execute(
            "SELECT * FROM papers WHERE arxiv_id = ?", (arxiv_id,)
        ).fetchone()
        return _row_to_paper(row) if row else None

    def find_paper_id_by_arxiv_id(self, arxiv_id: str) -> Optional[str]:
        row = self.conn.execute(
            "SELECT id FROM papers WHERE arxiv_id = ?", (arxiv_id,)
        ).fetchone()
        return row["id"] if row else None

    def get_paper_by_id(self, paper_id: str) -> Optional[Paper]:
        row = self.conn.execute("SELECT * FROM papers WHERE id = ?", (paper_id,)).fetchone()
        return _row_to_paper(row) if row else None

    def get_paper(self, id_or_arxiv_id: str) -> Optional[Paper]:
        """Resolve a paper by internal id or by external arXiv id."""
        row = self.conn.execute(
            "SELECT * FROM papers WHERE id = ? OR arxiv_id = ?",
            (id_or_arxiv_id, id_or_arxiv_id),
        ).fetchone()
        return _row_to_paper(row) if row else None

    def _require_paper(self, paper_id: str) -> Paper:
        paper = self.get_paper_by_id(paper_id)
        if paper is None:
            raise PaperNotFoundError(paper_id)
        return paper

    def update_paper_metadata(
        self,
        paper_id: str,
        *,
        title: str,
        authors: Sequence[str],
        abstract: str,
        categories: Sequence[str],
        published_at: Optional[str],
        updated_at: Optional[str],
    ) -> None:
        paper = self._require_paper(paper_id)
        status = paper.status.transition(PaperStatus.METADATA)
        with self.conn:
            self.conn.execute(
                """
                UPDATE papers
                SET title = ?, authors = ?, abstract = ?, categories = ?,
                    published_at = ?, updated_at = ?, status = ?
                WHERE id = ?
                """,
                (
                    title,
                    json.dumps(list(authors)),
                    abstract,
                    json.dumps(list(categories)),
                    published_at,
                    updated_at,
                    status.value,
                    paper_id,
                ),
            )

    def update_paper_status(self, paper_id: str, status: PaperStatus) -> None:
        paper = self._require_paper(paper_id)
        paper.status.transition(status)
        with self.conn:
            self.conn.execute("UPDATE papers SET status = ? WHERE id = ?", (status.value, paper_id))

    def mark_paper_ready(self, paper_id: str) -> None:
        paper = self._require_paper(paper_id)
        paper.status.transition(PaperStatus.READY)
        with self.conn:
            self.conn.execute(
                "UPDATE papers SET status = ?, ingested_at = ? WHERE id = ?",
                (PaperStatus.READY.value, utc_now(), paper_id),
            )

    def mark_paper_failed(self, paper_id: str, error: str) -> None:
        """
        Record `error` and move the paper to `failed`.

        The error text is always written; the status is left alone if the
        paper is already terminal.
        """
        paper = self._require_paper(paper_id)
        try:
            status = paper.status.transition(PaperStatus.FAILED)
        except IllegalTransitionError:
            logger.warning(
                "Paper %s is already %s; recording error without status change",
                paper_id,
                paper.status.value,
            )
            status = paper.status
        with self.conn:
            self.conn.execute(
                "UPDATE papers SET status = ?, error = ? WHERE id = ?",
                (status.value, error, paper_id),
            )

    def fetch_papers_by_ids(self, ids: Sequence[str]) -> List[Paper]:
        """Batch lookup restricted to `ready` papers."""
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        rows = self.conn.execute(
            f"SELECT * FROM papers WHERE id IN ({placeholders}) AND status = ?",
            (*ids, PaperStatus.READY.value),
        ).fetchall()
        return [_row_to_paper(r) for r in rows]

    def iter_papers(self) -> List[Paper]:
        rows = self.conn.execute("SELECT * FROM papers ORDER BY created_at, id").fetchall()
        return [_row_to_paper(r) for r in rows]

    def list_papers(
        self,
        *,
        category: Optional[str] = None,
        year: Optional[int] = None,
        status: Optional[PaperStatus] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        cursor: Optional[str] = None,
        limit: int = 20,
    ) -> tuple[List[Paper], bool]:
        """
        Keyset-paginated listing. Returns (papers, has_more).

        `cursor` is the id of the last paper of the previous page.
        """
        if sort_by not in SORTABLE_COLUMNS:
            raise ValueError(f"Unsupported sort column: {sort_by!r}")
        if sort_order not in ("asc", "desc"):
            raise ValueError(f"Unsupported sort order: {sort_order!r}")

        conditions: List[str] = []
        params: List[Any] = []

        if category:
            conditions.append("categories LIKE '%\"' || ? || '\"%'")
            params.append(category)
        if year:
            conditions.append("published_at LIKE ? || '%'")
            params.append(str(year))
        if status:
            conditions.append("status = ?")
            params.append(status.value)
        if cursor:
            op = "<" if sort_order == "desc" else ">"
            conditions.append(
                f"({sort_by} {op} (SELECT {sort_by} FROM papers WHERE id = ?) "
                f"OR ({sort_by} = (SELECT {sort_by} FROM papers WHERE id = ?) AND id {op} ?))"
            )
            params.extend([cursor, cursor, cursor])

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        sql = (
            f"SELECT * FROM papers {where} "
            f"ORDER BY {sort_by} {sort_order}, id {sort_order} LIMIT ?"
        )
        params.append(limit + 1)

        rows = self.conn.execute(sql, params).fetchall()
        papers = [_row_to_paper(r) for r in rows]
        has_more = len(papers) > limit
        return papers[:limit], has_more

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------
    def insert_section(
        self,
        section_id: str,
        paper_id: str,
        heading: str,
        level: int,
        content: str,
        position: int,
    ) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO sections (id, paper_id, heading, level, content, position) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (section_id, paper_id, heading, level, content, position),
            )

    def delete_sections(self, paper_id: str) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM sections WHERE paper_id = ?", (paper_id,))

    def get_sections(self, paper_id: str, limit: Optional[int] = None) -> List[Section]:
        sql = "SELECT * FROM sections WHERE paper_id = ? ORDER BY position"
        params: List[Any] = [paper_id]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [_row_to_section(r) for r in self.conn.execute(sql, params).fetchall()]

    # ------------------------------------------------------------------
    # Citations
    # ------------------------------------------------------------------
    def insert_citation(self, citation: Citation) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO citations "
                "(id, source_paper_id, target_paper_id, target_arxiv_id, target_doi, target_title) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    citation.id,
                    citation.source_paper_id,
                    citation.target_paper_id,
                    citation.target_arxiv_id,
                    citation.target_doi,
                    citation.target_title,
                ),
            )

    def delete_citations_by_source(self, paper_id: str) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM citations WHERE source_paper_id = ?", (paper_id,))

    def link_incoming_citations(self, paper_id: str, arxiv_id: str) -> int:
        """
        Point dangling citations of `arxiv_id` at a freshly created paper.

        Returns the number of citations updated.
        """
        with self.conn:
            cur = self.conn.execute(
                "UPDATE citations SET target_paper_id = ? "
                "WHERE target_arxiv_id = ? AND target_paper_id IS NULL",
                (paper_id, arxiv_id),
            )
        return cur.rowcount

    def get_citations_by_source(self, paper_id: str) -> List[Citation]:
        rows = self.conn.execute(
            "SELECT * FROM citations WHERE source_paper_id = ? ORDER BY rowid", (paper_id,)
        ).fetchall()
        return [_row_to_citation(r) for r in rows]

    def get_cited_by(self, paper_id: str) -> List[CitedByRow]:
        rows = self.conn.execute(
            """
            SELECT c.*, p.title AS source_title, p.arxiv_id AS source_arxiv_id
            FROM citations c
            JOIN papers p ON p.id = c.source_paper_id
            WHERE c.target_paper_id = ?
            ORDER BY c.rowid
            """,
            (paper_id,),
        ).fetchall()
        return [
            CitedByRow(
                citation=_row_to_citation(r),
                source_title=r["source_title"],
                source_arxiv_id=r["source_arxiv_id"],
            )
            for r in rows
        ]

    def iter_citations(self) -> List[Citation]:
        rows = self.conn.execute("SELECT * FROM citations ORDER BY rowid").fetchall()
        return [_row_to_citation(r) for r in rows]

    # ------------------------------------------------------------------
    # Extractions
    # ------------------------------------------------------------------
    def insert_extraction(self, extraction: Extraction) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO extractions (id, paper_id, section_id, type, name, detail) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    extraction.id,
                    extraction.paper_id,
                    extraction.section_id,
                    ExtractionType(extraction.type).value,
                    extraction.name,
                    extraction.detail,
                ),
            )

    def delete_extractions(self, paper_id: str) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM extractions WHERE paper_id = ?", (paper_id,))

    def get_extractions(self, paper_id: str) -> List[Extraction]:
        rows = self.conn.execute(
            "SELECT * FROM extractions WHERE paper_id = ? ORDER BY type, name", (paper_id,)
        ).fetchall()
        return [_row_to_extraction(r) for r in rows]

    # ------------------------------------------------------------------
    # Entity links
    # ------------------------------------------------------------------
    def insert_entity_link(self, link: EntityLink) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO entity_links (id, paper_id, entity_type, entity_name) VALUES (?, ?, ?, ?)",
                (link.id, link.paper_id, EntityType(link.entity_type).value, link.entity_name),
            )

    def delete_author_links(self, paper_id: str) -> None:
        with self.conn:
            self.conn.execute(
                "DELETE FROM entity_links WHERE paper_id = ? AND entity_type = 'author'",
                (paper_id,),
            )

    def delete_non_author_links(self, paper_id: str) -> None:
        with self.conn:
            self.conn.execute(
                "DELETE FROM entity_links WHERE paper_id = ? AND entity_type IN ('method', 'dataset')",
                (paper_id,),
            )

    def get_entity_links(
        self, paper_id: str, entity_type: Optional[EntityType] = None
    ) -> List[EntityLink]:
        sql = "SELECT * FROM entity_links WHERE paper_id = ?"
        params: List[Any] = [paper_id]
        if entity_type is not None:
            sql += " AND entity_type = ?"
            params.append(EntityType(entity_type).value)
        sql += " ORDER BY rowid"
        return [_row_to_entity_link(r) for r in self.conn.execute(sql, params).fetchall()]

    def iter_entity_links(self) -> List[EntityLink]:
        rows = self.conn.execute("SELECT * FROM entity_links ORDER BY rowid").fetchall()
        return [_row_to_entity_link(r) for r in rows]

    def find_shared_entities(
        self,
        paper_id: str,
        entity_type: Optional[EntityType] = None,
        limit: Optional[int] = None,
    ) -> List[SharedEntityRow]:
        """
        Other papers linked to the same (entity_type, entity_name) as `paper_id`.
        """
        sql = """
            SELECT DISTINCT el2.paper_id, p.title, p.arxiv_id, el.entity_type, el.entity_name
            FROM entity_links el
            JOIN entity_links el2 ON el.entity_type = el2.entity_type
                AND el.entity_name = el2.entity_name
                AND el.paper_id != el2.paper_id
            JOIN papers p ON p.id = el2.paper_id
            WHERE el.paper_id = ?
        """
        params: List[Any] = [paper_id]
        if entity_type is not None:
            sql += " AND el.entity_type = ?"
            params.append(EntityType(entity_type).value)
        sql += " ORDER BY el.rowid, el2.rowid"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self.conn.execute(sql, params).fetchall()
        return [
            SharedEntityRow(
                paper_id=r["paper_id"],
                title=r["title"],
                arxiv_id=r["arxiv_id"],
                entity_type=EntityType(r["entity_type"]),
                entity_name=r["entity_name"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Keyword search
    # ------------------------------------------------------------------
    def search_papers_fts(self, query: str, limit: int) -> List[Paper]:
        """Title/abstract search over `ready` papers, best match first."""
        match = fts_query(query)
        if not match:
            return []
        rows = self.conn.execute(
            """
            SELECT p.*
            FROM papers_fts JOIN papers p ON p.seq = papers_fts.rowid
            WHERE papers_fts MATCH ? AND p.status = ?
            ORDER BY bm25(papers_fts) LIMIT ?
            """,
            (match, PaperStatus.READY.value, limit),
        ).fetchall()
        return [_row_to_paper(r) for r in rows]

    def search_sections_fts(self, query: str, limit: int) -> List[Paper]:
        """
        Section heading/content search over `ready` papers.

        Returns distinct owning papers, ordered by their best-matching section.
        """
        match = fts_query(query)
        if not match:
            return []
        cur = self.conn.execute(
            """
            SELECT p.*
            FROM sections_fts
            JOIN sections s ON s.seq = sections_fts.rowid
            JOIN papers p ON p.id = s.paper_id
            WHERE sections_fts MATCH ? AND p.status = ?
            ORDER BY bm25(sections_fts)
            """,
            (match, PaperStatus.READY.value),
        )
        papers: List[Paper] = []
        seen: set[str] = set()
        for row in cur:
            if row["id"] in seen:
                continue
            seen.add(row["id"])
            papers.append(_row_to_paper(row))
            if len(papers) >= limit:
                break
        return papers

    def search_extractions_fts(
        self,
        query: str,
        extraction_type: Optional[ExtractionType],
        limit: int,
    ) -> List[ExtractionSearchRow]:
        match = fts_query(query)
        if not match:
            return []
        type_value = ExtractionType(extraction_type).value if extraction_type else None
        rows = self.conn.execute(
            """
            SELECT e.*, p.title AS paper_title, p.arxiv_id AS arxiv_id
            FROM extractions_fts
            JOIN extractions e ON e.seq = extractions_fts.rowid
            JOIN papers p ON p.id = e.paper_id
            WHERE extractions_fts MATCH ?
              AND (? IS NULL OR e.type = ?)
            ORDER BY bm25(extractions_fts) LIMIT ?
            """,
            (match, type_value, type_value, limit),
        ).fetchall()
        return [
            ExtractionSearchRow(
                extraction=_row_to_extraction(r),
                paper_title=r["paper_title"],
                arxiv_id=r["arxiv_id"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------
    def count_by_status(self) -> Dict[str, int]:
        rows = self.conn.execute(
            "SELECT status, COUNT(*) AS n FROM papers GROUP BY status"
        ).fetchall()
        return {r["status"]: r["n"] for r in rows}


def open_store(path: Optional[Union[str, Path]] = None, **kwargs: Any) -> PaperStore:
    """Open the configured store (settings.database_path unless `path` is given)."""
    if path is None:
        from paper_kb.config.settings import get_settings

        path = get_settings().database_path
    return PaperStore(path, **kwargs)
