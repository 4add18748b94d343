# tests/test_api_papers.py

import pytest
from conftest import add_ready_paper
from pydantic import ValidationError

from paper_kb.api.models import BatchIngestRequest, IngestRequest
from paper_kb.api.papers import get_paper, get_status, list_papers
from paper_kb.models import Citation, EntityLink, EntityType, Extraction, ExtractionType, PaperStatus


def test_ingest_request_validates_and_strips_version():
    assert IngestRequest(arxiv_id="2401.15884v2").arxiv_id == "2401.15884"
    for bad in ("hep-th/9901001", "2401.158", "", "2401.15884 "):
        with pytest.raises(ValidationError):
            IngestRequest(arxiv_id=bad)


def test_batch_request_bounds():
    assert BatchIngestRequest(search_query="retrieval").arxiv_ids is None
    assert BatchIngestRequest(arxiv_ids=["2401.00001v1"]).arxiv_ids == ["2401.00001"]

    with pytest.raises(ValidationError):
        BatchIngestRequest()
    with pytest.raises(ValidationError):
        BatchIngestRequest(arxiv_ids=[])
    with pytest.raises(ValidationError):
        BatchIngestRequest(arxiv_ids=[f"2401.{i:05d}" for i in range(51)])
    with pytest.raises(ValidationError):
        BatchIngestRequest(search_query="x" * 201)


def test_get_paper_assembles_detail(store):
    add_ready_paper(store, "a", "2401.00001", "Paper A", authors=["Ada"])
    add_ready_paper(store, "b", "2401.00002", "Paper B")
    store.insert_section("s1", "a", "Intro", 1, "Some introduction text.", 0)
    store.insert_extraction(
        Extraction(id="e1", paper_id="a", type=ExtractionType.METHOD, name="RAPTOR", section_id="s1")
    )
    store.insert_citation(Citation(id="c1", source_paper_id="a", target_doi="10.1000/x", target_title="Book"))
    store.insert_citation(Citation(id="c2", source_paper_id="b", target_paper_id="a", target_arxiv_id="2401.00001"))
    store.insert_entity_link(EntityLink(id="l1", paper_id="a", entity_type=EntityType.METHOD, entity_name="RAPTOR"))
    store.insert_entity_link(EntityLink(id="l2", paper_id="b", entity_type=EntityType.METHOD, entity_name="RAPTOR"))

    detail = get_paper(store, "2401.00001")

    assert detail.paper.id == "a"
    assert detail.paper.authors == ["Ada"]
    assert detail.paper.status == PaperStatus.READY
    assert [s.heading for s in detail.sections] == ["Intro"]
    assert detail.extractions[0].section_id == "s1"
    assert detail.citations[0].target_doi == "10.1000/x"
    assert detail.cited_by[0].source_arxiv_id == "2401.00002"
    assert [(r.paper_id, r.entity_type, r.entity_name) for r in detail.related_papers] == [
        ("b", "method", "RAPTOR")
    ]

    assert get_paper(store, "missing") is None
    with pytest.raises(ValidationError):
        get_paper(store, "")


def test_list_papers_cursor_round_trip(store):
    for i in range(3):
        add_ready_paper(store, f"p{i}", f"2401.0000{i}", f"Paper {i}", published_at=f"202{i}-01-01T00:00:00Z")

    first = list_papers(store, sort_by="published_at", sort_order="desc", limit=2)
    assert [p.id for p in first.papers] == ["p2", "p1"]
    assert first.has_more
    assert first.cursor == "p1"

    second = list_papers(store, sort_by="published_at", sort_order="desc", limit=2, cursor=first.cursor)
    assert [p.id for p in second.papers] == ["p0"]
    assert not second.has_more
    assert second.cursor is None

    with pytest.raises(ValidationError):
        list_papers(store, limit=101)
    with pytest.raises(ValidationError):
        list_papers(store, sort_by="arxiv_id")


def test_get_status(store):
    store.insert_paper("q", "2401.00009")
    store.mark_paper_failed("q", '{"stage": "metadata"}')

    status = get_status(store, "2401.00009")
    assert status.status == PaperStatus.FAILED
    assert status.error == '{"stage": "metadata"}'
    assert get_status(store, "nope") is None
