# tests/test_hybrid_search.py

import pytest
from conftest import add_ready_paper

from paper_kb.models import Extraction, ExtractionType
from paper_kb.search.hybrid import HybridSearcher, rrf_merge
from paper_kb.search.vector_index import VectorIndex, VectorRecord


class FixedEmbedder:
    """Every query embeds to the same vector."""

    def __init__(self, vector=(1.0, 0.0)):
        self.vector = list(vector)

    def encode_text(self, text):
        return self.vector


class BrokenEmbedder:
    def encode_text(self, text):
        raise RuntimeError("model not available")


def _corpus(store):
    """
    p1: keyword hit on title/abstract
    p2: keyword hit on a section only
    p3: semantic-only neighbour that is not ready yet
    """
    add_ready_paper(store, "p1", "2401.00001", "Tree retrieval", "Recursive summaries.", categories=["cs.CL"],
                    published_at="2024-01-31T00:00:00Z")
    add_ready_paper(store, "p2", "2301.00002", "Unrelated title", "Nothing here.", categories=["cs.IR"],
                    published_at="2023-03-01T00:00:00Z")
    store.insert_section("s2", "p2", "Method", 1, "We study tree based retrieval for long inputs.", 0)
    store.insert_paper("p3", "2401.00003")

    index = VectorIndex()
    index.upsert(
        [
            VectorRecord(id="s2", vector=[1.0, 0.0], metadata={"paper_id": "p2"}),
            VectorRecord(id="s3", vector=[0.9, 0.1], metadata={"paper_id": "p3"}),
            VectorRecord(id="s1a", vector=[0.5, 0.5], metadata={"paper_id": "p1"}),
            VectorRecord(id="s1b", vector=[0.1, 0.9], metadata={"paper_id": "p1"}),
        ]
    )
    return index


def test_rrf_merge_sums_reciprocal_ranks():
    scores = rrf_merge({"a": 0, "b": 1}, {"b": 0, "c": 3}, k=60)

    assert list(scores) == ["a", "b", "c"]
    assert scores["a"] == pytest.approx(1 / 60)
    assert scores["b"] == pytest.approx(1 / 61 + 1 / 60)
    assert scores["c"] == pytest.approx(1 / 63)


def test_rrf_single_source_top_hits_tie_and_both_sources_double():
    scores = rrf_merge({"keyword_only": 0, "both": 0}, {"vector_only": 0, "both": 0}, k=60)

    assert scores["keyword_only"] == scores["vector_only"]
    assert scores["both"] == 2 * scores["keyword_only"]


def test_keyword_and_vector_ranks_are_fused(store):
    searcher = HybridSearcher(store, _corpus(store), FixedEmbedder(), rrf_k=60)

    hits = searcher.search_papers("tree retrieval")

    # p3 has the second best vector but is not ready, so it never surfaces
    assert [h.id for h in hits] == ["p2", "p1"]
    # keyword: p1 rank 0 (papers), p2 rank 1 (sections); vector: p2 rank 0, p1 rank 2
    assert hits[0].score == pytest.approx(1 / 61 + 1 / 60)
    assert hits[1].score == pytest.approx(1 / 60 + 1 / 62)
    assert hits[0].arxiv_id == "2301.00002"


def test_vector_failure_falls_back_to_keyword_ranks(store):
    searcher = HybridSearcher(store, _corpus(store), BrokenEmbedder(), rrf_k=60)

    hits = searcher.search_papers("tree retrieval")

    assert [h.id for h in hits] == ["p1", "p2"]
    assert hits[0].score == pytest.approx(1 / 60)
    assert hits[1].score == pytest.approx(1 / 61)


def test_filters_and_limit(store):
    searcher = HybridSearcher(store, _corpus(store), FixedEmbedder(), rrf_k=60)

    assert [h.id for h in searcher.search_papers("tree retrieval", category="cs.CL")] == ["p1"]
    assert [h.id for h in searcher.search_papers("tree retrieval", year_from=2024)] == ["p1"]
    assert [h.id for h in searcher.search_papers("tree retrieval", year_to=2023)] == ["p2"]
    assert [h.id for h in searcher.search_papers("tree retrieval", limit=1)] == ["p2"]


def test_invalid_requests_are_rejected(store):
    from pydantic import ValidationError

    searcher = HybridSearcher(store, VectorIndex(), FixedEmbedder())
    with pytest.raises(ValidationError):
        searcher.search_papers("")
    with pytest.raises(ValidationError):
        searcher.search_papers("x", limit=51)
    with pytest.raises(ValidationError):
        searcher.search_papers("x", year_from=1989)


def test_search_extractions(store):
    add_ready_paper(store, "p1", "2401.00001", "Tree retrieval")
    store.insert_extraction(
        Extraction(id="e1", paper_id="p1", type=ExtractionType.METHOD, name="RAPTOR", detail="tree of summaries")
    )
    store.insert_extraction(Extraction(id="e2", paper_id="p1", type=ExtractionType.DATASET, name="QuALITY"))
    searcher = HybridSearcher(store, VectorIndex(), FixedEmbedder())

    hits = searcher.search_extractions("summaries")
    assert [(h.id, h.type, h.arxiv_id, h.paper_title) for h in hits] == [
        ("e1", ExtractionType.METHOD, "2401.00001", "Tree retrieval")
    ]
    assert searcher.search_extractions("summaries", type=ExtractionType.DATASET) == []
