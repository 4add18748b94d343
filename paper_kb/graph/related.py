# paper_kb/graph/related.py

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import networkx as nx

from paper_kb.api.models import LINK_TYPES, FindRelatedRequest, RelatedPaper
from paper_kb.graph.builder import build_paper_neighborhood, paper_node_id
from paper_kb.graph.schema import EdgeType, NodeType
from paper_kb.models import EntityType
from paper_kb.storage.database import PaperStore

logger = logging.getLogger(__name__)

_SHARED_LINKS = {
    "shared_method": EntityType.METHOD,
    "shared_dataset": EntityType.DATASET,
    "shared_author": EntityType.AUTHOR,
}

# (node id, link detail)
Neighbor = Tuple[str, Optional[str]]


def _edges_of_type(edges, edge_type: EdgeType) -> Iterator[Tuple[str, str]]:
    for u, v, data in edges:
        if data.get("type") == edge_type.value:
            yield u, v


def _cited(G: nx.MultiDiGraph, focal: str) -> Iterator[Neighbor]:
    for _, v in _edges_of_type(G.out_edges(focal, data=True), EdgeType.CITES):
        yield v, None


def _citing(G: nx.MultiDiGraph, focal: str) -> Iterator[Neighbor]:
    for u, _ in _edges_of_type(G.in_edges(focal, data=True), EdgeType.CITES):
        yield u, None


def _sharing(G: nx.MultiDiGraph, focal: str, entity_type: EntityType) -> Iterator[Neighbor]:
    for _, entity in _edges_of_type(G.out_edges(focal, data=True), EdgeType.HAS_ENTITY):
        attrs = G.nodes[entity]
        if attrs.get("entity_type") != entity_type.value:
            continue
        for other, _ in _edges_of_type(G.in_edges(entity, data=True), EdgeType.HAS_ENTITY):
            if other != focal:
                yield other, attrs.get("name")


def _neighbors(G: nx.MultiDiGraph, focal: str, link_type: str) -> Iterator[Neighbor]:
    if link_type == "citation":
        return _cited(G, focal)
    if link_type == "cited_by":
        return _citing(G, focal)
    return _sharing(G, focal, _SHARED_LINKS[link_type])


def find_related(
    store: PaperStore,
    paper_id: str,
    link_types: Optional[Sequence[str]] = None,
    limit: int = 10,
) -> List[RelatedPaper]:
    """
    Papers connected to `paper_id` (internal or arXiv ID).

    Link types are examined in the fixed order citation, cited_by,
    shared_method, shared_dataset, shared_author; a paper reachable
    through several is reported once, under the first. An unknown paper
    yields an empty list.
    """
    req = FindRelatedRequest(paper_id=paper_id, link_types=link_types, limit=limit)

    paper = store.get_paper(req.paper_id)
    if paper is None:
        logger.info("find_related: no paper %r", req.paper_id)
        return []

    G = build_paper_neighborhood(store, paper)
    focal = paper_node_id(paper.id)
    wanted = set(req.link_types or LINK_TYPES)

    seen: Dict[str, RelatedPaper] = {}
    for link_type in LINK_TYPES:
        if link_type not in wanted:
            continue
        for node, detail in _neighbors(G, focal, link_type):
            attrs = G.nodes[node]
            if attrs.get("type") != NodeType.PAPER.value:
                continue
            other_id = attrs["paper_id"]
            if other_id == paper.id or other_id in seen:
                continue
            seen[other_id] = RelatedPaper(
                paper_id=other_id,
                arxiv_id=attrs.get("arxiv_id", ""),
                title=attrs.get("title"),
                link_type=link_type,
                link_detail=detail,
            )

    return list(seen.values())[: req.limit]
