# paper_kb/graph/builder.py

from __future__ import annotations

import logging
from typing import Optional

import networkx as nx

from paper_kb.graph.schema import EdgeType, NodeType
from paper_kb.models import EntityType, Paper
from paper_kb.storage.database import PaperStore

logger = logging.getLogger(__name__)


def paper_node_id(paper_id: str) -> str:
    """Return the canonical node id for a paper."""
    return f"paper:{paper_id}"


def entity_node_id(entity_type: EntityType, name: str) -> str:
    """Return the canonical node id for a (type, name) entity."""
    return f"{EntityType(entity_type).value}:{name}"


def _get_or_create_paper_node(
    G: nx.MultiDiGraph,
    paper_id: str,
    arxiv_id: Optional[str] = None,
    title: Optional[str] = None,
    status: Optional[str] = None,
) -> str:
    """
    Ensure there's a node for this paper and return its node id.
    Attributes that are None never overwrite known values.
    """
    node_id = paper_node_id(paper_id)
    attrs = {"type": NodeType.PAPER.value, "paper_id": paper_id}
    for key, value in (("arxiv_id", arxiv_id), ("title", title), ("status", status)):
        if value is not None:
            attrs[key] = value

    if node_id in G:
        G.nodes[node_id].update(attrs)
    else:
        G.add_node(node_id, **attrs)
    return node_id


def _add_paper(G: nx.MultiDiGraph, paper: Paper) -> str:
    return _get_or_create_paper_node(
        G, paper.id, arxiv_id=paper.arxiv_id, title=paper.title, status=paper.status.value
    )


def _get_or_create_entity_node(G: nx.MultiDiGraph, entity_type: EntityType, name: str) -> str:
    node_id = entity_node_id(entity_type, name)
    if node_id not in G:
        G.add_node(
            node_id,
            type=NodeType.ENTITY.value,
            entity_type=EntityType(entity_type).value,
            name=name,
        )
    return node_id


def _ensure_edge(
    G: nx.MultiDiGraph,
    src: str,
    dst: str,
    edge_type: EdgeType,
    **attrs,
) -> None:
    """
    Add an edge of a given type if it doesn't exist yet (based on src, dst, type).
    If it exists, update its attributes.
    """
    for _, v, data in G.edges(src, data=True):
        if v == dst and data.get("type") == edge_type.value:
            data.update(attrs)
            return

    G.add_edge(src, dst, type=edge_type.value, **attrs)


def build_paper_neighborhood(store: PaperStore, paper: Paper) -> nx.MultiDiGraph:
    """
    One-hop neighborhood of `paper`:

    - outgoing CITES edges to locally resolved targets
    - incoming CITES edges from citing papers
    - HAS_ENTITY edges to each of its entities, and from every other paper
      linked to the same (type, name)

    Nodes and edges are added in store order, which `find_related` relies on.
    """
    G = nx.MultiDiGraph()
    focal = _add_paper(G, paper)

    for citation in store.get_citations_by_source(paper.id):
        if citation.target_paper_id is None:
            continue
        target = store.get_paper_by_id(citation.target_paper_id)
        if target is None:
            continue
        _ensure_edge(G, focal, _add_paper(G, target), EdgeType.CITES, citation_id=citation.id)

    for row in store.get_cited_by(paper.id):
        source = _get_or_create_paper_node(
            G, row.citation.source_paper_id, arxiv_id=row.source_arxiv_id, title=row.source_title
        )
        _ensure_edge(G, source, focal, EdgeType.CITES, citation_id=row.citation.id)

    for link in store.get_entity_links(paper.id):
        entity = _get_or_create_entity_node(G, link.entity_type, link.entity_name)
        _ensure_edge(G, focal, entity, EdgeType.HAS_ENTITY)

    for row in store.find_shared_entities(paper.id):
        entity = _get_or_create_entity_node(G, row.entity_type, row.entity_name)
        other = _get_or_create_paper_node(G, row.paper_id, arxiv_id=row.arxiv_id, title=row.title)
        _ensure_edge(G, other, entity, EdgeType.HAS_ENTITY)

    return G


def build_full_graph(store: PaperStore) -> nx.MultiDiGraph:
    """
    Whole-corpus graph: every paper, every resolved citation and every entity link.
    """
    G = nx.MultiDiGraph()

    for paper in store.iter_papers():
        _add_paper(G, paper)

    for citation in store.iter_citations():
        if citation.target_paper_id is None:
            continue
        _ensure_edge(
            G,
            paper_node_id(citation.source_paper_id),
            paper_node_id(citation.target_paper_id),
            EdgeType.CITES,
            citation_id=citation.id,
        )

    for link in store.iter_entity_links():
        entity = _get_or_create_entity_node(G, link.entity_type, link.entity_name)
        _ensure_edge(G, paper_node_id(link.paper_id), entity, EdgeType.HAS_ENTITY)

    logger.info(
        "Built corpus graph with %d nodes and %d edges",
        G.number_of_nodes(),
        G.number_of_edges(),
    )
    return G
