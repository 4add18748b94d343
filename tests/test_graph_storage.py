# tests/test_graph_storage.py

import os
import time

import networkx as nx

from paper_kb.graph.storage import load_latest_graph, save_graph


def _graph(label: str) -> nx.MultiDiGraph:
    G = nx.MultiDiGraph()
    G.add_node(f"paper:{label}", type="paper")
    return G


def test_save_and_load_latest(tmp_path):
    path = save_graph(_graph("one"), name="first.pkl", directory=tmp_path)

    assert path == tmp_path / "first.pkl"
    assert (tmp_path / "graph-latest.pkl").exists()

    save_graph(_graph("two"), directory=tmp_path)
    loaded = load_latest_graph(tmp_path)
    assert list(loaded.nodes) == ["paper:two"]


def test_load_latest_without_latest_copy_picks_newest(tmp_path):
    save_graph(_graph("old"), name="a.pkl", directory=tmp_path)
    save_graph(_graph("new"), name="b.pkl", directory=tmp_path)
    (tmp_path / "graph-latest.pkl").unlink()

    past = time.time() - 100
    os.utime(tmp_path / "a.pkl", (past, past))

    assert list(load_latest_graph(tmp_path).nodes) == ["paper:new"]


def test_load_latest_empty_directory(tmp_path):
    assert load_latest_graph(tmp_path / "empty") is None
