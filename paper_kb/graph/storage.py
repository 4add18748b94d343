"""
Persisting and reloading snapshots of the corpus graph.

Uses the standard library `pickle` module instead of NetworkX's gpickle
helpers, which newer NetworkX versions no longer export.

- `save_graph(G, name=None, directory=None) -> Path`
    * Writes the graph to disk using pickle.
    * Also maintains a "graph-latest.pkl" copy for convenience.

- `load_latest_graph(directory=None) -> Optional[nx.MultiDiGraph]`
    * Returns the most recently saved graph in that directory, or None.
"""

from __future__ import annotations

import logging
import pickle
import shutil
import time
from pathlib import Path
from typing import Optional

import networkx as nx

from paper_kb.config.settings import get_settings

logger = logging.getLogger(__name__)


def _ensure_dir(directory: Optional[Path]) -> Path:
    """
    Ensure the target directory exists, defaulting to settings.graph_dir.
    """
    if directory is None:
        directory = get_settings().graph_dir

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def save_graph(
    G: nx.MultiDiGraph,
    name: Optional[str] = None,
    directory: Optional[Path] = None,
) -> Path:
    directory = _ensure_dir(directory)

    if name is None:
        ts = time.strftime("%Y%m%d-%H%M%S")
        name = f"graph-{ts}.pkl"

    path = directory / name
    with path.open("wb") as f:
        pickle.dump(G, f, protocol=pickle.HIGHEST_PROTOCOL)

    latest_path = directory / "graph-latest.pkl"
    if latest_path != path:
        try:
            shutil.copy2(path, latest_path)
        except OSError:
            logger.warning("Could not update %s", latest_path, exc_info=True)

    logger.info("Saved graph snapshot to %s", path)
    return path


def load_latest_graph(directory: Optional[Path] = None) -> Optional[nx.MultiDiGraph]:
    """
    Load "graph-latest.pkl" if present, else the most recently modified
    snapshot; None when the directory holds no snapshots.
    """
    directory = _ensure_dir(directory)

    latest = directory / "graph-latest.pkl"
    if not latest.exists():
        candidates = [p for p in directory.glob("*.pkl") if p.is_file()]
        if not candidates:
            return None
        latest = max(candidates, key=lambda p: p.stat().st_mtime)

    with latest.open("rb") as f:
        return pickle.load(f)
