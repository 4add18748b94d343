# paper_kb/search/vector_index.py

from __future__ import annotations

import logging
import pickle
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class VectorRecord:
    id: str
    vector: Sequence[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorMatch:
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class VectorIndex:
    """
    In-process nearest-neighbour index using cosine similarity.

    Vectors are stored L2-normalized in one float32 matrix; a query is a
    single matrix-vector product. Upserting an existing id replaces its
    vector and metadata.
    """

    def __init__(self) -> None:
        self._ids: List[str] = []
        self._positions: Dict[str, int] = {}
        self._metadata: List[Dict[str, Any]] = []
        self._matrix: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self._ids)

    @staticmethod
    def _normalize(vectors: np.ndarray) -> np.ndarray:
        norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
        norms[norms == 0] = 1.0
        return vectors / norms

    def upsert(self, records: Iterable[VectorRecord]) -> int:
        records = list(records)
        if not records:
            return 0

        new_vectors = self._normalize(np.asarray([r.vector for r in records], dtype=np.float32))
        if self._matrix is not None and new_vectors.shape[1] != self._matrix.shape[1]:
            raise ValueError(
                f"Vector dimension {new_vectors.shape[1]} does not match index dimension {self._matrix.shape[1]}"
            )

        appended: List[np.ndarray] = []
        for record, vec in zip(records, new_vectors):
            pos = self._positions.get(record.id)
            if pos is not None:
                self._matrix[pos] = vec
                self._metadata[pos] = dict(record.metadata)
                continue
            self._positions[record.id] = len(self._ids)
            self._ids.append(record.id)
            self._metadata.append(dict(record.metadata))
            appended.append(vec)

        if appended:
            block = np.vstack(appended)
            self._matrix = block if self._matrix is None else np.vstack([self._matrix, block])

        return len(records)

    def delete(self, ids: Iterable[str]) -> int:
        drop = {i for i in ids if i in self._positions}
        if not drop:
            return 0

        keep = [pos for pos, vid in enumerate(self._ids) if vid not in drop]
        self._ids = [self._ids[p] for p in keep]
        self._metadata = [self._metadata[p] for p in keep]
        self._matrix = self._matrix[keep] if keep else None
        self._positions = {vid: pos for pos, vid in enumerate(self._ids)}
        return len(drop)

    def query(self, vector: Sequence[float], top_k: int = 10) -> List[VectorMatch]:
        if self._matrix is None or top_k <= 0:
            return []

        q = self._normalize(np.asarray(vector, dtype=np.float32))
        scores = self._matrix @ q
        k = min(top_k, len(self._ids))
        # Stable sort keeps insertion order among equal scores.
        order = np.argsort(-scores, kind="stable")[:k]
        return [
            VectorMatch(id=self._ids[i], score=float(scores[i]), metadata=dict(self._metadata[i]))
            for i in order
        ]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        state = {"ids": self._ids, "metadata": self._metadata, "matrix": self._matrix}
        with path.open("wb") as f:
            pickle.dump(state, f, protocol=pickle.HIGHEST_PROTOCOL)
        logger.debug("Saved %d vectors to %s", len(self._ids), path)
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> "VectorIndex":
        """Load a snapshot written by `save`; a missing file yields an empty index."""
        index = cls()
        path = Path(path)
        if not path.exists():
            return index

        with path.open("rb") as f:
            state = pickle.load(f)

        index._ids = list(state["ids"])
        index._metadata = list(state["metadata"])
        index._matrix = state["matrix"]
        index._positions = {vid: pos for pos, vid in enumerate(index._ids)}
        return index
