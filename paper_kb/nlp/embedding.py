"""
Embedding utilities for sections and search queries.

We wrap SentenceTransformer in a small EmbeddingModel helper so that:
- Callers only deal with plain float lists, never tensors.
- Configuration (model name, device, batch size) comes from Settings.
- Tests can swap in any object with `encode_text` / `encode_texts`.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional, Sequence

import torch
from sentence_transformers import SentenceTransformer

from paper_kb.config.settings import get_settings


class EmbeddingModel:
    """
    Thin wrapper around SentenceTransformer producing normalized vectors.
    """

    def __init__(self, backend: SentenceTransformer, batch_size: int) -> None:
        self._backend = backend
        self._batch_size = batch_size

    @property
    def dimension(self) -> Optional[int]:
        return self._backend.get_sentence_embedding_dimension()

    def encode_texts(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Encode a batch of texts; one list of floats per input text.
        """
        if not texts:
            return []

        vectors = self._backend.encode(
            list(texts),
            batch_size=self._batch_size,
            convert_to_numpy=True,
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return [v.tolist() for v in vectors]

    def encode_text(self, text: str) -> List[float]:
        return self.encode_texts([text])[0]


# ---- Backend construction ---------------------------------------------------


def _resolve_device(raw_device: str) -> str:
    """
    Turn the EMBEDDING_DEVICE setting into an actual device string.

    - "auto"  -> "cuda" if available else "cpu"
    - anything else is passed through as-is.
    """
    if raw_device == "auto":
        return "cuda" if torch.cuda.is_available() else "cpu"
    return raw_device


@lru_cache(maxsize=1)
def _build_backend() -> EmbeddingModel:
    settings = get_settings()

    device = _resolve_device(settings.EMBEDDING_DEVICE)
    backend = SentenceTransformer(settings.SENTENCE_MODEL_NAME, device=device)
    return EmbeddingModel(backend=backend, batch_size=settings.EMBEDDING_BATCH_SIZE)


def get_embedding_model() -> EmbeddingModel:
    """
    Public entry point used by the indexer and the search engine.
    The model is loaded once per process.
    """
    return _build_backend()
