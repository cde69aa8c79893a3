"""Embedding services that run in-process."""

import asyncio
import hashlib
from typing import Literal

import numpy as np

from narrative_memory.core.errors import EmbeddingError
from narrative_memory.core.logging import get_logger

logger = get_logger(__name__)


class SentenceTransformerEmbeddingService:
    """Local sentence-transformers model, mean pooled and normalised.

    Encoding is CPU bound, so it runs in a worker thread instead of on the event loop.
    """

    def __init__(self, model_name: str = "sentence-transformers/all-MiniLM-L6-v2", device: str = "cpu") -> None:
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as exc:
            raise EmbeddingError("sentence-transformers is required for the sentence-transformers backend") from exc

        logger.info(f"Loading sentence-transformers model {model_name}")
        self.model = model_name
        try:
            self._model = SentenceTransformer(model_name, device=device)
        except Exception as e:
            raise EmbeddingError(f"Could not load sentence-transformers model {model_name}: {e!s}") from e

    def _encode(self, texts: list[str]) -> list[list[float]]:
        vectors = self._model.encode(texts, normalize_embeddings=True, convert_to_numpy=True)
        return vectors.tolist()

    async def embed_batch(
        self, texts: list[str], input_type: Literal["document", "query"] = "document"
    ) -> list[list[float]]:
        if not texts:
            return []
        try:
            return await asyncio.to_thread(self._encode, texts)
        except Exception as e:
            raise EmbeddingError(f"Embedding generation failed: {e!s}") from e

    def get_model_dimensions(self) -> int:
        return int(self._model.get_sentence_embedding_dimension() or 384)


class HashEmbeddingService:
    """Deterministic, offline embeddings derived from SHA-256.

    Identical texts map to identical vectors, which is all the tiers need for
    development and tests; similarity between different texts is arbitrary.
    """

    def __init__(self, dim: int = 384) -> None:
        self._dim = dim
        self.model = f"hash-{dim}"

    def _embed(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeats = self._dim // len(digest) + 1
        values = np.frombuffer(digest * repeats, dtype=np.uint8)[: self._dim].astype(np.float64) / 255.0
        norm = np.linalg.norm(values) or 1.0
        return (values / norm).tolist()

    async def embed_batch(
        self, texts: list[str], input_type: Literal["document", "query"] = "document"
    ) -> list[list[float]]:
        return [self._embed(text) for text in texts]

    def get_model_dimensions(self) -> int:
        return self._dim
