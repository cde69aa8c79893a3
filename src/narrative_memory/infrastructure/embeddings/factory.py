"""Construction of the configured embedding service.

The embedding service is built once per memory context and shared by both tiers
of every conversation, so similarity scores from either tier are comparable.
"""

import asyncio

from narrative_memory.core.config import Settings
from narrative_memory.core.logging import get_logger
from narrative_memory.infrastructure.embeddings.local import (
    HashEmbeddingService,
    SentenceTransformerEmbeddingService,
)
from narrative_memory.infrastructure.embeddings.voyage import VoyageEmbeddingService
from narrative_memory.services import EmbeddingService

logger = get_logger(__name__)


async def build_embedding_service(settings: Settings) -> EmbeddingService:
    """Build the embedding service selected by ``settings.embedding_backend``.

    Local models are loaded in a worker thread so startup does not block the event loop.

    Raises:
        EmbeddingError: If the selected backend cannot be initialized
    """
    backend = settings.embedding_backend
    logger.info(f"Building embedding service for backend '{backend}'")

    if backend == "voyage":
        return VoyageEmbeddingService(
            api_key=settings.voyage_api_key.get_secret_value(),
            model=settings.voyage_model,
        )
    if backend == "sentence-transformers":
        return await asyncio.to_thread(SentenceTransformerEmbeddingService, settings.embedding_model)
    return HashEmbeddingService()
