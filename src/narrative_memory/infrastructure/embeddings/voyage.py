"""Voyage AI embedding service."""

from typing import Any, Literal

import numpy as np
import voyageai

from narrative_memory.core.base import ServiceErrorDetails
from narrative_memory.core.circuit_breaker import CircuitBreaker, RetryWithCircuitBreaker
from narrative_memory.core.errors import (
    EmbeddingError,
    RateLimitError,
    ServiceError,
    TimeoutError,
)
from narrative_memory.core.logging import get_logger

logger = get_logger(__name__)

# Voyage model dimensions
MODEL_DIMENSIONS = {
    "voyage-02": 1536,
    "voyage-large-2": 1536,
    "voyage-code-2": 1536,
    "voyage-3-large": 1024,
    "voyage-3": 1024,
    "voyage-3-lite": 512,
}


def normalize_rows(vectors: list[list[float]]) -> list[list[float]]:
    """L2-normalise each vector; zero vectors are returned unchanged."""
    matrix = np.asarray(vectors, dtype=np.float64)
    if matrix.size == 0:
        return []
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return (matrix / norms).tolist()


class VoyageEmbeddingService:
    """Voyage AI embedding service guarded by a circuit breaker with retries."""

    def __init__(self, api_key: str, model: str = "voyage-3") -> None:
        """Initialize the Voyage embedding service.

        Raises:
            EmbeddingError: If the API key is not configured
        """
        if not api_key:
            raise EmbeddingError(
                message="Voyage API key not found in settings",
                details=ServiceErrorDetails(
                    source="VoyageEmbeddingService",
                    operation="initialization",
                    service_name="Voyage AI",
                ),
            )

        self.model = model
        self.client: Any = voyageai.AsyncClient(api_key=api_key)

        self._circuit_breaker = CircuitBreaker(
            name="voyage_api",
            failure_threshold=3,
            recovery_timeout=30.0,
            expected_exception_types=(RateLimitError, TimeoutError, ServiceError),
            success_threshold=2,
        )
        self._retry_handler = RetryWithCircuitBreaker(
            circuit_breaker=self._circuit_breaker,
            max_retries=3,
            initial_delay=1.0,
            backoff_factor=2.0,
            max_delay=30.0,
            retryable_exceptions=(RateLimitError, TimeoutError),
        )

    async def _call_voyage_api_internal(self, texts: list[str], input_type: str) -> list[list[float]]:
        """Call the Voyage API; wrapped by the circuit breaker."""
        try:
            response = await self.client.embed(texts=texts, model=self.model, input_type=input_type)
        except Exception as e:
            raise self._handle_error(e, len(texts)) from e

        embeddings = getattr(response, "embeddings", [])
        if not embeddings or len(embeddings) != len(texts):
            raise EmbeddingError(
                message="Voyage API returned incomplete embeddings",
                details=ServiceErrorDetails(
                    source="voyage_embedding",
                    operation="embed_batch",
                    service_name="voyage",
                    endpoint="/embeddings",
                    status_code=200,  # API returned 200 but bad data
                ),
            )
        return normalize_rows(embeddings)

    async def embed_batch(
        self, texts: list[str], input_type: Literal["document", "query"] = "document"
    ) -> list[list[float]]:
        """
        Generate embedding vectors for a batch of texts.

        Args:
            texts: List of texts to embed
            input_type: "query" for retrieval lookups, "document" for stored text

        Returns:
            List of normalised embedding vectors, one per input text

        Raises:
            EmbeddingError: If the embeddings could not be generated
            ServiceError: If the circuit is open or service fails
        """
        if not texts:
            return []

        return await self._retry_handler.call_async(self._call_voyage_api_internal, texts, input_type)

    def _handle_error(self, e: Exception, batch_size: int) -> ServiceError | RateLimitError | TimeoutError:
        """Map client errors to our exception types."""
        error_msg = str(e).lower()
        if "rate limit" in error_msg or "too many requests" in error_msg:
            return RateLimitError(
                message="Rate limit exceeded for embeddings API",
                details=ServiceErrorDetails(
                    source="VoyageEmbeddingService",
                    operation="embed_batch",
                    service_name="Voyage AI",
                    endpoint="/embeddings",
                    status_code=429,
                ),
            )
        if "timeout" in error_msg or "timed out" in error_msg:
            return TimeoutError(
                message="Embeddings API request timed out",
                details=ServiceErrorDetails(
                    source="VoyageEmbeddingService",
                    operation="embed_batch",
                    service_name="Voyage AI",
                    endpoint="/embeddings",
                    status_code=408,
                ),
            )

        logger.warning("Voyage embedding call failed", batch_size=batch_size, model=self.model, error=str(e))
        return ServiceError(
            message=f"Failed to generate embeddings: {e!s}",
            details=ServiceErrorDetails(
                source="VoyageEmbeddingService",
                operation="embed_batch",
                service_name="Voyage AI",
                endpoint="/embeddings",
            ),
        )

    def get_model_dimensions(self) -> int:
        return MODEL_DIMENSIONS.get(self.model, 1024)
