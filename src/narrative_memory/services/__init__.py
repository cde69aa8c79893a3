"""Service layer interfaces and implementations."""

from typing import Any, Literal, Protocol, runtime_checkable

from narrative_memory.domain.models import QueryMatch, StoredRecord, UnitId


@runtime_checkable
class EmbeddingService(Protocol):
    """Protocol for embedding services.

    Implementations return one L2-normalised vector per input text, in input order.
    ``input_type`` tells asymmetric models whether the texts are stored documents or
    retrieval queries; symmetric models ignore it.
    """

    async def embed_batch(
        self, texts: list[str], input_type: Literal["document", "query"] = "document"
    ) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        ...

    def get_model_dimensions(self) -> int:
        """Get the dimensions of the embedding model."""
        ...


@runtime_checkable
class CollectionStore(Protocol):
    """Protocol for the vector collection store.

    When ``upserts`` is true, ``add`` is keyed by record id within a collection, so
    re-adding an identifier overwrites it. Stores that reject existing identifiers
    set it to false and callers delete before re-adding.
    """

    upserts: bool

    async def create_collection(self, name: str) -> None:
        """Create the collection if it does not exist."""
        ...

    async def collection_exists(self, name: str) -> bool: ...

    async def drop_collection(self, name: str) -> None:
        """Drop the collection and its records. Raises ``CollectionAbsentError`` if missing."""
        ...

    async def add(
        self,
        collection: str,
        ids: list[str],
        documents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict[str, Any]],
    ) -> None: ...

    async def query(self, collection: str, embedding: list[float], limit: int) -> list[QueryMatch]:
        """Nearest records to ``embedding``, best first."""
        ...

    async def get(self, collection: str, where: dict[str, Any] | None = None) -> list[StoredRecord]:
        """Records whose metadata equals every key/value in ``where`` (all records if None)."""
        ...

    async def delete(self, collection: str, ids: list[str]) -> int:
        """Delete records by id, returning how many existed."""
        ...


@runtime_checkable
class Summarizer(Protocol):
    """Protocol for the external step condensing a unit's full text."""

    async def summarize(self, full_text: str, conversation_id: str, unit_id: UnitId) -> str: ...


__all__ = ["CollectionStore", "EmbeddingService", "Summarizer"]
