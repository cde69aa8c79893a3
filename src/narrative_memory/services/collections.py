"""Per-conversation collection handles."""

from dataclasses import dataclass
from typing import Any

from narrative_memory.core.errors import CollectionAbsentError, StoreOperationError, StoreUnavailableError
from narrative_memory.core.logging import get_logger
from narrative_memory.domain.models import QueryMatch, StoredRecord
from narrative_memory.services import CollectionStore, EmbeddingService
from narrative_memory.services.context import MemoryContext

logger = get_logger(__name__)


def active_collection_name(conversation_id: str) -> str:
    return f"chat_{conversation_id}_active"


def archive_collection_name(conversation_id: str) -> str:
    return f"chat_{conversation_id}_archive"


class MemoryCollection:
    """A named collection bound to the shared embedding service."""

    def __init__(self, name: str, store: CollectionStore, embeddings: EmbeddingService):
        self.name = name
        self.store = store
        self.embeddings = embeddings

    @property
    def upserts(self) -> bool:
        return self.store.upserts

    async def embed(self, documents: list[str]) -> list[list[float]]:
        return await self.embeddings.embed_batch(documents, input_type="document")

    async def add(
        self,
        ids: list[str],
        documents: list[str],
        metadatas: list[dict[str, Any]],
        embeddings: list[list[float]] | None = None,
    ) -> None:
        if embeddings is None:
            embeddings = await self.embed(documents)
        await self.store.add(self.name, ids, documents, embeddings, metadatas)

    async def query(self, query_text: str, n_results: int) -> list[QueryMatch]:
        if n_results <= 0:
            return []
        [embedding] = await self.embeddings.embed_batch([query_text], input_type="query")
        return await self.store.query(self.name, embedding, n_results)

    async def get(self, where: dict[str, Any] | None = None) -> list[StoredRecord]:
        return await self.store.get(self.name, where)

    async def delete(self, ids: list[str]) -> int:
        return await self.store.delete(self.name, ids)

    def __repr__(self) -> str:
        return f"MemoryCollection({self.name!r})"


@dataclass(frozen=True)
class ConversationCollections:
    active: MemoryCollection
    archive: MemoryCollection


class CollectionResolver:
    """Maps a conversation to its active and archive collections, creating them lazily.

    Resolving the same conversation twice returns the same handles.
    """

    def __init__(self, context: MemoryContext):
        self.context = context
        self._resolved: dict[str, ConversationCollections] = {}

    async def resolve(self, conversation_id: str) -> ConversationCollections:
        """Get or create both collections of a conversation.

        Raises:
            NotInitializedError: If the memory context is not ready
            StoreUnavailableError: If the store cannot create the collections
        """
        self.context.require_ready()
        cached = self._resolved.get(conversation_id)
        if cached is not None:
            return cached

        store = self.context.store
        embeddings = self.context.embeddings
        active_name = active_collection_name(conversation_id)
        archive_name = archive_collection_name(conversation_id)
        try:
            await store.create_collection(active_name)
            await store.create_collection(archive_name)
        except StoreOperationError as e:
            raise StoreUnavailableError(
                message=f"Could not initialize collections for conversation {conversation_id}: {e.message}",
                details={"source": "collection_resolver", "operation": "resolve", "conversation_id": conversation_id},
            ) from e

        collections = ConversationCollections(
            active=MemoryCollection(active_name, store, embeddings),
            archive=MemoryCollection(archive_name, store, embeddings),
        )
        logger.debug(f"Resolved collections for conversation {conversation_id}")
        return self._resolved.setdefault(conversation_id, collections)

    def forget(self, conversation_id: str) -> None:
        """Drop cached handles after the conversation's collections were dropped."""
        self._resolved.pop(conversation_id, None)

    async def drop(self, conversation_id: str) -> list[str]:
        """Drop both collections of a conversation, returning the names that existed.

        A missing collection is logged and skipped.

        Raises:
            NotInitializedError: If the memory context is not ready
        """
        self.context.require_ready()
        store = self.context.store
        dropped = []
        for name in (active_collection_name(conversation_id), archive_collection_name(conversation_id)):
            try:
                await store.drop_collection(name)
            except CollectionAbsentError as e:
                logger.info(e.message, collection=name)
                continue
            dropped.append(name)
        self.forget(conversation_id)
        return dropped
