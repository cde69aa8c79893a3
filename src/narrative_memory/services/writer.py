"""Writes unit text into a conversation's active tier."""

from narrative_memory.core.base import ErrorLevel
from narrative_memory.core.decorators import with_error_handling
from narrative_memory.core.errors import (
    NotInitializedError,
    StoreOperationError,
    StoreUnavailableError,
    WriteFailedError,
)
from narrative_memory.core.logging import get_logger
from narrative_memory.domain.models import ChunkRecord, StoredRecord, UnitId, WriteAck, chunk_id, normalize_unit_id
from narrative_memory.domain.models.utils import epoch_millis
from narrative_memory.services.chunker import Chunker
from narrative_memory.services.collections import CollectionResolver, MemoryCollection

logger = get_logger(__name__)


class ActiveMemoryWriter:
    """Chunks incoming text and appends it to the active tier as one batch.

    Chunk ids derive from the unit id and chunk index, so repeating a call
    overwrites the unit's chunks instead of duplicating them. Embeddings are
    computed before the store is touched. On stores without upsert, existing
    chunks of the batch are deleted first and restored if the add then fails.
    """

    def __init__(self, resolver: CollectionResolver, chunker: Chunker):
        self.resolver = resolver
        self.chunker = chunker

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def add_to_memory(self, conversation_id: str, unit_id: UnitId, text: str) -> WriteAck:
        """Store ``text`` of one unit in the active tier.

        Empty text is accepted and writes nothing.

        Raises:
            NotInitializedError: If the memory context is not ready
            StoreUnavailableError: If the collections cannot be resolved
            WriteFailedError: If the batch could not be persisted; chunks stored before the call are kept
        """
        unit_id = normalize_unit_id(unit_id)
        collections = await self.resolver.resolve(conversation_id)

        windows = [window for window in self.chunker.chunk(text) if window]
        if not windows:
            logger.info(f"No text to add for unit {unit_id} in conversation {conversation_id}")
            return WriteAck(conversation_id=conversation_id, unit_id=unit_id)

        written_at = epoch_millis()
        records = [
            ChunkRecord(
                id=chunk_id(unit_id, index),
                text=window,
                unit_id=unit_id,
                chunk_index=index,
                written_at=written_at,
            )
            for index, window in enumerate(windows)
        ]
        ids = [record.id for record in records]

        active = collections.active
        existing: list[StoredRecord] = []
        replaced: list[StoredRecord] = []
        replaced_vectors: list[list[float]] = []
        deleted = attempted = False
        try:
            batch = set(ids)
            existing = [record for record in await active.get({"unit_id": unit_id}) if record.id in batch]
            if not active.upserts:
                replaced = existing
            vectors = await active.embed([record.text for record in records] + [record.text for record in replaced])
            vectors, replaced_vectors = vectors[: len(records)], vectors[len(records) :]
            if replaced:
                logger.info(
                    f"Replacing {len(replaced)} existing chunks of unit {unit_id} in conversation {conversation_id}"
                )
                await active.delete([record.id for record in replaced])
                deleted = True
            attempted = True
            await active.add(
                ids=ids,
                documents=[record.text for record in records],
                metadatas=[record.metadata() for record in records],
                embeddings=vectors,
            )
        except NotInitializedError:
            raise
        except Exception as e:
            if deleted:
                await self._restore(conversation_id, active, ids, replaced, replaced_vectors)
            elif attempted:
                previous = {record.id for record in existing}
                await self._discard_partial(conversation_id, active, [i for i in ids if i not in previous])
            raise WriteFailedError(
                message=f"Failed to add unit {unit_id} to memory for conversation {conversation_id}: {e!s}",
                details={
                    "source": "active_memory_writer",
                    "operation": "add_to_memory",
                    "conversation_id": conversation_id,
                    "unit_id": unit_id,
                    "stage": "add",
                },
            ) from e

        logger.info(f"Added {len(records)} chunks to active memory for conversation {conversation_id}")
        return WriteAck(conversation_id=conversation_id, unit_id=unit_id, chunk_ids=ids)

    async def _discard_partial(self, conversation_id: str, active: MemoryCollection, ids: list[str]) -> None:
        """Remove whatever part of a failed batch reached the store."""
        if not ids:
            return
        try:
            removed = await active.delete(ids)
        except (StoreUnavailableError, StoreOperationError) as cleanup_error:
            logger.warning(
                f"Could not discard partial write for conversation {conversation_id}",
                error=cleanup_error,
                chunk_ids=ids,
            )
            return
        if removed:
            logger.warning(f"Discarded {removed} chunks of a partial write for conversation {conversation_id}")

    async def _restore(
        self,
        conversation_id: str,
        active: MemoryCollection,
        ids: list[str],
        replaced: list[StoredRecord],
        vectors: list[list[float]],
    ) -> None:
        """Put back chunks deleted ahead of a failed add on a store without upsert."""
        await self._discard_partial(conversation_id, active, ids)
        try:
            await active.add(
                ids=[record.id for record in replaced],
                documents=[record.text for record in replaced],
                metadatas=[record.metadata for record in replaced],
                embeddings=vectors,
            )
        except (StoreUnavailableError, StoreOperationError) as restore_error:
            logger.error(
                f"Could not restore replaced chunks for conversation {conversation_id}",
                error=restore_error,
                chunk_ids=[record.id for record in replaced],
            )
            return
        logger.warning(f"Restored {len(replaced)} replaced chunks for conversation {conversation_id}")
