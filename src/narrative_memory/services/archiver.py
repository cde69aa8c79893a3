"""Moves a summarized unit from the active tier to the archive tier."""

from narrative_memory.core.base import ErrorLevel
from narrative_memory.core.decorators import with_error_handling
from narrative_memory.core.errors import NotInitializedError, WriteFailedError
from narrative_memory.core.logging import get_logger
from narrative_memory.domain.models import ArchiveAck, SummaryRecord, UnitId, normalize_unit_id, summary_id
from narrative_memory.services.collections import CollectionResolver, MemoryCollection

logger = get_logger(__name__)


async def purge_unit_chunks(active: MemoryCollection, unit_id: UnitId) -> int:
    """Delete every active-tier chunk of ``unit_id``, returning how many were removed."""
    ids = [record.id for record in await active.get({"unit_id": unit_id})]
    if not ids:
        return 0
    return await active.delete(ids)


class Archiver:
    """Commits a unit's summary, then deletes the unit's raw chunks.

    The summary is written under a fixed id, so re-running ``archive`` with the
    same arguments overwrites it. A failure after the summary was committed
    leaves the unit in both tiers until the next attempt or maintenance pass
    finishes the purge; it never leaves the unit in neither.
    """

    def __init__(self, resolver: CollectionResolver):
        self.resolver = resolver

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def archive(self, conversation_id: str, unit_id: UnitId, summary_text: str) -> ArchiveAck:
        """Archive one unit under ``summary_text``.

        Raises:
            NotInitializedError: If the memory context is not ready
            StoreUnavailableError: If the collections cannot be resolved
            WriteFailedError: With stage ``summary`` if nothing changed, or ``purge``
                if the summary is stored but stale chunks remain
        """
        unit_id = normalize_unit_id(unit_id)
        collections = await self.resolver.resolve(conversation_id)
        record = SummaryRecord(id=summary_id(unit_id), text=summary_text, unit_id=unit_id)

        try:
            await collections.archive.add(
                ids=[record.id],
                documents=[record.text],
                metadatas=[record.metadata()],
            )
        except NotInitializedError:
            raise
        except Exception as e:
            raise WriteFailedError(
                message=f"Failed to store summary of unit {unit_id} for conversation {conversation_id}: {e!s}",
                details={
                    "source": "archiver",
                    "operation": "archive",
                    "conversation_id": conversation_id,
                    "unit_id": unit_id,
                    "stage": "summary",
                },
            ) from e

        try:
            purged = await purge_unit_chunks(collections.active, unit_id)
        except NotInitializedError:
            raise
        except Exception as e:
            raise WriteFailedError(
                message=(
                    f"Summary of unit {unit_id} is stored but its chunks could not be removed "
                    f"for conversation {conversation_id}: {e!s}"
                ),
                details={
                    "source": "archiver",
                    "operation": "archive",
                    "conversation_id": conversation_id,
                    "unit_id": unit_id,
                    "stage": "purge",
                },
            ) from e

        logger.info(f"Archived unit {unit_id} for conversation {conversation_id}, purged {purged} chunks")
        return ArchiveAck(
            conversation_id=conversation_id,
            unit_id=unit_id,
            summary_id=record.id,
            purged_chunks=purged,
        )
