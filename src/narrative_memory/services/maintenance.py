"""Selection of units that have to leave the active tier.

A maintenance pass only *requests* archival: it reconstructs the full text of the
oldest excess units and returns one ``SummarizeAndArchive`` event per unit. The
destructive half happens in ``Archiver.archive`` once the summary comes back.

Requested units are remembered as pending so that a pass running before the
summary arrives does not ask for it again. A pending request expires after
``summarization_timeout`` seconds and is then re-issued, which makes delivery
at-least-once; the archiver tolerates the duplicate completion.
"""

import time
from collections.abc import Callable

from narrative_memory.core.config import Settings
from narrative_memory.core.errors import SummarizationPending
from narrative_memory.core.logging import get_logger
from narrative_memory.domain.models import (
    StoredRecord,
    SummarizeAndArchive,
    UnitId,
    normalize_unit_id,
    unit_sort_key,
)
from narrative_memory.services.archiver import purge_unit_chunks
from narrative_memory.services.collections import CollectionResolver, MemoryCollection

logger = get_logger(__name__)


def _chunk_position(record: StoredRecord) -> int:
    index = record.metadata.get("chunk_index")
    if isinstance(index, int):
        return index
    # Fall back to the trailing index of "unit:<id>:chunk:<i>"
    tail = record.id.rsplit(":", 1)[-1]
    return int(tail) if tail.isdigit() else 0


def reconstruct_text(chunks: list[StoredRecord]) -> str:
    """Join a unit's chunks in their original order with single spaces."""
    return " ".join(chunk.text for chunk in sorted(chunks, key=_chunk_position))


class MaintenanceScheduler:
    """Keeps the number of distinct units in each active tier under a ceiling."""

    def __init__(
        self,
        resolver: CollectionResolver,
        ceiling: int = 20,
        batch_size: int = 1,
        summarization_timeout: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.resolver = resolver
        self.ceiling = ceiling
        self.batch_size = batch_size
        self.summarization_timeout = summarization_timeout
        self._clock = clock
        # conversation_id -> unit_id -> time the summary was requested
        self._pending: dict[str, dict[UnitId, float]] = {}

    @classmethod
    def from_settings(cls, resolver: CollectionResolver, settings: Settings) -> "MaintenanceScheduler":
        return cls(
            resolver,
            ceiling=settings.active_unit_ceiling,
            batch_size=settings.archive_batch_size,
            summarization_timeout=settings.summarization_timeout_seconds,
        )

    def pending_units(self, conversation_id: str) -> list[UnitId]:
        return sorted(self._pending.get(conversation_id, {}), key=unit_sort_key)

    def mark_archived(self, conversation_id: str, unit_id: UnitId) -> None:
        pending = self._pending.get(conversation_id)
        if pending is None:
            return
        pending.pop(normalize_unit_id(unit_id), None)
        if not pending:
            del self._pending[conversation_id]

    def forget(self, conversation_id: str) -> None:
        """Drop pending state after the conversation's tiers were cleared or deleted."""
        self._pending.pop(conversation_id, None)

    async def run_maintenance(self, conversation_id: str) -> list[SummarizeAndArchive]:
        """Run one maintenance pass and return the archival requests it produced.

        Raises:
            NotInitializedError: If the memory context is not ready
            StoreUnavailableError: If the collections cannot be resolved
        """
        collections = await self.resolver.resolve(conversation_id)
        records = await collections.active.get()
        if not records:
            self.forget(conversation_id)
            return []

        by_unit: dict[UnitId, list[StoredRecord]] = {}
        for record in records:
            if record.unit_id is not None:
                by_unit.setdefault(record.unit_id, []).append(record)

        archived = {record.unit_id for record in await collections.archive.get() if record.unit_id is not None}
        for unit_id in [unit_id for unit_id in by_unit if unit_id in archived]:
            await self._finish_purge(conversation_id, collections.active, unit_id)
            del by_unit[unit_id]

        pending = self._pending.get(conversation_id, {})
        for unit_id in [unit_id for unit_id in pending if unit_id not in by_unit]:
            del pending[unit_id]

        units = sorted(by_unit, key=unit_sort_key)
        excess = len(units) - self.ceiling
        if excess <= 0:
            logger.debug(f"Active tier of conversation {conversation_id} holds {len(units)} units, nothing to archive")
            return []

        now = self._clock()
        requests: list[SummarizeAndArchive] = []
        for unit_id in units[:excess]:
            requested_at = pending.get(unit_id)
            if requested_at is not None and now - requested_at < self.summarization_timeout:
                self._log_pending(conversation_id, unit_id, now - requested_at)
                continue
            if len(requests) >= self.batch_size:
                break
            if requested_at is not None:
                logger.warning(f"Summary of unit {unit_id} timed out, requesting it again")
            requests.append(
                SummarizeAndArchive(
                    conversation_id=conversation_id,
                    unit_id=unit_id,
                    full_text=reconstruct_text(by_unit[unit_id]),
                )
            )
            self._pending.setdefault(conversation_id, {})[unit_id] = now

        if requests:
            logger.info(
                f"Requested archival of {len(requests)} units for conversation {conversation_id}",
                unit_ids=[request.unit_id for request in requests],
            )
        return requests

    async def _finish_purge(self, conversation_id: str, active: MemoryCollection, unit_id: UnitId) -> None:
        purged = await purge_unit_chunks(active, unit_id)
        self.mark_archived(conversation_id, unit_id)
        logger.info(f"Removed {purged} stale chunks of already archived unit {unit_id}")

    def _log_pending(self, conversation_id: str, unit_id: UnitId, waited: float) -> None:
        notice = SummarizationPending(
            message=f"Archival of unit {unit_id} is waiting for its summary ({waited:.0f}s)",
            details={
                "source": "maintenance_scheduler",
                "operation": "run_maintenance",
                "conversation_id": conversation_id,
                "unit_id": unit_id,
            },
        )
        logger.info(notice.message, error=notice, conversation_id=conversation_id, unit_id=unit_id)
