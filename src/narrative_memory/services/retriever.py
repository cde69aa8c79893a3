"""Context retrieval across both tiers of a conversation."""

import asyncio

from narrative_memory.core.base import ErrorLevel
from narrative_memory.core.config import Settings
from narrative_memory.core.decorators import with_error_handling
from narrative_memory.core.logging import get_logger
from narrative_memory.services.collections import CollectionResolver

logger = get_logger(__name__)

# How much of a produced context goes into the log line
CONTEXT_LOG_PREVIEW = 200


def wrap_summary(marker: str, summary: str) -> str:
    return f"[{marker}: {summary}]"


def merge_context(archive_texts: list[str], active_texts: list[str], marker: str, separator: str) -> str:
    """Merge archive summaries (wrapped, first) with active chunks.

    Duplicates are removed by exact string equality, keeping the first occurrence,
    so a wrapped summary never collides with a raw chunk of the same text.
    """
    combined = [wrap_summary(marker, text) for text in archive_texts] + active_texts
    return separator.join(dict.fromkeys(combined))


class Retriever:
    """Builds the context string for a query from the archive and active tiers."""

    def __init__(
        self,
        resolver: CollectionResolver,
        k_active: int = 5,
        k_archive: int = 2,
        marker: str = "Past summary",
        separator: str = "\n---\n",
    ):
        self.resolver = resolver
        self.k_active = k_active
        self.k_archive = k_archive
        self.marker = marker
        self.separator = separator

    @classmethod
    def from_settings(cls, resolver: CollectionResolver, settings: Settings) -> "Retriever":
        return cls(
            resolver,
            k_active=settings.k_active,
            k_archive=settings.k_archive,
            marker=settings.marker,
            separator=settings.context_separator,
        )

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def get_context(
        self,
        conversation_id: str,
        query_text: str,
        k_active: int | None = None,
        k_archive: int | None = None,
    ) -> str:
        """Return the merged context for ``query_text``; empty tiers give an empty string.

        Raises:
            NotInitializedError: If the memory context is not ready
            StoreUnavailableError: If the collections cannot be resolved
        """
        collections = await self.resolver.resolve(conversation_id)
        k_active = self.k_active if k_active is None else k_active
        k_archive = self.k_archive if k_archive is None else k_archive

        archive_matches, active_matches = await asyncio.gather(
            collections.archive.query(query_text, k_archive),
            collections.active.query(query_text, k_active),
        )

        context = merge_context(
            [match.text for match in archive_matches],
            [match.text for match in active_matches],
            self.marker,
            self.separator,
        )
        logger.info(
            f"Retrieved context for conversation {conversation_id}",
            archive_matches=len(archive_matches),
            active_matches=len(active_matches),
            preview=context[:CONTEXT_LOG_PREVIEW],
        )
        return context
