"""In-process hand-off between archival requests and a summarizer.

Without a bridge, ``SummarizeAndArchive`` events are only published and an
external client answers them with an ``archive-data`` command. With a bridge the
same round trip happens inside the process.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from narrative_memory.core.logging import bind_operation, get_logger
from narrative_memory.domain.models import ArchiveData, Event, SummarizeAndArchive
from narrative_memory.services import Summarizer

logger = get_logger(__name__)

Dispatch = Callable[[ArchiveData], Awaitable[Any]]


class SummarizationBridge:
    """Feeds summaries produced by ``summarizer`` back as ``ArchiveData`` commands."""

    def __init__(self, summarizer: Summarizer, dispatch: Dispatch):
        self.summarizer = summarizer
        self.dispatch = dispatch

    async def on_event(self, event: Event) -> None:
        if isinstance(event, SummarizeAndArchive):
            await self.summarize(event)

    async def summarize(self, request: SummarizeAndArchive) -> ArchiveData | None:
        """Summarize one unit and dispatch the completion.

        A failed summary is logged and dropped; the unit stays pending and is
        requested again by a later maintenance pass once the request times out.
        """
        with bind_operation(
            operation="summarize", conversation_id=request.conversation_id, unit_id=request.unit_id
        ):
            try:
                summary = await self.summarizer.summarize(
                    request.full_text, request.conversation_id, request.unit_id
                )
            except Exception as e:
                logger.error(f"Summarizer failed for unit {request.unit_id}", error=e)
                return None

            if not summary.strip():
                logger.warning(f"Summarizer returned an empty summary for unit {request.unit_id}")
                return None

            command = ArchiveData(
                conversation_id=request.conversation_id,
                unit_id=request.unit_id,
                summary_text=summary,
            )
            await self.dispatch(command)
            return command
