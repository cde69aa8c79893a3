"""Message boundary of the memory core.

``MemoryWorker`` accepts the ``Command`` union and answers every command with
exactly one response event. Additional events (archival requests, log lines,
errors) are published on an ``EventBus`` that callers drain.

Commands that mutate a conversation run one at a time on that conversation's
lane; different conversations, and context retrieval, run concurrently.
"""

import asyncio
from collections import Counter
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from contextlib import asynccontextmanager
from typing import Any, assert_never

from narrative_memory.core.base import ApplicationError, ErrorCode
from narrative_memory.core.logging import bind_operation, get_logger
from narrative_memory.domain.models import (
    AddToMemory,
    AddToMemoryDone,
    ArchiveData,
    ArchiveDone,
    ClearCollection,
    CollectionCleared,
    CollectionDeleted,
    CollectionReady,
    Command,
    ContextRetrieved,
    CreateCollection,
    DeleteCollection,
    ErrorEvent,
    Event,
    GetContext,
    LogEvent,
    MaintenanceDone,
    Ready,
    RunMaintenance,
)
from narrative_memory.services import Summarizer
from narrative_memory.services.archiver import Archiver
from narrative_memory.services.chunker import Chunker
from narrative_memory.services.collections import (
    CollectionResolver,
    active_collection_name,
    archive_collection_name,
)
from narrative_memory.services.context import MemoryContext
from narrative_memory.services.maintenance import MaintenanceScheduler
from narrative_memory.services.retriever import Retriever
from narrative_memory.services.summarization import SummarizationBridge
from narrative_memory.services.writer import ActiveMemoryWriter

logger = get_logger(__name__)

Listener = Callable[[Event], Awaitable[None]]


class EventBus:
    """Bounded outbound event queue.

    Publishing never blocks: when the queue is full the oldest event is dropped.
    """

    def __init__(self, maxsize: int = 1000):
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, event: Event) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            oldest = self._queue.get_nowait()
            self.dropped += 1
            logger.warning(f"Event queue full, dropped oldest '{oldest.type}' event", dropped=self.dropped)
            self._queue.put_nowait(event)

    async def get(self, timeout: float | None = None) -> Event | None:
        """Wait for the next event, or return None after ``timeout`` seconds."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except TimeoutError:
            return None

    async def collect(self, max_events: int = 100, timeout: float = 0.0) -> list[Event]:
        """Return up to ``max_events`` queued events, waiting at most ``timeout`` for the first."""
        events: list[Event] = []
        if max_events <= 0:
            return events
        first = self._queue.get_nowait() if not self._queue.empty() else None
        if first is None and timeout > 0:
            first = await self.get(timeout)
        if first is None:
            return events
        events.append(first)
        while len(events) < max_events and not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    def qsize(self) -> int:
        return self._queue.qsize()


class MemoryWorker:
    """Routes commands to the memory components and publishes their events."""

    def __init__(
        self,
        context: MemoryContext,
        bus: EventBus | None = None,
        summarizer: Summarizer | None = None,
    ):
        settings = context.settings
        self.context = context
        self.bus = bus or EventBus(settings.event_queue_size)
        self.resolver = CollectionResolver(context)
        self.writer = ActiveMemoryWriter(self.resolver, Chunker(settings.chunk_size, settings.chunk_overlap))
        self.scheduler = MaintenanceScheduler.from_settings(self.resolver, settings)
        self.archiver = Archiver(self.resolver)
        self.retriever = Retriever.from_settings(self.resolver, settings)

        self._lanes: dict[str, asyncio.Lock] = {}
        self._lane_users: Counter[str] = Counter()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: list[Listener] = []
        if summarizer is not None:
            self.subscribe(SummarizationBridge(summarizer, self.handle).on_event)

    def subscribe(self, listener: Listener) -> None:
        """Call ``listener`` in the background for every published event."""
        self._listeners.append(listener)

    async def start(self) -> bool:
        """Initialize the memory context and announce readiness.

        Returns:
            Whether the worker is ready; on failure commands keep failing with
            ``NotInitializedError`` and an error event is published.
        """
        try:
            await self.context.initialize()
        except ApplicationError as e:
            logger.error(f"Memory worker failed to start: {e.message}", error=e)
            self._emit(ErrorEvent(message=e.message, code=e.code.value))
            return False
        except Exception as e:
            logger.exception("Memory worker failed to start")
            message = f"Memory worker failed to start: {e!s}"
            self._emit(ErrorEvent(message=message, code=ErrorCode.PROCESSING_FAILED.value))
            return False
        self._emit(Ready())
        logger.info("Memory worker ready")
        return True

    def submit(self, command: Command) -> asyncio.Task[Event]:
        """Schedule ``command`` and return the task resolving to its response event."""
        return self._spawn(self.handle(command))

    async def handle(self, command: Command) -> Event:
        """Run ``command`` to completion and return its response event.

        Never raises: failures are returned (and published) as ``ErrorEvent``.
        """
        request_id = command.request_id if isinstance(command, GetContext) else None
        with bind_operation(command=command.type, conversation_id=command.conversation_id, request_id=request_id):
            try:
                if isinstance(command, GetContext):
                    event = await self._dispatch(command)
                else:
                    async with self._lane(command.conversation_id):
                        event = await self._dispatch(command)
            except ApplicationError as e:
                event = self._error_event(command, e.message, e.code.value, e.unit_id)
            except Exception as e:
                logger.exception(f"Unexpected failure handling '{command.type}'")
                event = self._error_event(command, str(e), ErrorCode.PROCESSING_FAILED.value)

        self._emit(event)
        return event

    async def _dispatch(self, command: Command) -> Event:
        conversation_id = command.conversation_id
        match command:
            case AddToMemory():
                ack = await self.writer.add_to_memory(conversation_id, command.unit_id, command.text)
                if ack.chunk_count:
                    self.submit(RunMaintenance(conversation_id=conversation_id))
                return AddToMemoryDone(
                    conversation_id=conversation_id,
                    unit_id=command.unit_id,
                    chunk_count=ack.chunk_count,
                )

            case GetContext():
                context = await self.retriever.get_context(conversation_id, command.query_text)
                return ContextRetrieved(
                    conversation_id=conversation_id,
                    context=context,
                    request_id=command.request_id,
                    regeneration_instruction=command.regeneration_instruction,
                )

            case ArchiveData():
                ack = await self.archiver.archive(conversation_id, command.unit_id, command.summary_text)
                self.scheduler.mark_archived(conversation_id, command.unit_id)
                return ArchiveDone(
                    conversation_id=conversation_id,
                    unit_id=command.unit_id,
                    purged_chunks=ack.purged_chunks,
                )

            case CreateCollection():
                await self.resolver.resolve(conversation_id)
                return CollectionReady(conversation_id=conversation_id)

            case ClearCollection():
                await self._drop_tiers(conversation_id)
                await self.resolver.resolve(conversation_id)
                return CollectionCleared(conversation_id=conversation_id)

            case DeleteCollection():
                await self._drop_tiers(conversation_id)
                return CollectionDeleted(conversation_id=conversation_id)

            case RunMaintenance():
                requests = await self.scheduler.run_maintenance(conversation_id)
                for request in requests:
                    self._emit(request)
                return MaintenanceDone(
                    conversation_id=conversation_id,
                    requested_units=[request.unit_id for request in requests],
                )

            case _:
                assert_never(command)

    async def _drop_tiers(self, conversation_id: str) -> None:
        dropped = await self.resolver.drop(conversation_id)
        self.scheduler.forget(conversation_id)
        for name in (active_collection_name(conversation_id), archive_collection_name(conversation_id)):
            if name not in dropped:
                self._emit(LogEvent(message=f"Collection {name} did not exist", conversation_id=conversation_id))

    def _error_event(
        self, command: Command, message: str, code: str, unit_id: Any = None
    ) -> ErrorEvent:
        if unit_id is None and isinstance(command, AddToMemory | ArchiveData):
            unit_id = command.unit_id
        return ErrorEvent(
            message=message,
            code=code,
            conversation_id=command.conversation_id,
            unit_id=unit_id,
            request_id=command.request_id if isinstance(command, GetContext) else None,
            command=command.type,
        )

    @asynccontextmanager
    async def _lane(self, conversation_id: str) -> AsyncIterator[None]:
        lock = self._lanes.setdefault(conversation_id, asyncio.Lock())
        self._lane_users[conversation_id] += 1
        try:
            async with lock:
                yield
        finally:
            # Released once no command holds or waits for the lane
            self._lane_users[conversation_id] -= 1
            if not self._lane_users[conversation_id]:
                del self._lane_users[conversation_id]
                del self._lanes[conversation_id]

    def _emit(self, event: Event) -> None:
        self.bus.publish(event)
        for listener in self._listeners:
            self._spawn(listener(event))

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed", error=task.exception())

    async def drain(self) -> None:
        """Wait until no command or listener task is in flight, including ones they spawn."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        await self.drain()
        await self.context.close()
        logger.info("Memory worker stopped")
