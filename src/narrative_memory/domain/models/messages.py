"""Commands accepted by the memory worker and events it emits.

Both sides are closed discriminated unions keyed on ``type``, so a payload parsed
with ``CommandAdapter``/``EventAdapter`` is always one of the variants below.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

from .records import UnitId
from .utils import epoch_millis


class BaseCommand(BaseModel):
    conversation_id: str = Field(min_length=1)


class AddToMemory(BaseCommand):
    """Chunk ``text`` of one unit into the conversation's active tier."""

    type: Literal["add-to-memory"] = "add-to-memory"
    unit_id: UnitId
    text: str


class GetContext(BaseCommand):
    """Retrieve merged context for ``query_text``."""

    type: Literal["get-context"] = "get-context"
    query_text: str
    request_id: str | int | None = None
    regeneration_instruction: str | None = None


class ArchiveData(BaseCommand):
    """Completion callback carrying a unit's summary back from the summarizer."""

    type: Literal["archive-data"] = "archive-data"
    unit_id: UnitId
    summary_text: str


class CreateCollection(BaseCommand):
    type: Literal["create-collection"] = "create-collection"


class ClearCollection(BaseCommand):
    type: Literal["clear-collection"] = "clear-collection"


class DeleteCollection(BaseCommand):
    type: Literal["delete-collection"] = "delete-collection"


class RunMaintenance(BaseCommand):
    """Internal: enqueued by the worker after every successful write."""

    type: Literal["run-maintenance"] = "run-maintenance"


Command = Annotated[
    AddToMemory
    | GetContext
    | ArchiveData
    | CreateCollection
    | ClearCollection
    | DeleteCollection
    | RunMaintenance,
    Field(discriminator="type"),
]

CommandAdapter: TypeAdapter[Command] = TypeAdapter(Command)


class BaseEvent(BaseModel):
    emitted_at: int = Field(default_factory=epoch_millis)


class AddToMemoryDone(BaseEvent):
    type: Literal["add-to-memory-done"] = "add-to-memory-done"
    conversation_id: str
    unit_id: UnitId
    chunk_count: int


class ContextRetrieved(BaseEvent):
    type: Literal["context-retrieved"] = "context-retrieved"
    conversation_id: str
    context: str
    request_id: str | int | None = None
    regeneration_instruction: str | None = None


class SummarizeAndArchive(BaseEvent):
    """Request for the external summarizer; answered with an ``ArchiveData`` command."""

    type: Literal["summarize-and-archive"] = "summarize-and-archive"
    conversation_id: str
    unit_id: UnitId
    full_text: str


class ArchiveDone(BaseEvent):
    type: Literal["archive-done"] = "archive-done"
    conversation_id: str
    unit_id: UnitId
    purged_chunks: int


class CollectionReady(BaseEvent):
    type: Literal["collection-ready"] = "collection-ready"
    conversation_id: str


class CollectionCleared(BaseEvent):
    type: Literal["collection-cleared"] = "collection-cleared"
    conversation_id: str


class CollectionDeleted(BaseEvent):
    type: Literal["collection-deleted"] = "collection-deleted"
    conversation_id: str


class MaintenanceDone(BaseEvent):
    type: Literal["maintenance-done"] = "maintenance-done"
    conversation_id: str
    requested_units: list[UnitId] = Field(default_factory=list)


class Ready(BaseEvent):
    type: Literal["ready"] = "ready"


class LogEvent(BaseEvent):
    type: Literal["log"] = "log"
    message: str
    conversation_id: str | None = None


class ErrorEvent(BaseEvent):
    type: Literal["error"] = "error"
    message: str
    code: str
    conversation_id: str | None = None
    unit_id: UnitId | None = None
    request_id: str | int | None = None
    command: str | None = None


Event = Annotated[
    AddToMemoryDone
    | ContextRetrieved
    | SummarizeAndArchive
    | ArchiveDone
    | CollectionReady
    | CollectionCleared
    | CollectionDeleted
    | MaintenanceDone
    | Ready
    | LogEvent
    | ErrorEvent,
    Field(discriminator="type"),
]

EventAdapter: TypeAdapter[Event] = TypeAdapter(Event)
