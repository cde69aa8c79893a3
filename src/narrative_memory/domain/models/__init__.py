"""Domain models for narrative memory."""

from .messages import (
    AddToMemory,
    AddToMemoryDone,
    ArchiveData,
    ArchiveDone,
    ClearCollection,
    CollectionCleared,
    CollectionDeleted,
    CollectionReady,
    Command,
    CommandAdapter,
    ContextRetrieved,
    CreateCollection,
    DeleteCollection,
    ErrorEvent,
    Event,
    EventAdapter,
    GetContext,
    LogEvent,
    MaintenanceDone,
    Ready,
    RunMaintenance,
    SummarizeAndArchive,
)
from .records import (
    ArchiveAck,
    ChunkRecord,
    QueryMatch,
    StoredRecord,
    SummaryRecord,
    UnitId,
    WriteAck,
    chunk_id,
    normalize_unit_id,
    summary_id,
    unit_sort_key,
)

__all__ = [
    # Commands
    "AddToMemory",
    "ArchiveData",
    "ClearCollection",
    "Command",
    "CommandAdapter",
    "CreateCollection",
    "DeleteCollection",
    "GetContext",
    "RunMaintenance",
    # Events
    "AddToMemoryDone",
    "ArchiveDone",
    "CollectionCleared",
    "CollectionDeleted",
    "CollectionReady",
    "ContextRetrieved",
    "ErrorEvent",
    "Event",
    "EventAdapter",
    "LogEvent",
    "MaintenanceDone",
    "Ready",
    "SummarizeAndArchive",
    # Records
    "ArchiveAck",
    "ChunkRecord",
    "QueryMatch",
    "StoredRecord",
    "SummaryRecord",
    "UnitId",
    "WriteAck",
    "chunk_id",
    "normalize_unit_id",
    "summary_id",
    "unit_sort_key",
]
