"""Conversation memory endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from narrative_memory.api.dependencies import get_worker
from narrative_memory.core.base import ErrorCode
from narrative_memory.core.logging import get_logger
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
    UnitId,
)
from narrative_memory.worker import MemoryWorker

logger = get_logger(__name__)
router = APIRouter()

# Error codes that mean "try again later" rather than "this request failed"
UNAVAILABLE_CODES = {ErrorCode.NOT_INITIALIZED.value, ErrorCode.STORE_UNAVAILABLE.value}


class AddToMemoryRequest(BaseModel):
    """Request model for adding one unit (chapter/message) to memory."""

    unit_id: UnitId
    text: str


class GetContextRequest(BaseModel):
    """Request model for retrieving context."""

    query_text: str
    request_id: str | int | None = None
    regeneration_instruction: str | None = None


class ArchiveDataRequest(BaseModel):
    """Summary of a unit, answering a summarize-and-archive event."""

    unit_id: UnitId
    summary_text: str = Field(min_length=1)


def raise_for_error(event: Event) -> None:
    if isinstance(event, ErrorEvent):
        status_code = 503 if event.code in UNAVAILABLE_CODES else 500
        raise HTTPException(status_code=status_code, detail=event.model_dump(mode="json"))


async def run_command(worker: MemoryWorker, command: Command) -> Event:
    event = await worker.handle(command)
    raise_for_error(event)
    return event


@router.post("/{conversation_id}", response_model=CollectionReady, operation_id="create_collection")
async def create_collection(conversation_id: str, worker: MemoryWorker = Depends(get_worker)) -> Event:
    """Create (or confirm) both memory tiers of a conversation."""
    return await run_command(worker, CreateCollection(conversation_id=conversation_id))


@router.post("/{conversation_id}/memory", response_model=AddToMemoryDone, operation_id="add_to_memory")
async def add_to_memory(
    conversation_id: str,
    request: AddToMemoryRequest,
    worker: MemoryWorker = Depends(get_worker),
) -> Event:
    """Chunk a unit's text into the active tier; maintenance follows in the background."""
    logger.info(
        "Adding to memory", conversation_id=conversation_id, unit_id=request.unit_id, text_length=len(request.text)
    )
    command = AddToMemory(conversation_id=conversation_id, unit_id=request.unit_id, text=request.text)
    return await run_command(worker, command)


@router.post("/{conversation_id}/context", response_model=ContextRetrieved, operation_id="get_context")
async def get_context(
    conversation_id: str,
    request: GetContextRequest,
    worker: MemoryWorker = Depends(get_worker),
) -> ContextRetrieved:
    """Retrieve merged context for a query.

    A failed retrieval answers with an empty context so the caller can carry on without it.
    """
    event = await worker.handle(
        GetContext(
            conversation_id=conversation_id,
            query_text=request.query_text,
            request_id=request.request_id,
            regeneration_instruction=request.regeneration_instruction,
        )
    )
    if isinstance(event, ContextRetrieved):
        return event
    logger.warning("Returning empty context after retrieval failure", conversation_id=conversation_id)
    return ContextRetrieved(
        conversation_id=conversation_id,
        context="",
        request_id=request.request_id,
        regeneration_instruction=request.regeneration_instruction,
    )


@router.post("/{conversation_id}/archive", response_model=ArchiveDone, operation_id="archive_data")
async def archive_data(
    conversation_id: str,
    request: ArchiveDataRequest,
    worker: MemoryWorker = Depends(get_worker),
) -> Event:
    """Completion callback: store a unit's summary and retire its chunks."""
    command = ArchiveData(conversation_id=conversation_id, unit_id=request.unit_id, summary_text=request.summary_text)
    return await run_command(worker, command)


@router.post("/{conversation_id}/clear", response_model=CollectionCleared, operation_id="clear_collection")
async def clear_collection(conversation_id: str, worker: MemoryWorker = Depends(get_worker)) -> Event:
    """Empty both tiers of a conversation and recreate them."""
    return await run_command(worker, ClearCollection(conversation_id=conversation_id))


@router.delete("/{conversation_id}", response_model=CollectionDeleted, operation_id="delete_collection")
async def delete_collection(conversation_id: str, worker: MemoryWorker = Depends(get_worker)) -> Event:
    """Drop both tiers of a conversation; unknown conversations succeed too."""
    return await run_command(worker, DeleteCollection(conversation_id=conversation_id))
