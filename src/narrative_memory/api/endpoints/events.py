"""Outbound event polling."""

from fastapi import APIRouter, Depends, Query

from narrative_memory.api.dependencies import get_worker
from narrative_memory.domain.models import Event
from narrative_memory.worker import MemoryWorker

router = APIRouter()


@router.get("", response_model=list[Event], operation_id="poll_events")
async def poll_events(
    max_events: int = Query(default=100, ge=1, le=1000),
    timeout: float = Query(default=0.0, ge=0.0, le=60.0, description="Seconds to wait for the first event"),
    worker: MemoryWorker = Depends(get_worker),
) -> list[Event]:
    """Long-poll queued events: archival requests, logs and errors."""
    return await worker.bus.collect(max_events=max_events, timeout=timeout)
