"""Core API endpoints."""

from fastapi import APIRouter, Depends

from narrative_memory import __version__
from narrative_memory.api.dependencies import get_worker
from narrative_memory.worker import MemoryWorker

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint with application status."""
    return {"message": "Narrative Memory API", "version": __version__, "status": "running"}


@router.get("/health", operation_id="health")
async def health_check(worker: MemoryWorker = Depends(get_worker)):
    """Health check endpoint reporting whether the memory context is ready."""
    state = worker.context.state
    return {
        "status": "healthy" if worker.context.is_ready else "degraded",
        "context": state.value,
        "queued_events": worker.bus.qsize(),
    }
