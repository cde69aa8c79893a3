"""API dependencies."""

from fastapi import HTTPException

from narrative_memory.worker import MemoryWorker

# Set by the main.py lifespan
worker: MemoryWorker | None = None


async def get_worker() -> MemoryWorker:
    """Get the memory worker started by the application lifespan."""
    if worker is None:
        raise HTTPException(status_code=503, detail="Memory worker not started")
    return worker
