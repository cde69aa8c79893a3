"""Narrative Memory FastAPI application.

Starts one ``MemoryWorker`` for the lifetime of the process and exposes its
commands and event queue over HTTP.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import logfire
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from narrative_memory import __version__
from narrative_memory.api import dependencies, router
from narrative_memory.core.config import settings
from narrative_memory.core.logging import get_logger, setup_logging
from narrative_memory.services.context import MemoryContext
from narrative_memory.worker import MemoryWorker

# Logfire only exports when LOGFIRE_TOKEN is set
logfire.configure(service_name="narrative-memory", send_to_logfire="if-token-present")
setup_logging(settings)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Application lifecycle manager for the memory worker."""
    logger.info("Starting Narrative Memory application...")

    worker = MemoryWorker(MemoryContext(settings))
    dependencies.worker = worker
    try:
        if await worker.start():
            logger.info("Narrative Memory application started successfully")
        else:
            logger.warning("Memory context unavailable, requests will be rejected until restart")

        yield  # Application is running

    finally:
        logger.info("Shutting down Narrative Memory...")
        await worker.shutdown()
        dependencies.worker = None
        logger.info("Narrative Memory shutdown complete")


app = FastAPI(
    title="Narrative Memory API",
    description="Tiered long-term memory for long-running conversations",
    version=__version__,
    lifespan=lifespan,
)

# Enable FastAPI instrumentation for request tracing
logfire.instrument_fastapi(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


def run() -> None:
    """Serve the application with uvicorn."""
    uvicorn.run("narrative_memory.main:app", host="0.0.0.0", port=8000, log_level=settings.log_level.lower())


if __name__ == "__main__":
    logger.info("Starting Narrative Memory development server...")
    run()
