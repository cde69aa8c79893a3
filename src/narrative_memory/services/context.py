"""Lifecycle of the collaborators shared by every memory operation.

A single ``MemoryContext`` is constructed at startup and injected into each
component. Operations call ``require_ready()`` first, so nothing touches the store
or the embedding model before ``initialize()`` has completed.
"""

from enum import Enum

from neo4j import AsyncDriver

from narrative_memory.core.config import Settings
from narrative_memory.core.errors import NotInitializedError, StoreUnavailableError
from narrative_memory.core.logging import get_logger
from narrative_memory.infrastructure.embeddings.factory import build_embedding_service
from narrative_memory.infrastructure.neo4j.driver import create_neo4j_driver, ensure_schema
from narrative_memory.infrastructure.neo4j.store import Neo4jCollectionStore
from narrative_memory.services import CollectionStore, EmbeddingService

logger = get_logger(__name__)


class ContextState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSED = "closed"


class MemoryContext:
    """Holds the store and embedding collaborators and their readiness."""

    def __init__(
        self,
        settings: Settings,
        embeddings: EmbeddingService | None = None,
        store: CollectionStore | None = None,
    ):
        self.settings = settings
        self._embeddings = embeddings
        self._store = store
        self._driver: AsyncDriver | None = None
        self.state = ContextState.UNINITIALIZED

    @property
    def is_ready(self) -> bool:
        return self.state == ContextState.READY

    async def initialize(self) -> None:
        """Build any collaborator not injected at construction and mark the context ready.

        Raises:
            StoreUnavailableError: If the store cannot be reached
            EmbeddingError: If the embedding model cannot be loaded
        """
        if self.is_ready:
            return
        logger.info("Initializing memory context...")

        if self._store is None:
            driver = await create_neo4j_driver(self.settings)
            try:
                await ensure_schema(driver)
            except Exception:
                await driver.close()
                raise
            self._driver = driver
            self._store = Neo4jCollectionStore(driver)

        if self._embeddings is None:
            try:
                self._embeddings = await build_embedding_service(self.settings)
            except Exception:
                await self._close_driver()
                raise

        self.state = ContextState.READY
        logger.info("Memory context initialized successfully")

    def require_ready(self) -> None:
        """Fail fast when collaborators are not loaded.

        Raises:
            NotInitializedError: If ``initialize()`` has not completed
        """
        if not self.is_ready:
            raise NotInitializedError(
                details={"source": "memory_context", "operation": "require_ready", "stage": self.state.value}
            )

    @property
    def store(self) -> CollectionStore:
        self.require_ready()
        if self._store is None:
            raise StoreUnavailableError("Collection store is not configured")
        return self._store

    @property
    def embeddings(self) -> EmbeddingService:
        self.require_ready()
        if self._embeddings is None:
            raise NotInitializedError("Embedding service is not configured")
        return self._embeddings

    async def _close_driver(self) -> None:
        if self._driver is not None:
            await self._driver.close()
            self._driver = None
            self._store = None

    async def close(self) -> None:
        await self._close_driver()
        self.state = ContextState.CLOSED
        logger.info("Memory context closed")
