"""Shared fixtures for the narrative memory test suite."""

from typing import Any

import numpy as np
import pytest
import pytest_asyncio

from narrative_memory.core.config import Settings
from narrative_memory.core.errors import CollectionAbsentError, StoreOperationError
from narrative_memory.domain.models import QueryMatch, StoredRecord
from narrative_memory.infrastructure.embeddings.local import HashEmbeddingService
from narrative_memory.services.collections import CollectionResolver
from narrative_memory.services.context import MemoryContext


class FakeCollectionStore:
    """In-memory collection store.

    ``reject_duplicates`` makes ``add`` fail on ids that already exist, like stores
    without upsert. ``fail(op, ...)`` arms a one-shot failure for the next call of
    ``op``; ``fail_add_after(n)`` persists ``n`` records of the next add and then fails.
    """

    def __init__(self, reject_duplicates: bool = False):
        self.reject_duplicates = reject_duplicates
        self.upserts = not reject_duplicates
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.calls: list[tuple[str, str | None]] = []
        self._failures: dict[tuple[str, str | None], Exception] = {}
        self._partial_add: int | None = None

    def fail(self, op: str, error: Exception | None = None, collection: str | None = None) -> None:
        self._failures[(op, collection)] = error or StoreOperationError(f"injected {op} failure")

    def fail_add_after(self, persisted: int) -> None:
        self._partial_add = persisted

    def _maybe_fail(self, op: str, collection: str | None) -> None:
        self.calls.append((op, collection))
        for key in ((op, collection), (op, None)):
            if key in self._failures:
                raise self._failures.pop(key)

    def records(self, collection: str) -> dict[str, dict[str, Any]]:
        return self.collections.get(collection, {})

    async def create_collection(self, name: str) -> None:
        self._maybe_fail("create_collection", name)
        self.collections.setdefault(name, {})

    async def collection_exists(self, name: str) -> bool:
        return name in self.collections

    async def drop_collection(self, name: str) -> None:
        self._maybe_fail("drop_collection", name)
        if name not in self.collections:
            raise CollectionAbsentError(f"Collection {name} does not exist")
        del self.collections[name]

    async def add(
        self,
        collection: str,
        ids: list[str],
        documents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict[str, Any]],
    ) -> None:
        self._maybe_fail("add", collection)
        records = self.collections.setdefault(collection, {})
        if self.reject_duplicates:
            duplicates = [record_id for record_id in ids if record_id in records]
            if duplicates:
                raise StoreOperationError(f"duplicate ids: {duplicates}")
        rows = list(zip(ids, documents, embeddings, metadatas, strict=True))
        if self._partial_add is not None:
            persisted, self._partial_add = self._partial_add, None
            for record_id, text, vector, metadata in rows[:persisted]:
                records[record_id] = {"text": text, "embedding": vector, "metadata": dict(metadata)}
            raise StoreOperationError("injected partial add failure")
        for record_id, text, vector, metadata in rows:
            records[record_id] = {"text": text, "embedding": vector, "metadata": dict(metadata)}

    async def query(self, collection: str, embedding: list[float], limit: int) -> list[QueryMatch]:
        self._maybe_fail("query", collection)
        target = np.asarray(embedding)
        scored = [
            QueryMatch(
                id=record_id,
                text=record["text"],
                metadata=record["metadata"],
                score=float(np.dot(target, np.asarray(record["embedding"]))),
            )
            for record_id, record in self.records(collection).items()
        ]
        scored.sort(key=lambda match: match.score, reverse=True)
        return scored[:limit]

    async def get(self, collection: str, where: dict[str, Any] | None = None) -> list[StoredRecord]:
        self._maybe_fail("get", collection)
        where = where or {}
        return [
            StoredRecord(id=record_id, text=record["text"], metadata=record["metadata"])
            for record_id, record in sorted(self.records(collection).items())
            if all(record["metadata"].get(key) == value for key, value in where.items())
        ]

    async def delete(self, collection: str, ids: list[str]) -> int:
        self._maybe_fail("delete", collection)
        records = self.collections.get(collection, {})
        removed = 0
        for record_id in ids:
            if records.pop(record_id, None) is not None:
                removed += 1
        return removed


@pytest.fixture
def settings():
    """Settings independent of the environment and any .env file."""
    return Settings(_env_file=None, embedding_backend="hash", active_unit_ceiling=20, archive_batch_size=1)


@pytest.fixture
def store():
    return FakeCollectionStore()


@pytest.fixture
def embeddings():
    return HashEmbeddingService(dim=64)


@pytest_asyncio.fixture
async def context(settings, embeddings, store):
    ctx = MemoryContext(settings, embeddings=embeddings, store=store)
    await ctx.initialize()
    yield ctx
    await ctx.close()


@pytest.fixture
def resolver(context):
    return CollectionResolver(context)
