"""Neo4j-backed collection store."""

from typing import Any

from neo4j import AsyncDriver

from narrative_memory.core.errors import CollectionAbsentError
from narrative_memory.core.logging import get_logger
from narrative_memory.domain.models import QueryMatch, StoredRecord
from narrative_memory.infrastructure.neo4j.driver import Neo4jQuery
from narrative_memory.infrastructure.neo4j.queries import (
    METADATA_PREFIX,
    CollectionQueries,
    RecordQueries,
)

logger = get_logger(__name__)


def flatten_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Prefix metadata keys so they cannot collide with record properties."""
    return {f"{METADATA_PREFIX}{key}": value for key, value in metadata.items()}


def unflatten_metadata(properties: dict[str, Any]) -> dict[str, Any]:
    """Reconstruct metadata from prefixed node properties."""
    prefix_len = len(METADATA_PREFIX)
    return {key[prefix_len:]: value for key, value in properties.items() if key.startswith(METADATA_PREFIX)}


class Neo4jCollectionStore:
    """Collection store keeping every conversation tier as a named collection of nodes."""

    # add() MERGEs on (collection, record_id)
    upserts = True

    def __init__(self, driver: AsyncDriver):
        self.driver = driver
        self._query = Neo4jQuery(driver)

    async def create_collection(self, name: str) -> None:
        query, _ = CollectionQueries.create_collection()
        await self._query.execute_value(query, {"name": name}, operation="create_collection", collection=name)

    async def collection_exists(self, name: str) -> bool:
        query, _ = CollectionQueries.collection_exists()
        exists = await self._query.execute_value(
            query, {"name": name}, operation="collection_exists", collection=name
        )
        return bool(exists)

    async def drop_collection(self, name: str) -> None:
        if not await self.collection_exists(name):
            raise CollectionAbsentError(
                message=f"Collection {name} does not exist",
                details={"source": "neo4j_store", "operation": "drop_collection"},
            )
        records_query, _ = CollectionQueries.delete_collection_records()
        node_query, _ = CollectionQueries.delete_collection_node()
        await self._query.execute_write(
            [(records_query, {"name": name}), (node_query, {"name": name})],
            operation="drop_collection",
            collection=name,
        )
        logger.debug(f"Dropped collection {name}")

    async def add(
        self,
        collection: str,
        ids: list[str],
        documents: list[str],
        embeddings: list[list[float]],
        metadatas: list[dict[str, Any]],
    ) -> None:
        if not (len(ids) == len(documents) == len(embeddings) == len(metadatas)):
            raise ValueError("ids, documents, embeddings and metadatas must have the same length")
        if not ids:
            return

        rows = [
            {
                "id": record_id,
                "text": text,
                "embedding": [float(x) for x in vector],
                "metadata": flatten_metadata(metadata),
            }
            for record_id, text, vector, metadata in zip(ids, documents, embeddings, metadatas, strict=True)
        ]
        query, _ = RecordQueries.upsert_records()
        await self._query.execute_value(
            query, {"collection": collection, "rows": rows}, operation="add", collection=collection
        )

    async def query(self, collection: str, embedding: list[float], limit: int) -> list[QueryMatch]:
        if limit <= 0:
            return []
        query, _ = RecordQueries.similarity_search()
        rows = await self._query.execute_list(
            query,
            {"collection": collection, "embedding": [float(x) for x in embedding], "limit": limit},
            operation="query",
            collection=collection,
        )
        return [
            QueryMatch(
                id=row["id"],
                text=row["text"],
                score=float(row["score"] or 0.0),
                metadata=unflatten_metadata(row["props"]),
            )
            for row in rows
        ]

    async def get(self, collection: str, where: dict[str, Any] | None = None) -> list[StoredRecord]:
        query, _ = RecordQueries.get_records()
        rows = await self._query.execute_list(
            query,
            {"collection": collection, "where": flatten_metadata(where or {})},
            operation="get",
            collection=collection,
        )
        return [
            StoredRecord(id=row["id"], text=row["text"], metadata=unflatten_metadata(row["props"]))
            for row in rows
        ]

    async def delete(self, collection: str, ids: list[str]) -> int:
        if not ids:
            return 0
        query, _ = RecordQueries.delete_records()
        deleted = await self._query.execute_value(
            query, {"collection": collection, "ids": ids}, operation="delete", collection=collection
        )
        return int(deleted or 0)
