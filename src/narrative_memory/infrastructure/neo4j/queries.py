"""Centralized query definitions.

This is the single place Cypher for the collection store lives. Records are
``:MemoryRecord`` nodes keyed by ``(collection, record_id)``; collections are
``:MemoryCollection`` nodes so that an empty collection still exists.
"""

from typing import Any, LiteralString

# Prefix for flattened metadata properties on :MemoryRecord nodes
METADATA_PREFIX = "meta_"


class SchemaQueries:
    """Constraints the collection store relies on."""

    @staticmethod
    def record_key_constraint() -> tuple[LiteralString, dict[str, Any]]:
        query = """
            CREATE CONSTRAINT memory_record_key IF NOT EXISTS
            FOR (r:MemoryRecord) REQUIRE (r.collection, r.record_id) IS UNIQUE
            """
        return query, {}

    @staticmethod
    def collection_name_constraint() -> tuple[LiteralString, dict[str, Any]]:
        query = """
            CREATE CONSTRAINT memory_collection_name IF NOT EXISTS
            FOR (c:MemoryCollection) REQUIRE c.name IS UNIQUE
            """
        return query, {}


class CollectionQueries:
    """Collection lifecycle queries."""

    @staticmethod
    def create_collection() -> tuple[LiteralString, dict[str, Any]]:
        query = """
            MERGE (c:MemoryCollection {name: $name})
            ON CREATE SET c.created_at = timestamp()
            RETURN c.name AS name
            """
        return query, {}

    @staticmethod
    def collection_exists() -> tuple[LiteralString, dict[str, Any]]:
        query = """
            OPTIONAL MATCH (c:MemoryCollection {name: $name})
            RETURN c IS NOT NULL AS exists
            """
        return query, {}

    @staticmethod
    def delete_collection_records() -> tuple[LiteralString, dict[str, Any]]:
        query = """
            MATCH (r:MemoryRecord {collection: $name})
            DETACH DELETE r
            """
        return query, {}

    @staticmethod
    def delete_collection_node() -> tuple[LiteralString, dict[str, Any]]:
        query = """
            MATCH (c:MemoryCollection {name: $name})
            DELETE c
            RETURN count(*) AS dropped
            """
        return query, {}


class RecordQueries:
    """Record-level queries, all scoped to one collection."""

    @staticmethod
    def upsert_records() -> tuple[LiteralString, dict[str, Any]]:
        """MERGE by (collection, record_id) so re-adding an id overwrites it.

        Expects ``$rows`` as a list of ``{id, text, embedding, metadata}`` maps with
        metadata keys already prefixed.
        """
        query = """
            UNWIND $rows AS row
            MERGE (r:MemoryRecord {collection: $collection, record_id: row.id})
            SET r.text = row.text,
                r.embedding = row.embedding
            SET r += row.metadata
            RETURN count(r) AS written
            """
        return query, {}

    @staticmethod
    def similarity_search() -> tuple[LiteralString, dict[str, Any]]:
        """Exact cosine ranking inside one collection.

        Scoping by collection before ranking keeps results from other
        conversations out of the top ``$limit``.
        """
        query = """
            MATCH (r:MemoryRecord {collection: $collection})
            WITH r, vector.similarity.cosine(r.embedding, $embedding) AS score
            ORDER BY score DESC
            LIMIT $limit
            RETURN r.record_id AS id, r.text AS text, score, properties(r) AS props
            """
        return query, {}

    @staticmethod
    def get_records() -> tuple[LiteralString, dict[str, Any]]:
        """Records whose properties match every entry of ``$where``."""
        query = """
            MATCH (r:MemoryRecord {collection: $collection})
            WHERE all(key IN keys($where) WHERE r[key] = $where[key])
            RETURN r.record_id AS id, r.text AS text, properties(r) AS props
            ORDER BY r.record_id
            """
        return query, {}

    @staticmethod
    def delete_records() -> tuple[LiteralString, dict[str, Any]]:
        query = """
            MATCH (r:MemoryRecord {collection: $collection})
            WHERE r.record_id IN $ids
            DETACH DELETE r
            RETURN count(*) AS deleted
            """
        return query, {}
