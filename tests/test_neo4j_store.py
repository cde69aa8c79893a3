from unittest.mock import AsyncMock, MagicMock

import pytest
from neo4j.exceptions import ClientError, ServiceUnavailable

from narrative_memory.core.errors import CollectionAbsentError, StoreOperationError, StoreUnavailableError
from narrative_memory.infrastructure.neo4j.driver import translate_neo4j_errors
from narrative_memory.infrastructure.neo4j.queries import RecordQueries
from narrative_memory.infrastructure.neo4j.store import Neo4jCollectionStore, flatten_metadata, unflatten_metadata
from narrative_memory.services import CollectionStore


@pytest.fixture
def neo4j_store():
    store = Neo4jCollectionStore(MagicMock())
    store._query = AsyncMock()
    return store


def test_metadata_round_trip_ignores_node_properties():
    flat = flatten_metadata({"unit_id": 3, "written_at": 17})
    assert flat == {"meta_unit_id": 3, "meta_written_at": 17}
    props = {**flat, "record_id": "unit:3:chunk:0", "collection": "chat_1_active", "text": "t"}
    assert unflatten_metadata(props) == {"unit_id": 3, "written_at": 17}


def test_implements_collection_store_protocol(neo4j_store):
    assert isinstance(neo4j_store, CollectionStore)


@pytest.mark.asyncio
async def test_add_sends_prefixed_rows(neo4j_store):
    await neo4j_store.add("chat_1_active", ["a"], ["text"], [[1, 0]], [{"unit_id": 1}])

    query, params = neo4j_store._query.execute_value.call_args.args
    assert query == RecordQueries.upsert_records()[0]
    assert params["collection"] == "chat_1_active"
    assert params["rows"] == [{"id": "a", "text": "text", "embedding": [1.0, 0.0], "metadata": {"meta_unit_id": 1}}]


@pytest.mark.asyncio
async def test_add_rejects_mismatched_lengths(neo4j_store):
    with pytest.raises(ValueError):
        await neo4j_store.add("c", ["a", "b"], ["text"], [[1.0]], [{}])


@pytest.mark.asyncio
async def test_query_maps_rows_to_matches(neo4j_store):
    neo4j_store._query.execute_list.return_value = [
        {"id": "summary:1", "text": "s", "score": 0.9, "props": {"meta_unit_id": 1, "text": "s"}},
    ]
    [match] = await neo4j_store.query("chat_1_archive", [0.1, 0.2], 2)
    assert match.id == "summary:1"
    assert match.score == pytest.approx(0.9)
    assert match.metadata == {"unit_id": 1}


@pytest.mark.asyncio
async def test_query_with_zero_limit_skips_database(neo4j_store):
    assert await neo4j_store.query("c", [0.1], 0) == []
    neo4j_store._query.execute_list.assert_not_called()


@pytest.mark.asyncio
async def test_get_filters_on_prefixed_keys(neo4j_store):
    neo4j_store._query.execute_list.return_value = []
    await neo4j_store.get("chat_1_active", {"unit_id": 4})
    _, params = neo4j_store._query.execute_list.call_args.args
    assert params["where"] == {"meta_unit_id": 4}


@pytest.mark.asyncio
async def test_delete_returns_count_and_skips_empty(neo4j_store):
    neo4j_store._query.execute_value.return_value = 2
    assert await neo4j_store.delete("c", ["a", "b"]) == 2
    assert await neo4j_store.delete("c", []) == 0
    assert neo4j_store._query.execute_value.await_count == 1


@pytest.mark.asyncio
async def test_drop_missing_collection_raises_absent(neo4j_store):
    neo4j_store._query.execute_value.return_value = False
    with pytest.raises(CollectionAbsentError):
        await neo4j_store.drop_collection("chat_9_active")
    neo4j_store._query.execute_write.assert_not_called()


@pytest.mark.asyncio
async def test_drop_existing_collection_deletes_records_and_node(neo4j_store):
    neo4j_store._query.execute_value.return_value = True
    await neo4j_store.drop_collection("chat_9_active")
    statements = neo4j_store._query.execute_write.call_args.args[0]
    assert len(statements) == 2


@pytest.mark.asyncio
async def test_unreachable_database_is_unavailable():
    with pytest.raises(StoreUnavailableError) as exc_info:
        async with translate_neo4j_errors("query", "chat_1_active"):
            raise ServiceUnavailable("connection refused")
    assert exc_info.value.details.endpoint == "chat_1_active"


@pytest.mark.asyncio
async def test_rejected_query_is_operation_error():
    with pytest.raises(StoreOperationError):
        async with translate_neo4j_errors("add"):
            raise ClientError("syntax error")
