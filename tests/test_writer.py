import pytest

from narrative_memory.core.errors import EmbeddingError, NotInitializedError, StoreUnavailableError, WriteFailedError
from narrative_memory.services.chunker import Chunker
from narrative_memory.services.collections import CollectionResolver
from narrative_memory.services.context import MemoryContext
from narrative_memory.services.writer import ActiveMemoryWriter
from tests.conftest import FakeCollectionStore

ACTIVE = "chat_c1_active"


def words(n: int) -> str:
    return " ".join(f"w{i}" for i in range(n))


@pytest.fixture
def writer(resolver):
    return ActiveMemoryWriter(resolver, Chunker(size=250, overlap=50))


@pytest.mark.asyncio
async def test_chunks_get_stable_ids_and_metadata(writer, store):
    ack = await writer.add_to_memory("c1", 7, words(450))

    assert ack.chunk_ids == ["unit:7:chunk:0", "unit:7:chunk:1", "unit:7:chunk:2"]
    assert ack.chunk_count == 3
    records = store.records(ACTIVE)
    assert set(records) == set(ack.chunk_ids)
    written_at = {r["metadata"]["written_at"] for r in records.values()}
    assert len(written_at) == 1
    assert records["unit:7:chunk:1"]["metadata"]["unit_id"] == 7
    assert records["unit:7:chunk:1"]["metadata"]["chunk_index"] == 1


@pytest.mark.asyncio
async def test_empty_text_is_a_successful_no_op(writer, store):
    ack = await writer.add_to_memory("c1", 1, "   ")
    assert ack.chunk_count == 0
    assert store.records(ACTIVE) == {}
    # Collections still exist for the conversation
    assert ACTIVE in store.collections


@pytest.mark.asyncio
async def test_repeated_write_does_not_duplicate(writer, store):
    await writer.add_to_memory("c1", 1, "hello there")
    await writer.add_to_memory("c1", 1, "hello there")
    assert list(store.records(ACTIVE)) == ["unit:1:chunk:0"]


@pytest.mark.asyncio
async def test_retry_against_duplicate_rejecting_store(settings, embeddings):
    store = FakeCollectionStore(reject_duplicates=True)
    context = MemoryContext(settings, embeddings=embeddings, store=store)
    await context.initialize()
    writer = ActiveMemoryWriter(CollectionResolver(context), Chunker(size=250, overlap=50))

    await writer.add_to_memory("c1", 1, words(600))
    await writer.add_to_memory("c1", 1, words(600))

    assert sorted(store.records(ACTIVE)) == [f"unit:1:chunk:{i}" for i in range(3)]


@pytest.mark.asyncio
async def test_partial_failure_leaves_memory_unchanged(writer, store):
    await writer.add_to_memory("c1", 1, "earlier unit")
    store.fail_add_after(1)

    with pytest.raises(WriteFailedError) as exc_info:
        await writer.add_to_memory("c1", 2, words(600))

    assert exc_info.value.conversation_id == "c1"
    assert exc_info.value.unit_id == 2
    assert exc_info.value.details.stage == "add"
    assert list(store.records(ACTIVE)) == ["unit:1:chunk:0"]

    # Retrying the whole call succeeds
    ack = await writer.add_to_memory("c1", 2, words(600))
    assert ack.chunk_count == 3


@pytest.mark.asyncio
async def test_unresolvable_collections_surface(writer, store):
    store.fail("create_collection")
    with pytest.raises(StoreUnavailableError):
        await writer.add_to_memory("c1", 1, "text")


@pytest.mark.asyncio
async def test_rejects_before_initialization(settings, embeddings, store):
    context = MemoryContext(settings, embeddings=embeddings, store=store)
    writer = ActiveMemoryWriter(CollectionResolver(context), Chunker())
    with pytest.raises(NotInitializedError):
        await writer.add_to_memory("c1", 1, "text")
    assert store.collections == {}


async def writer_for(store, settings, embeddings):
    context = MemoryContext(settings, embeddings=embeddings, store=store)
    await context.initialize()
    return ActiveMemoryWriter(CollectionResolver(context), Chunker(size=250, overlap=50))


@pytest.mark.asyncio
async def test_failed_rewrite_keeps_stored_chunks(writer, store, embeddings, monkeypatch):
    await writer.add_to_memory("c1", 1, "hello there")

    async def unavailable(texts, input_type="document"):
        raise EmbeddingError("embedding service down")

    monkeypatch.setattr(embeddings, "embed_batch", unavailable)

    with pytest.raises(WriteFailedError) as exc_info:
        await writer.add_to_memory("c1", 1, "hello there")

    assert exc_info.value.details.stage == "add"
    assert list(store.records(ACTIVE)) == ["unit:1:chunk:0"]
    assert store.records(ACTIVE)["unit:1:chunk:0"]["text"] == "hello there"


@pytest.mark.asyncio
async def test_rewrite_on_upserting_store_deletes_nothing(writer, store):
    await writer.add_to_memory("c1", 1, "first draft")
    await writer.add_to_memory("c1", 1, "second draft")

    assert ("delete", ACTIVE) not in store.calls
    assert store.records(ACTIVE)["unit:1:chunk:0"]["text"] == "second draft"


@pytest.mark.asyncio
async def test_failed_add_keeps_chunks_that_existed_before(writer, store):
    await writer.add_to_memory("c1", 1, words(300))
    store.fail_add_after(0)

    with pytest.raises(WriteFailedError):
        await writer.add_to_memory("c1", 1, words(600))

    assert sorted(store.records(ACTIVE)) == ["unit:1:chunk:0", "unit:1:chunk:1"]


@pytest.mark.asyncio
async def test_failed_rewrite_on_duplicate_rejecting_store_restores_chunks(settings, embeddings):
    store = FakeCollectionStore(reject_duplicates=True)
    writer = await writer_for(store, settings, embeddings)
    await writer.add_to_memory("c1", 1, words(600))
    before = {record_id: record["text"] for record_id, record in store.records(ACTIVE).items()}
    store.fail("add", collection=ACTIVE)

    with pytest.raises(WriteFailedError):
        await writer.add_to_memory("c1", 1, "a much shorter rewrite")

    after = {record_id: record["text"] for record_id, record in store.records(ACTIVE).items()}
    assert after == before


@pytest.mark.asyncio
async def test_lookup_failure_is_a_write_failure(writer, store):
    await writer.add_to_memory("c1", 1, "kept")
    store.fail("get", collection=ACTIVE)

    with pytest.raises(WriteFailedError) as exc_info:
        await writer.add_to_memory("c1", 1, "kept")

    assert exc_info.value.details.stage == "add"
    assert ("delete", ACTIVE) not in store.calls
    assert list(store.records(ACTIVE)) == ["unit:1:chunk:0"]


@pytest.mark.asyncio
async def test_integral_string_unit_ids_are_stored_as_numbers(writer, store):
    ack = await writer.add_to_memory("c1", "5", "numbered unit")

    assert ack.unit_id == 5
    assert store.records(ACTIVE)["unit:5:chunk:0"]["metadata"]["unit_id"] == 5
