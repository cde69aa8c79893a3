from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from narrative_memory.core.errors import EmbeddingError, ServiceError
from narrative_memory.infrastructure.embeddings.factory import build_embedding_service
from narrative_memory.infrastructure.embeddings.local import HashEmbeddingService
from narrative_memory.infrastructure.embeddings.voyage import VoyageEmbeddingService, normalize_rows
from narrative_memory.services import EmbeddingService


@pytest.mark.asyncio
async def test_hash_embeddings_are_deterministic_and_normalized():
    service = HashEmbeddingService(dim=48)
    first, second, other = await service.embed_batch(["alpha", "alpha", "beta"])
    assert first == second
    assert first != other
    assert len(first) == 48
    assert np.linalg.norm(first) == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_factory_builds_hash_backend(settings):
    service = await build_embedding_service(settings)
    assert isinstance(service, HashEmbeddingService)
    assert isinstance(service, EmbeddingService)


def test_normalize_rows():
    rows = normalize_rows([[3.0, 4.0], [0.0, 0.0]])
    assert rows[0] == pytest.approx([0.6, 0.8])
    assert rows[1] == [0.0, 0.0]
    assert normalize_rows([]) == []


def test_voyage_requires_api_key():
    with pytest.raises(EmbeddingError):
        VoyageEmbeddingService(api_key="")


@pytest.mark.asyncio
async def test_voyage_embeddings_are_normalized():
    service = VoyageEmbeddingService(api_key="test-key")
    service.client = MagicMock()
    service.client.embed = AsyncMock(return_value=MagicMock(embeddings=[[2.0, 0.0], [0.0, 5.0]]))

    vectors = await service.embed_batch(["a", "b"])

    assert vectors == [[1.0, 0.0], [0.0, 1.0]]
    assert service.get_model_dimensions() == 1024


@pytest.mark.asyncio
async def test_voyage_failures_open_the_circuit():
    service = VoyageEmbeddingService(api_key="test-key")
    service.client = MagicMock()
    service.client.embed = AsyncMock(side_effect=RuntimeError("bad gateway"))

    for _ in range(3):
        with pytest.raises(ServiceError):
            await service.embed_batch(["a"])

    assert service._circuit_breaker.get_state()["state"] == "open"
    with pytest.raises(ServiceError, match="is open"):
        await service.embed_batch(["a"])
    assert service.client.embed.await_count == 3


@pytest.mark.asyncio
async def test_voyage_passes_input_type():
    service = VoyageEmbeddingService(api_key="test-key")
    service.client = MagicMock()
    service.client.embed = AsyncMock(return_value=MagicMock(embeddings=[[1.0, 0.0]]))

    await service.embed_batch(["where is the lighthouse"], input_type="query")
    await service.embed_batch(["the lighthouse stood on the cliff"])

    input_types = [call.kwargs["input_type"] for call in service.client.embed.await_args_list]
    assert input_types == ["query", "document"]


@pytest.mark.asyncio
async def test_model_load_failure_is_an_embedding_error(settings, monkeypatch):
    sentence_transformers = pytest.importorskip("sentence_transformers")

    def download_fails(*args, **kwargs):
        raise OSError("model download failed")

    monkeypatch.setattr(sentence_transformers, "SentenceTransformer", download_fails)
    settings.embedding_backend = "sentence-transformers"

    with pytest.raises(EmbeddingError, match="model download failed"):
        await build_embedding_service(settings)
