"""
Tests for EmbeddingService
"""

import pytest
from types import SimpleNamespace
from unittest.mock import Mock, AsyncMock

from memora.common.embedding_service import EmbeddingService


def service_with_response(vectors):
    service = EmbeddingService(mode="openai", api_key=None)
    client = Mock()
    client.embeddings.create = AsyncMock(return_value=SimpleNamespace(
        data=[SimpleNamespace(embedding=v) for v in vectors]
    ))
    service._client = client
    return service, client


class TestAvailability:
    def test_no_api_key_is_unavailable(self):
        assert EmbeddingService(mode="openai", api_key=None).is_available is False

    def test_unknown_mode_is_unavailable(self):
        assert EmbeddingService(mode="carrier-pigeon").is_available is False

    @pytest.mark.asyncio
    async def test_embed_when_unavailable_raises(self):
        with pytest.raises(RuntimeError):
            await EmbeddingService(api_key=None).embed(["x"])


class TestEmbed:
    @pytest.mark.asyncio
    async def test_vectors_are_normalized(self):
        service, client = service_with_response([[3.0, 4.0], [0.0, 2.0]])

        vectors = await service.embed(["a", "b"])

        assert vectors == [[0.6, 0.8], [0.0, 1.0]]
        client.embeddings.create.assert_awaited_once_with(
            model="nomic-ai/nomic-embed-text-v1.5", input=["a", "b"]
        )

    @pytest.mark.asyncio
    async def test_zero_vector_left_alone(self):
        service, _ = service_with_response([[0.0, 0.0]])
        assert await service.embed(["a"]) == [[0.0, 0.0]]

    @pytest.mark.asyncio
    async def test_empty_input(self):
        service, client = service_with_response([])
        assert await service.embed([]) == []
        client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_embed_single(self):
        service, _ = service_with_response([[1.0, 0.0]])
        assert await service.embed_single("Eiffel Tower") == [1.0, 0.0]

    @pytest.mark.asyncio
    async def test_embed_single_rejects_blank(self):
        service, _ = service_with_response([[1.0]])
        with pytest.raises(ValueError):
            await service.embed_single("   ")

    @pytest.mark.asyncio
    async def test_embed_single_empty_response(self):
        service, _ = service_with_response([])
        with pytest.raises(RuntimeError, match="no vector"):
            await service.embed_single("text")

