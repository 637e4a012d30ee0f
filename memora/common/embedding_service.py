"""
Embedding Service

Turns text into fixed-length vectors for hybrid search.

Modes:
- "openai": any OpenAI-compatible embeddings endpoint (Fireworks by default,
  serving nomic-embed-text-v1.5 with 768 dimensions)
- "femb": on-device embeddings via fastembed
"""

import asyncio
import logging
from typing import List, Optional

import numpy as np

logger = logging.getLogger("memora.common.embedding_service")


class EmbeddingService:
    """
    Async embedding service used by ingestion and the hybrid retriever.

    Vectors are L2 normalized so dot product equals cosine similarity.
    """

    def __init__(
        self,
        mode: str = "openai",
        model: str = "nomic-ai/nomic-embed-text-v1.5",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self._mode = mode
        self._model = model
        self._client = None
        self._local_model = None

        if mode == "openai":
            if not api_key:
                logger.info("Embedding API key not provided, embedding service unavailable")
                return
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=api_key, base_url=base_url or None)
        elif mode == "femb":
            from fastembed import TextEmbedding

            self._local_model = TextEmbedding(model_name=model)
        else:
            logger.warning("Unsupported embedding mode: %s", mode)
            return

        logger.info("Initialized embedding service with mode=%s, model=%s", mode, model)

    @classmethod
    def from_config(cls, embedding_config) -> "EmbeddingService":
        return cls(
            mode=embedding_config.mode,
            model=embedding_config.model,
            api_key=embedding_config.api_key,
            base_url=embedding_config.base_url,
        )

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._client is not None or self._local_model is not None

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed

        Returns:
            List of embedding vectors (L2 normalized)
        """
        if not self.is_available:
            raise RuntimeError("Embedding service not initialized")

        if not texts:
            return []

        if self._client is not None:
            response = await self._client.embeddings.create(model=self._model, input=texts)
            vectors = [item.embedding for item in response.data]
        else:
            vectors = await asyncio.to_thread(lambda: list(self._local_model.embed(texts)))

        return self._normalize(vectors)

    async def embed_single(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: String to embed

        Returns:
            Embedding vector (L2 normalized)
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        embeddings = await self.embed([text])
        if not embeddings or not embeddings[0]:
            raise RuntimeError("Embedding service returned no vector")
        return embeddings[0]

    @staticmethod
    def _normalize(vectors) -> List[List[float]]:
        matrix = np.asarray(vectors, dtype=float)
        if matrix.ndim != 2 or matrix.size == 0:
            return [list(map(float, v)) for v in vectors]
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        return (matrix / norms).tolist()
