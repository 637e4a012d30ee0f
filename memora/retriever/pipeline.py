"""
Recall Pipeline

question -> QueryPlanner -> HybridSearcher -> EvidenceResolver -> AnswerComposer

Owns the request deadline. Per-call deadlines live in each step.
"""

import asyncio
import logging
from typing import Optional

from ..common.config import MemoraConfig, load_config
from ..common.document_store import DocumentStore
from ..common.embedding_service import EmbeddingService
from ..common.errors import RetrievalUnavailableError
from ..common.llm_client import LLMClient
from ..common.object_storage import ObjectStorage
from .composer import AnswerComposer, GroundedAnswer
from .evidence import EvidenceResolver
from .query_planner import QueryPlanner
from .searcher import HybridSearcher

logger = logging.getLogger("memora.retriever.pipeline")

NOT_FOUND_ANSWER = "I couldn't find anything about that in your memories."


class RecallPipeline:
    """End-to-end question answering over one owner's memories"""

    def __init__(
        self,
        planner: QueryPlanner,
        searcher: HybridSearcher,
        resolver: EvidenceResolver,
        composer: AnswerComposer,
        request_timeout: float = 60.0,
        store: Optional[DocumentStore] = None,
    ):
        self.planner = planner
        self.searcher = searcher
        self.resolver = resolver
        self.composer = composer
        self._request_timeout = request_timeout
        self._store = store

    @classmethod
    def from_config(cls, config: Optional[MemoraConfig] = None) -> "RecallPipeline":
        config = config or load_config()

        llm = LLMClient.from_config(config.llm)
        embedding = EmbeddingService.from_config(config.embedding)
        store = DocumentStore.from_config(config.elasticsearch, dims=config.embedding.dims)
        storage = ObjectStorage.from_config(config.storage)

        return cls(
            planner=QueryPlanner(
                llm, model=config.llm.planner_model, timeout=config.llm.timeout_seconds
            ),
            searcher=HybridSearcher(
                store,
                embedding,
                max_artifacts=config.retriever.max_artifacts,
                file_query_min_size=config.retriever.file_query_min_size,
                search_timeout=config.elasticsearch.timeout_seconds,
                embedding_timeout=config.embedding.timeout_seconds,
            ),
            resolver=EvidenceResolver(
                storage,
                ttl_minutes=config.storage.signed_url_ttl_minutes,
                max_items=config.retriever.max_artifacts,
            ),
            composer=AnswerComposer(
                llm, model=config.llm.answer_model, timeout=config.llm.timeout_seconds
            ),
            request_timeout=config.retriever.request_timeout_seconds,
            store=store,
        )

    async def ask(self, owner_id: str, text: str) -> GroundedAnswer:
        """
        Answer a question.

        Raises:
            RetrievalError: the moments search failed
            RetrievalUnavailableError: the answer could not be composed in time
        """
        try:
            return await asyncio.wait_for(self._ask(owner_id, text), timeout=self._request_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Request for owner=%s exceeded %.0fs", owner_id, self._request_timeout)
            raise RetrievalUnavailableError(
                f"Request timed out after {self._request_timeout:.0f}s"
            ) from e

    async def _ask(self, owner_id: str, text: str) -> GroundedAnswer:
        plan = await self.planner.plan(text)
        result = await self.searcher.retrieve(owner_id, plan, text)

        if result.degradations:
            logger.info("Answering with degradations: %s", "; ".join(result.degradations))

        if result.is_empty:
            return GroundedAnswer(question=text, answer_text=NOT_FOUND_ANSWER)

        evidence = await self.resolver.resolve(result.artifacts, result.highlights)
        return await self.composer.compose(
            text,
            result.hit,
            result.highlights,
            evidence,
            file_content=result.file_content,
        )

    async def aclose(self) -> None:
        if self._store is not None:
            await self._store.close()
