"""
Hybrid Searcher

Searches an owner's Moments and FileContents in one pass: lexical matching
plus an additive vector boost, both collections queried concurrently, hits
merged into a single ranking and the top candidate resolved to its Moment.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..common.document_store import DocumentStore, Collection
from ..common.embedding_service import EmbeddingService
from ..common.errors import RetrievalError
from ..common.outcome import Ok, Degraded, Outcome
from ..ingest.file_types import category_to_kind
from .queries import build_moment_query, build_file_content_query
from .query_planner import QueryPlan

logger = logging.getLogger("memora.retriever.searcher")

MAX_ARTIFACTS = 8

# Highlight fields in display order
_MOMENT_HIGHLIGHT_FIELDS = ("text", "title")
_FILE_HIGHLIGHT_FIELDS = ("extracted_text", "file_name")


class CandidateOrigin(str, Enum):
    MOMENT = "moment"
    FILE = "file"


class ParentState(str, Enum):
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"  # no such moment
    FAILED = "failed"  # lookup errored


@dataclass(frozen=True)
class ParentRef:
    """Reference from a file hit to the Moment it belongs to"""
    moment_id: Optional[str]
    state: ParentState = ParentState.UNRESOLVED
    moment: Optional[Dict[str, Any]] = None  # parent hit when resolved
    reason: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.state == ParentState.RESOLVED


@dataclass
class RetrievalCandidate:
    """A single hit from either collection"""
    origin: CandidateOrigin
    score: float
    raw_hit: Dict[str, Any]
    highlights: List[str] = field(default_factory=list)
    artifacts: List[Dict[str, Any]] = field(default_factory=list)
    file_content: Optional[Dict[str, Any]] = None

    @property
    def source(self) -> Dict[str, Any]:
        return self.raw_hit.get("_source") or {}


@dataclass
class RetrievalResult:
    """What the rest of the pipeline needs from retrieval"""
    top_candidate: Optional[RetrievalCandidate] = None
    hit: Optional[Dict[str, Any]] = None
    highlights: List[str] = field(default_factory=list)
    artifacts: List[Dict[str, Any]] = field(default_factory=list)
    file_content: Optional[Dict[str, Any]] = None
    parent: Optional[ParentRef] = None
    degradations: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls, degradations: Optional[List[str]] = None) -> "RetrievalResult":
        return cls(degradations=list(degradations or []))

    @property
    def is_empty(self) -> bool:
        return self.top_candidate is None

    def to_dict(self) -> Dict[str, Any]:
        top = self.top_candidate
        return {
            "top_candidate": {"origin": top.origin.value, "score": top.score} if top else None,
            "hit": self.hit,
            "highlights": list(self.highlights),
            "artifacts": list(self.artifacts),
            "file_content": self.file_content,
            "parent": {
                "moment_id": self.parent.moment_id,
                "state": self.parent.state.value,
                "reason": self.parent.reason,
            } if self.parent else None,
            "degradations": list(self.degradations),
        }


def _highlights(hit: Dict[str, Any], fields) -> List[str]:
    highlight = hit.get("highlight") or {}
    fragments: List[str] = []
    for name in fields:
        fragments.extend(highlight.get(name) or [])
    return fragments


def _moment_artifacts(hit: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
    """Artifacts from inner hits when present, else from the stored document."""
    inner = (hit.get("inner_hits") or {}).get("artifacts")
    if inner:
        artifacts = [h.get("_source") or {} for h in inner.get("hits", {}).get("hits", [])]
    else:
        artifacts = list((hit.get("_source") or {}).get("artifacts") or [])
    return artifacts[:limit]


def file_content_from_source(source: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "file_name": source.get("file_name"),
        "extracted_text": source.get("extracted_text"),
        "metadata": source.get("metadata") or {},
        "created_at": source.get("created_at"),
        "mime_type": source.get("mime_type"),
        "gcs_path": source.get("gcs_path"),
    }


def file_as_artifact(source: Dict[str, Any]) -> Dict[str, Any]:
    """Artifact reference for a file whose parent moment is unavailable."""
    return {
        "artifact_id": source.get("artifact_id"),
        "kind": category_to_kind(source.get("file_category") or "other"),
        "name": source.get("file_name"),
        "mime": source.get("mime_type"),
        "size": source.get("file_size"),
        "gcs_path": source.get("gcs_path"),
        "thumb_path": source.get("thumb_path"),
        "has_content": bool(source.get("extracted_text")),
    }


class HybridSearcher:
    """
    Hybrid retrieval over Moments and FileContents.

    Failure policy:
    - Embedding failure: lexical only, degradation recorded
    - File-contents search failure: no file hits, degradation recorded
    - Moments search failure: RetrievalError
    - Parent lookup failure: raw file hit returned, degradation recorded
    """

    def __init__(
        self,
        store: DocumentStore,
        embedding_service: Optional[EmbeddingService] = None,
        max_artifacts: int = MAX_ARTIFACTS,
        file_query_min_size: int = 3,
        search_timeout: float = 15.0,
        embedding_timeout: float = 10.0,
    ):
        """
        Initialize searcher.

        Args:
            store: Document store for both collections
            embedding_service: Query embedder; None disables the vector boost
            max_artifacts: Cap on artifacts surfaced per result
            file_query_min_size: Minimum hits requested from file contents
            search_timeout: Seconds allowed per store call
            embedding_timeout: Seconds allowed for the query embedding
        """
        self._store = store
        self._embedding = embedding_service
        self._max_artifacts = max_artifacts
        self._file_query_min_size = file_query_min_size
        self._search_timeout = search_timeout
        self._embedding_timeout = embedding_timeout

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def embedding_service(self) -> Optional[EmbeddingService]:
        return self._embedding

    async def retrieve(self, owner_id: str, plan: QueryPlan, query_text: str) -> RetrievalResult:
        """
        Find the single best candidate for a question.

        Args:
            owner_id: Only this owner's documents are searched
            plan: Structured plan from the QueryPlanner
            query_text: Raw question text, used for embedding and as fallback match text

        Returns:
            RetrievalResult; ``RetrievalResult.empty()`` when nothing matches

        Raises:
            RetrievalError: the moments search failed
        """
        degradations: List[str] = []

        vector_outcome = await self._embed_query(query_text or "")
        if vector_outcome.is_degraded:
            degradations.append(vector_outcome.reason)
        query_vector = vector_outcome.value

        moment_body = build_moment_query(
            owner_id, plan, query_text or "", query_vector, max_artifacts=self._max_artifacts
        )
        file_body = build_file_content_query(
            owner_id, plan, query_text or "", query_vector, min_size=self._file_query_min_size
        )

        moment_hits, file_outcome = await asyncio.gather(
            self._search(Collection.MOMENTS, moment_body),
            self._search_files(file_body),
            return_exceptions=True,
        )
        if isinstance(moment_hits, BaseException):
            logger.error("Moments search failed: %s", moment_hits, exc_info=moment_hits)
            raise RetrievalError(f"Moments search failed: {moment_hits}") from moment_hits
        if isinstance(file_outcome, BaseException):
            raise file_outcome
        if file_outcome.is_degraded:
            degradations.append(file_outcome.reason)

        candidates = self._merge(moment_hits, file_outcome.value)
        if not candidates:
            logger.info("No candidates for owner=%s", owner_id)
            return RetrievalResult.empty(degradations)

        top = candidates[0]
        logger.debug(
            "Top candidate origin=%s score=%.3f (of %d)", top.origin.value, top.score, len(candidates)
        )

        if top.origin == CandidateOrigin.MOMENT:
            return RetrievalResult(
                top_candidate=top,
                hit=top.raw_hit,
                highlights=top.highlights,
                artifacts=top.artifacts,
                degradations=degradations,
            )

        parent_outcome = await self._resolve_parent(owner_id, top)
        parent = parent_outcome.value
        if parent_outcome.is_degraded:
            degradations.append(parent_outcome.reason)

        if parent.is_resolved:
            artifacts = _moment_artifacts(parent.moment, self._max_artifacts)
            hit = parent.moment
        else:
            # The raw file hit stands in for its parent
            artifacts = [file_as_artifact(top.source)]
            hit = top.raw_hit

        return RetrievalResult(
            top_candidate=top,
            hit=hit,
            highlights=top.highlights,
            artifacts=artifacts,
            file_content=top.file_content,
            parent=parent,
            degradations=degradations,
        )

    async def _embed_query(self, text: str) -> Outcome:
        if not text.strip():
            return Ok(None)
        if self._embedding is None or not self._embedding.is_available:
            return self._degrade(None, "embedding unavailable, lexical only")
        try:
            vector = await asyncio.wait_for(
                self._embedding.embed_single(text), timeout=self._embedding_timeout
            )
        except Exception as e:
            return self._degrade(None, f"embedding failed, lexical only: {type(e).__name__}: {e}")
        return Ok(vector)

    async def _search(self, collection: Collection, body: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await asyncio.wait_for(self._store.search(collection, body), timeout=self._search_timeout)

    async def _search_files(self, body: Dict[str, Any]) -> Outcome:
        try:
            return Ok(await self._search(Collection.FILE_CONTENTS, body))
        except Exception as e:
            return self._degrade([], f"file-contents search failed: {type(e).__name__}: {e}")

    def _merge(
        self,
        moment_hits: List[Dict[str, Any]],
        file_hits: List[Dict[str, Any]],
    ) -> List[RetrievalCandidate]:
        """Tag hits by origin and rank by score. Ties keep store order, moments first."""
        candidates = [
            RetrievalCandidate(
                origin=CandidateOrigin.MOMENT,
                score=float(hit.get("_score") or 0.0),
                raw_hit=hit,
                highlights=_highlights(hit, _MOMENT_HIGHLIGHT_FIELDS),
                artifacts=_moment_artifacts(hit, self._max_artifacts),
            )
            for hit in moment_hits
        ]
        candidates.extend(
            RetrievalCandidate(
                origin=CandidateOrigin.FILE,
                score=float(hit.get("_score") or 0.0),
                raw_hit=hit,
                highlights=_highlights(hit, _FILE_HIGHLIGHT_FIELDS),
                file_content=file_content_from_source(hit.get("_source") or {}),
            )
            for hit in file_hits
        )
        # sorted() is stable
        return sorted(candidates, key=lambda c: c.score, reverse=True)

    async def _resolve_parent(self, owner_id: str, candidate: RetrievalCandidate) -> Outcome:
        moment_id = candidate.source.get("moment_id")
        if not moment_id:
            ref = ParentRef(None, ParentState.UNRESOLVED, reason="file has no moment_id")
            return self._degrade(ref, ref.reason)

        try:
            hit = await asyncio.wait_for(self._store.find_moment(moment_id), timeout=self._search_timeout)
        except Exception as e:
            ref = ParentRef(
                moment_id, ParentState.FAILED, reason=f"parent lookup failed: {type(e).__name__}: {e}"
            )
            return self._degrade(ref, ref.reason)

        if hit is None or (hit.get("_source") or {}).get("user_id") not in (None, owner_id):
            ref = ParentRef(moment_id, ParentState.UNRESOLVED, reason=f"parent moment {moment_id} not found")
            return self._degrade(ref, ref.reason)

        return Ok(ParentRef(moment_id, ParentState.RESOLVED, moment=hit))

    @staticmethod
    def _degrade(value: Any, reason: str) -> Degraded:
        logger.warning("Retrieval degraded: %s", reason)
        return Degraded(value, reason)
