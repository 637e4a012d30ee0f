"""
Retriever - Personal History Recall

Answers questions about an owner's memories from their Moments and the
files attached to them.

Key Components:
- QueryPlanner: Turns the question into a structured QueryPlan
- HybridSearcher: Lexical + vector search over Moments and FileContents
- EvidenceResolver: Signs short-lived links for the top result's files
- AnswerComposer: Grounded answer from the retrieved facts only

Pipeline:
1. Plan the question (defaults when planning fails)
2. Search both collections and pick the top candidate
3. Resolve a file match to its parent Moment
4. Sign evidence links
5. Compose a short answer
"""

from .query_planner import QueryPlanner, QueryPlan, PlanFilters, DateRange, TimeIntent, SortOrder
from .similarity import SimilarityBooster
from .searcher import (
    HybridSearcher,
    RetrievalResult,
    RetrievalCandidate,
    CandidateOrigin,
    ParentRef,
    ParentState,
)
from .evidence import EvidenceResolver, EvidenceItem
from .composer import AnswerComposer, GroundedAnswer
from .pipeline import RecallPipeline

__all__ = [
    "QueryPlanner",
    "QueryPlan",
    "PlanFilters",
    "DateRange",
    "TimeIntent",
    "SortOrder",
    "SimilarityBooster",
    "HybridSearcher",
    "RetrievalResult",
    "RetrievalCandidate",
    "CandidateOrigin",
    "ParentRef",
    "ParentState",
    "EvidenceResolver",
    "EvidenceItem",
    "AnswerComposer",
    "GroundedAnswer",
    "RecallPipeline",
]
