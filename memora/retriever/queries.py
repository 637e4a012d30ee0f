"""
Query Bodies

Builds the two Elasticsearch bodies executed by the hybrid searcher. Both are
scoped to one owner and the plan's date range, and both take the same
additive vector boost when a query vector exists.
"""

from typing import Any, Dict, List, Optional

from .query_planner import QueryPlan
from .similarity import SimilarityBooster, MOMENT_BOOSTER, FILE_CONTENT_BOOSTER

MOMENT_TEXT_FIELDS = ["text", "text_en", "title^2"]
FILE_TEXT_FIELDS = ["extracted_text^2", "extracted_text_en", "file_name^1.5", "description"]


def _search_text(plan: QueryPlan, query_text: str) -> str:
    return (plan.must_text or query_text or "").strip()


def _fuzzy_match(text: str, fields: List[str]) -> Dict[str, Any]:
    return {
        "multi_match": {
            "query": text,
            "fields": fields,
            "type": "best_fields",
            "fuzziness": "AUTO",
        }
    }


def _owner_filters(owner_id: str, plan: QueryPlan, date_field: str) -> List[Dict[str, Any]]:
    filters: List[Dict[str, Any]] = [{"term": {"user_id": owner_id}}]
    date_range = plan.filters.date_range
    if date_range is not None and date_range.to_range():
        filters.append({"range": {date_field: date_range.to_range()}})
    return filters


def build_moment_query(
    owner_id: str,
    plan: QueryPlan,
    query_text: str,
    query_vector: Optional[List[float]] = None,
    max_artifacts: int = 8,
    booster: SimilarityBooster = MOMENT_BOOSTER,
) -> Dict[str, Any]:
    """Body for the moments collection."""
    text = _search_text(plan, query_text)

    relevance: List[Dict[str, Any]] = []
    if text:
        relevance.append(_fuzzy_match(text, MOMENT_TEXT_FIELDS))
    if plan.entities:
        relevance.append({"terms": {"entities": list(plan.entities), "boost": 2.0}})

    must: List[Dict[str, Any]] = []
    if relevance:
        must.append({"bool": {"should": relevance, "minimum_should_match": 1}})
    else:
        must.append({"match_all": {}})
    if plan.filters.type_any_of:
        must.append({"terms": {"type": list(plan.filters.type_any_of)}})

    bool_query = {
        "bool": {
            "must": must,
            "filter": _owner_filters(owner_id, plan, "timestamp"),
            # Optional clause: surfaces up to max_artifacts artifacts per hit without
            # excluding moments that have none
            "should": [
                {
                    "nested": {
                        "path": "artifacts",
                        "query": {"match_all": {}},
                        "score_mode": "none",
                        "ignore_unmapped": True,
                        "inner_hits": {"size": max_artifacts},
                    }
                }
            ],
        }
    }

    body: Dict[str, Any] = {
        "size": plan.size,
        "query": booster.apply(bool_query, query_vector),
        "track_scores": True,
        "_source": {"excludes": ["vector"]},
        "highlight": {
            "fields": {"text": {}, "title": {}},
            "pre_tags": [""],
            "post_tags": [""],
        },
    }
    if query_vector:
        body["sort"] = ["_score", {"timestamp": {"order": plan.sort.value}}]
    else:
        body["sort"] = [{"timestamp": {"order": plan.sort.value}}]
    return body


def build_file_content_query(
    owner_id: str,
    plan: QueryPlan,
    query_text: str,
    query_vector: Optional[List[float]] = None,
    min_size: int = 3,
    booster: SimilarityBooster = FILE_CONTENT_BOOSTER,
) -> Dict[str, Any]:
    """Body for the file-contents collection. Only successfully extracted files are searched."""
    text = _search_text(plan, query_text) or " ".join(plan.entities)

    must: List[Dict[str, Any]] = [_fuzzy_match(text, FILE_TEXT_FIELDS) if text else {"match_all": {}}]
    filters = _owner_filters(owner_id, plan, "created_at")
    filters.append({"term": {"extraction_status": "success"}})

    bool_query = {"bool": {"must": must, "filter": filters}}

    return {
        "size": max(plan.size, min_size),
        "query": booster.apply(bool_query, query_vector),
        "_source": {"excludes": ["content_vector"]},
        "sort": ["_score", {"created_at": {"order": "desc"}}],
        "highlight": {
            "fields": {
                "extracted_text": {"fragment_size": 150, "number_of_fragments": 3},
                "file_name": {},
            },
            "pre_tags": [""],
            "post_tags": [""],
        },
    }
