"""
Query Planner

Turns a free-text question into a bounded, structured QueryPlan using a
single JSON-constrained completion. Planning is best-effort: any failure
yields the default plan and is reported as a degradation, never raised.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json
from ..common.outcome import Ok, Degraded, Outcome

logger = logging.getLogger("memora.retriever.query_planner")

# Upper bound on hits requested per collection
MAX_PLAN_SIZE = 20


class TimeIntent(str, Enum):
    """Which occurrence the user is after"""
    LAST = "last"  # "when did I last ..."
    FIRST = "first"  # "when did I first ..."
    RANGE = "range"  # "what did I do in March?"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class DateRange:
    """Inclusive timestamp bounds, passed to the store as a range filter"""
    gte: Optional[str] = None
    lte: Optional[str] = None

    def to_range(self) -> Dict[str, str]:
        bounds = {}
        if self.gte:
            bounds["gte"] = self.gte
        if self.lte:
            bounds["lte"] = self.lte
        return bounds


@dataclass(frozen=True)
class PlanFilters:
    type_any_of: tuple = ()
    date_range: Optional[DateRange] = None


@dataclass(frozen=True)
class QueryPlan:
    """Structured search plan for one question"""
    time_intent: TimeIntent = TimeIntent.LAST
    entities: tuple = ()
    filters: PlanFilters = field(default_factory=PlanFilters)
    must_text: Optional[str] = None
    sort: SortOrder = SortOrder.DESC
    size: int = 1

    @classmethod
    def default(cls) -> "QueryPlan":
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryPlan":
        """Build a plan from loosely-typed JSON, coercing every field to a safe value."""
        return cls(
            time_intent=_coerce_time_intent(data.get("time_intent")),
            entities=_coerce_entities(data.get("entities")),
            filters=_coerce_filters(data.get("filters")),
            must_text=_coerce_text(data.get("must_text")),
            sort=SortOrder.ASC if data.get("sort") == "asc" else SortOrder.DESC,
            size=_coerce_size(data.get("size")),
        )

    def to_dict(self) -> Dict[str, Any]:
        filters: Dict[str, Any] = {}
        if self.filters.type_any_of:
            filters["type_any_of"] = list(self.filters.type_any_of)
        if self.filters.date_range and self.filters.date_range.to_range():
            dr = self.filters.date_range
            filters["date_range"] = {k: v for k, v in (("from", dr.gte), ("to", dr.lte)) if v}
        data: Dict[str, Any] = {
            "time_intent": self.time_intent.value,
            "entities": list(self.entities),
            "sort": self.sort.value,
            "size": self.size,
        }
        if filters:
            data["filters"] = filters
        if self.must_text:
            data["must_text"] = self.must_text
        return data


def _coerce_time_intent(value: Any) -> TimeIntent:
    try:
        return TimeIntent(value)
    except ValueError:
        return TimeIntent.LAST


def _coerce_entities(value: Any) -> tuple:
    if not isinstance(value, list):
        return ()
    return tuple(str(e).strip() for e in value if isinstance(e, (str, int, float)) and str(e).strip())


def _coerce_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _coerce_size(value: Any) -> int:
    # bool is an int subclass; "size": true is not a size
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 1
    if not math.isfinite(value) or value < 1:
        return 1
    return min(int(value), MAX_PLAN_SIZE)


def _coerce_filters(value: Any) -> PlanFilters:
    if not isinstance(value, dict):
        return PlanFilters()

    types = value.get("type_any_of")
    type_any_of = tuple(t for t in types if isinstance(t, str) and t) if isinstance(types, list) else ()

    date_range = None
    raw_range = value.get("date_range")
    if isinstance(raw_range, dict):
        gte = _coerce_text(raw_range.get("from") or raw_range.get("gte"))
        lte = _coerce_text(raw_range.get("to") or raw_range.get("lte"))
        if gte or lte:
            date_range = DateRange(gte=gte, lte=lte)

    return PlanFilters(type_any_of=type_any_of, date_range=date_range)


PLANNER_SYSTEM_PROMPT = """You turn a question about someone's personal history into a search plan.
You output ONLY a valid JSON object, with no prose and no code fences. If unsure, return the defaults.

Shape:
{
  "time_intent": "last" | "first" | "range",
  "entities": ["named people, places, documents or things mentioned"],
  "filters": {
    "type_any_of": ["moment types such as photo, document, note, trip"],
    "date_range": {"from": "ISO-8601 date", "to": "ISO-8601 date"}
  },
  "must_text": "key phrase that must appear, if any",
  "sort": "desc" | "asc",
  "size": 1
}

Defaults: {"time_intent": "last", "entities": [], "sort": "desc", "size": 1}
Use "asc" with "first", "desc" with "last". Omit filters you cannot infer."""


class QueryPlanner:
    """
    Converts raw question text into a QueryPlan.

    Responsibilities:
    1. Ask the completion service for a JSON plan (one attempt, no retries)
    2. Parse and coerce the response into a valid plan
    3. Fall back to the default plan on any failure
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient],
        model: Optional[str] = None,
        timeout: float = 30.0,
    ):
        """Initialize query planner.

        Args:
            llm_client: Completion client; planning degrades to defaults when unavailable
            model: Model override for planning
            timeout: Seconds to wait for the completion
        """
        self._llm = llm_client
        self._model = model or None
        self._timeout = timeout

    async def plan(self, text: str) -> QueryPlan:
        """Plan a question. Never raises."""
        return (await self.plan_with_outcome(text)).value

    async def plan_with_outcome(self, text: str) -> Outcome:
        """Plan a question, reporting whether the default plan had to be used."""
        if self._llm is None or not self._llm.is_available:
            return self._degrade("llm unavailable")

        try:
            raw = await asyncio.wait_for(
                self._llm.generate(
                    f"Text: {text or ''}",
                    system=PLANNER_SYSTEM_PROMPT,
                    max_tokens=256,
                    json_mode=True,
                    model=self._model,
                    timeout=self._timeout,
                ),
                timeout=self._timeout,
            )
        except Exception as e:
            return self._degrade(f"completion failed: {type(e).__name__}: {e}")

        parsed = parse_llm_json(raw)
        if parsed is None:
            return self._degrade("unparseable planner output")

        try:
            plan = QueryPlan.from_dict(parsed)
        except Exception as e:
            return self._degrade(f"invalid plan: {e}")

        logger.debug("Planned %r -> %s", text, plan.to_dict())
        return Ok(plan)

    def _degrade(self, reason: str) -> Degraded:
        logger.warning("Query planning degraded to defaults: %s", reason)
        return Degraded(QueryPlan.default(), reason)
