"""
Similarity Booster

Blends vector similarity into a lexical query additively. One booster is
configured per collection (moments use ``vector``, file contents use
``content_vector``); the scoring script is otherwise identical.

Final score = lexical score + (cosineSimilarity + 1.0) when the document has a
vector, lexical score + 0 when it does not. Documents without vectors are
never excluded.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

_SCRIPT = (
    "double lexical = _score; "
    "if (doc[params.field].size() == 0) { return lexical; } "
    "return lexical + params.weight * (cosineSimilarity(params.query_vector, params.field) + 1.0);"
)


@dataclass(frozen=True)
class SimilarityBooster:
    """Additive cosine-similarity booster for one dense_vector field"""
    field: str
    weight: float = 1.0

    def apply(self, query: Dict[str, Any], query_vector: Optional[List[float]]) -> Dict[str, Any]:
        """Wrap ``query`` in a script_score when a vector is available, else return it unchanged."""
        if not query_vector:
            return query
        return {
            "script_score": {
                "query": query,
                "script": {
                    "source": _SCRIPT,
                    "params": {
                        "field": self.field,
                        "query_vector": list(query_vector),
                        "weight": self.weight,
                    },
                },
            }
        }


MOMENT_BOOSTER = SimilarityBooster(field="vector")
FILE_CONTENT_BOOSTER = SimilarityBooster(field="content_vector")
