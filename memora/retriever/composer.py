"""
Answer Composer

Writes the final answer from retrieved facts with exactly one completion.
The model sees only the facts assembled here and is told to say it can't
tell when they are insufficient. Output is flattened to one line of at most
600 characters.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..common.errors import RetrievalUnavailableError
from ..common.language import detect_reply_language
from ..common.llm_client import LLMClient
from ..common.llm_utils import flatten_answer
from .evidence import EvidenceItem

logger = logging.getLogger("memora.retriever.composer")

MAX_ANSWER_CHARS = 600
MAX_FILE_TEXT_CHARS = 4000

COMPOSER_SYSTEM_PROMPT = """You answer questions about a person's own memories.
Answer strictly in at most 2 sentences. Use only the provided facts.
If the facts are not enough to answer, say you can't tell.
If the answer comes from a file, quote the relevant content.
{language_instruction}"""

LANGUAGE_NAMES = {
    "en": "English",
    "ko": "Korean",
    "ja": "Japanese",
    "zh": "Chinese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
}


@dataclass
class GroundedAnswer:
    """Answer plus the facts it is grounded on"""
    question: str
    answer_text: str
    when: Optional[str] = None
    location: Optional[Dict[str, Any]] = None
    evidence: List[EvidenceItem] = field(default_factory=list)
    highlights: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "answer_text": self.answer_text,
            "when": self.when,
            "location": self.location,
            "evidence": [e.to_dict() for e in self.evidence],
            "highlights": list(self.highlights),
        }


def _language_instruction(query: str) -> str:
    info = detect_reply_language(query)
    name = LANGUAGE_NAMES.get(info.code, info.code)
    return f"Reply in {name}, the language of the question."


def build_facts(
    top_hit: Optional[Dict[str, Any]],
    highlights: Sequence[str],
    evidence: Sequence[EvidenceItem],
    file_content: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """The only information the model is allowed to use."""
    source = (top_hit or {}).get("_source") or {}
    facts: Dict[str, Any] = {
        "title": source.get("title"),
        "text": source.get("text"),
        "text_en": source.get("text_en"),
        "when": source.get("timestamp"),
        "location": source.get("geo"),
        "highlights": list(highlights),
        "evidence": [{"kind": e.kind, "name": e.name} for e in evidence],
    }
    if file_content:
        text = file_content.get("extracted_text") or ""
        facts["file_content"] = {
            "file_name": file_content.get("file_name"),
            "extracted_text": text[:MAX_FILE_TEXT_CHARS],
            "created_at": file_content.get("created_at"),
            "metadata": file_content.get("metadata"),
        }
    return facts


class AnswerComposer:
    """
    Composes a GroundedAnswer from the top hit.

    Composition is not best-effort: if the completion cannot run, the
    question could not be answered and RetrievalUnavailableError is raised.
    """

    def __init__(self, llm_client: Optional[LLMClient], model: Optional[str] = None, timeout: float = 30.0):
        self._llm = llm_client
        self._model = model or None
        self._timeout = timeout

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    async def compose(
        self,
        query: str,
        top_hit: Optional[Dict[str, Any]],
        highlights: Optional[Sequence[str]] = None,
        evidence: Optional[Sequence[EvidenceItem]] = None,
        file_content: Optional[Dict[str, Any]] = None,
    ) -> GroundedAnswer:
        """
        Write the answer.

        Args:
            query: The user's question
            top_hit: Store hit of the best candidate (parent moment when a file matched)
            highlights: Matching fragments from retrieval
            evidence: Signed evidence items; only kind and name reach the model
            file_content: Content of the matching file, if the match came from one

        Returns:
            GroundedAnswer with a single-line answer of at most 600 characters

        Raises:
            RetrievalUnavailableError: the completion could not be obtained
        """
        highlights = list(highlights or [])
        evidence = list(evidence or [])
        facts = build_facts(top_hit, highlights, evidence, file_content)

        if not self.is_available:
            logger.error("Answer composition unavailable: no LLM client")
            raise RetrievalUnavailableError("Answer composition unavailable: no LLM client")

        if top_hit is None:
            prompt = f"Question: {query}\nFacts: none were found."
        else:
            prompt = f"Question: {query}\nFacts: {json.dumps(facts, ensure_ascii=False, default=str)}"

        try:
            raw = await asyncio.wait_for(
                self._llm.generate(
                    prompt,
                    system=COMPOSER_SYSTEM_PROMPT.format(language_instruction=_language_instruction(query)),
                    max_tokens=300,
                    model=self._model,
                    timeout=self._timeout,
                ),
                timeout=self._timeout,
            )
        except Exception as e:
            logger.error("Answer composition failed: %s", e, exc_info=True)
            raise RetrievalUnavailableError(f"Answer composition failed: {e}") from e

        return GroundedAnswer(
            question=query,
            answer_text=flatten_answer(raw or "", MAX_ANSWER_CHARS),
            when=facts["when"],
            location=facts["location"],
            evidence=evidence,
            highlights=highlights,
        )
