"""
Language Detection

Detects the language of moment text at ingestion time and of the user's
question, so answers can be written in the language the question was asked in.
Uses langdetect with a Unicode script fallback for CJK/Hangul/Kana text.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from langdetect import DetectorFactory, LangDetectException, detect_langs

logger = logging.getLogger("memora.common.language")

# Deterministic langdetect results
DetectorFactory.seed = 0

# (start, end, script, language)
_SCRIPT_RANGES = [
    (0xAC00, 0xD7AF, "Hangul", "ko"),
    (0x1100, 0x11FF, "Hangul", "ko"),
    (0x3130, 0x318F, "Hangul", "ko"),
    (0x3040, 0x309F, "Kana", "ja"),
    (0x30A0, 0x30FF, "Kana", "ja"),
    (0x4E00, 0x9FFF, "CJK", "zh"),
    (0x3400, 0x4DBF, "CJK", "zh"),
]

_NON_LATIN_RE = re.compile(
    "[" + "".join(f"{chr(start)}-{chr(end)}" for start, end, _, _ in _SCRIPT_RANGES) + "]"
)


@dataclass(frozen=True)
class LanguageInfo:
    """Detected language information"""
    code: str           # ISO 639-1: "en", "ko", "ja"
    confidence: float   # 0.0~1.0
    script: str         # "Latin", "Hangul", "CJK", "Kana"

    @property
    def is_english(self) -> bool:
        return self.code == "en"


def _dominant_script(text: str) -> Tuple[str, Optional[str]]:
    """Return (script, language) of the dominant non-Latin script, or ("Latin", None)."""
    counts: Dict[str, int] = {}
    langs: Dict[str, str] = {}
    total = 0

    for ch in text:
        if ch.isspace() or not ch.isalnum():
            continue
        total += 1
        cp = ord(ch)
        for start, end, script, lang in _SCRIPT_RANGES:
            if start <= cp <= end:
                counts[script] = counts.get(script, 0) + 1
                langs[script] = lang
                break

    if not counts or total == 0:
        return "Latin", None

    # Japanese mixes Kanji with Kana
    if "Kana" in counts:
        return "Kana", "ja"

    script = max(counts, key=counts.get)
    if counts[script] > total * 0.15:
        return script, langs[script]
    return "Latin", None


def detect_language(text: str) -> LanguageInfo:
    """Detect language of input text.

    Latin-script text is reported as English: langdetect misreads short
    English snippets as fr/af/nl too often to be trusted there.
    """
    if not text or not text.strip():
        return LanguageInfo(code="en", confidence=1.0, script="Latin")

    cleaned = text.strip()
    script, script_lang = _dominant_script(cleaned)

    if len(cleaned) < 10:
        if script_lang:
            return LanguageInfo(code=script_lang, confidence=0.6, script=script)
        return LanguageInfo(code="en", confidence=0.5, script="Latin")

    try:
        results = detect_langs(cleaned)
    except LangDetectException as e:
        logger.debug("langdetect failed: %s", e)
        results = []

    if results:
        top = results[0]
        if top.lang != "en" and not _NON_LATIN_RE.search(cleaned):
            return LanguageInfo(code="en", confidence=0.5, script="Latin")
        return LanguageInfo(code=top.lang, confidence=round(top.prob, 4), script=script)

    if script_lang:
        return LanguageInfo(code=script_lang, confidence=0.7, script=script)
    return LanguageInfo(code="en", confidence=0.5, script="Latin")


# Latin-script questions at least this long are classified by langdetect
REPLY_MIN_WORDS = 5
REPLY_MIN_CONFIDENCE = 0.9


def detect_reply_language(text: str) -> LanguageInfo:
    """Language to answer a question in.

    Unlike ``detect_language``, a Latin-script question may come out as
    Spanish, French or German when it is long enough and langdetect is
    confident. Anything shorter or less certain stays English.
    """
    info = detect_language(text)
    if info.script != "Latin" or not info.is_english:
        return info

    cleaned = (text or "").strip()
    if len(cleaned.split()) < REPLY_MIN_WORDS:
        return info

    try:
        results = detect_langs(cleaned)
    except LangDetectException as e:
        logger.debug("langdetect failed: %s", e)
        return info

    if results and results[0].prob >= REPLY_MIN_CONFIDENCE:
        top = results[0]
        return LanguageInfo(code=top.lang, confidence=round(top.prob, 4), script="Latin")
    return info
