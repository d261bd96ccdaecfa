"""Cleaning and validation of free-form user text before it reaches the LLM."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
import re
from typing import Any, Dict, List, Optional

MIN_INPUT_LENGTH = 3
MAX_INPUT_LENGTH = 10000

INVALID_TYPE = "INVALID_TYPE"
TOO_SHORT = "TOO_SHORT"
TOO_LONG = "TOO_LONG"
NO_TEXTUAL_CONTENT = "NO_TEXTUAL_CONTENT"

_WHITESPACE_RE = re.compile(r"\s+")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_DOUBLE_QUOTES_RE = re.compile("[“”]")
_SINGLE_QUOTES_RE = re.compile("[‘’]")
_DASHES_RE = re.compile("[–—]")
_LETTER_RE = re.compile(r"[a-zA-Z]")
_WORD_SPLIT_RE = re.compile(r"\W+")

STOP_WORDS = {
    "i", "me", "my", "we", "our", "you", "your", "the", "a", "an",
    "is", "are", "was", "were", "be", "been", "being", "have", "has",
    "had", "do", "does", "did", "will", "would", "could", "should",
    "may", "might", "must", "can", "to", "of", "in", "for", "on",
    "with", "at", "by", "from", "about", "into", "through", "during",
    "before", "after", "above", "below", "between", "under", "again",
    "further", "then", "once", "here", "there", "when", "where", "why",
    "how", "all", "each", "few", "more", "most", "other", "some", "such",
    "no", "nor", "not", "only", "own", "same", "so", "than", "too",
    "very", "just", "and", "but", "if", "or", "because", "as", "until",
    "while", "this", "that", "these", "those", "am", "what", "which",
}

# Order matters: the first matching intent wins.
INTENT_PATTERNS = [
    ("question", re.compile(r"\?|^(what|how|why|when|where|who|which|can|should|would|is|are|do|does)")),
    ("planning", re.compile(r"(plan|schedule|organize|prepare|strategy|goal|objective)")),
    ("problem", re.compile(r"(problem|issue|trouble|stuck|help|confused|unsure|challenge)")),
    ("decision", re.compile(r"(decide|choose|pick|select|option|alternative|versus|or)")),
    ("task", re.compile(r"(need to|want to|have to|must|should|todo|task|action)")),
]


@dataclass
class ValidationResult:
    valid: bool
    errors: List[Dict[str, str]] = field(default_factory=list)
    normalized: Optional[str] = None

    @property
    def error_codes(self) -> List[str]:
        return [error["code"] for error in self.errors]


def normalize(text: Any) -> str:
    """Collapse whitespace, drop control characters and straighten typographic punctuation."""
    if not text or not isinstance(text, str):
        return ""

    normalized = text.strip()
    normalized = _WHITESPACE_RE.sub(" ", normalized)
    normalized = _CONTROL_CHARS_RE.sub("", normalized)
    normalized = _DOUBLE_QUOTES_RE.sub('"', normalized)
    normalized = _SINGLE_QUOTES_RE.sub("'", normalized)
    normalized = _DASHES_RE.sub("-", normalized)
    return normalized


def validate(text: Any) -> ValidationResult:
    if not isinstance(text, str):
        return ValidationResult(valid=False, errors=[_error(INVALID_TYPE, "Input must be a string")])

    normalized = normalize(text)
    errors: List[Dict[str, str]] = []

    if len(normalized) < MIN_INPUT_LENGTH:
        errors.append(_error(TOO_SHORT, f"Input is too short (minimum {MIN_INPUT_LENGTH} characters)"))
    if len(normalized) > MAX_INPUT_LENGTH:
        errors.append(_error(TOO_LONG, f"Input is too long (maximum {MAX_INPUT_LENGTH} characters)"))
    if not _LETTER_RE.search(normalized):
        errors.append(_error(NO_TEXTUAL_CONTENT, "Input must contain text"))

    if errors:
        return ValidationResult(valid=False, errors=errors)
    return ValidationResult(valid=True, normalized=normalized)


def extract_key_phrases(text: str, limit: int = 10) -> List[str]:
    """Most frequent meaningful words, ties kept in first-seen order."""
    words = _WORD_SPLIT_RE.split(normalize(text).lower())
    meaningful = [word for word in words if len(word) > 2 and word not in STOP_WORDS]
    return [word for word, _count in Counter(meaningful).most_common(limit)]


def detect_intent_type(text: str) -> str:
    lowered = normalize(text).lower()
    for intent, pattern in INTENT_PATTERNS:
        if pattern.search(lowered):
            return intent
    return "general"


def _error(code: str, message: str) -> Dict[str, str]:
    return {"code": code, "message": message}
