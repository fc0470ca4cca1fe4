# app/scoring.py
"""Score shaping: reply parsing, normalization, fallback scores, formatting and status."""
import json
import math
import random
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .schemas import DominantFlag, FlagRecord

FLAG_TYPES: Tuple[str, ...] = (
    "toxicity",
    "harassment",
    "hate-speech",
    "sexual",
    "violence",
    "spam",
)

FLAGGED_AT = 0.5
STATUS_FLAGGED_AT = 0.7
STATUS_CLEAN_BELOW = 0.3

# Leading numeric prefix, as a lenient float parser reads it ("0.4abc" -> 0.4).
_NUMERIC_PREFIX = re.compile(r"[+-]?(?:(?-i:Infinity)|\d+\.?\d*(?:e[+-]?\d+)?|\.\d+(?:e[+-]?\d+)?)", re.IGNORECASE)

class ClassifierError(Exception):
    """The classifier could not produce scores."""

class InvalidUpstreamFormat(ClassifierError):
    """The classifier reply was not a JSON object."""

    def __init__(self, message: str = "Invalid AI response format"):
        super().__init__(message)

@dataclass(frozen=True)
class ParsedReply:
    """Outcome of parsing a classifier reply: either raw scores or an error."""
    scores: Optional[Dict[str, Any]] = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.scores is not None

def parse_classifier_reply(text: Any) -> ParsedReply:
    """Parses the classifier's textual reply; only a JSON object counts as success."""
    if not isinstance(text, str):
        return ParsedReply(error=f"expected text reply, got {type(text).__name__}")
    try:
        data = json.loads(text)
    except ValueError as e:
        return ParsedReply(error=f"reply is not JSON: {e}")
    if not isinstance(data, dict):
        return ParsedReply(error=f"reply is a JSON {type(data).__name__}, not an object")
    return ParsedReply(scores=data)

def coerce_score(value: Any) -> float:
    """Converts an untrusted value to a float; anything unparseable becomes NaN."""
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    if isinstance(value, str):
        m = _NUMERIC_PREFIX.match(value.lstrip())
        if m:
            return float(m.group(0))
    return math.nan

def round_score(value: float) -> float:
    """Rounds half-up to 2 decimal places."""
    return math.floor(value * 100 + 0.5) / 100

def normalize_scores(raw: Mapping[str, Any]) -> Dict[str, float]:
    """Returns a complete score mapping with every flag type clamped to [0, 1]."""
    if not isinstance(raw, Mapping):
        raise InvalidUpstreamFormat()
    validated = {}
    for flag in FLAG_TYPES:
        value = coerce_score(raw.get(flag))
        if math.isnan(value):
            value = 0.0
        validated[flag] = round_score(max(0.0, min(1.0, value)))
    return validated

def generate_fallback_scores(rng: Optional[random.Random] = None) -> Dict[str, float]:
    """Placeholder scores used when the classifier is unavailable."""
    rand = rng.random if rng is not None else random.random
    return {flag: round_score(rand()) for flag in FLAG_TYPES}

def format_flags(scores: Mapping[str, float]) -> List[FlagRecord]:
    """Orders scores as flag records in FLAG_TYPES order."""
    return [FlagRecord(flag_type=flag, value=scores.get(flag) or 0) for flag in FLAG_TYPES]

def status_for(score: float) -> str:
    if score >= STATUS_FLAGGED_AT:
        return "flagged"
    if score < STATUS_CLEAN_BELOW:
        return "clean"
    return "borderline"

def derive_status(records: Sequence[FlagRecord]) -> Tuple[DominantFlag, str]:
    """Picks the highest-scoring flag (earliest wins ties) and buckets it into a status."""
    top_type, top_value = None, -1.0
    for record in records:
        if record.value > top_value:
            top_type, top_value = record.flag_type, record.value

    dominant = DominantFlag(type=top_type, score=top_value, flagged=top_value >= FLAGGED_AT)
    return dominant, status_for(top_value)
