"""
Scoring Module - Confidence score for extracted application records

The confidence score (0-100) says how trustworthy a persisted record's
fields are:
1. Field completeness: company, title, status and location each add a
   fixed weight when present and not a placeholder ("Not specified", ...)
2. Source bonus: results produced by the model rather than the heuristic
   fallback add a fixed bonus

The score is a pure function of its inputs. Adding a missing field never
lowers it.
"""

import logging
from typing import Dict, Optional

from careerpulse.models import ExtractionResult

logger = logging.getLogger(__name__)

DEFAULT_FIELD_WEIGHTS: Dict[str, int] = {
    "company": 20,
    "title": 20,
    "status": 15,
    "location": 10,
}

MODEL_SOURCE_BONUS = 35

# Values the model or heuristics emit when a field is unknown
PLACEHOLDER_VALUES = frozenset(
    {
        "",
        "not specified",
        "unknown",
        "unknown company",
        "unknown position",
        "n/a",
        "none",
    }
)


def is_placeholder(value: Optional[str]) -> bool:
    """True if a field value is missing or only a placeholder."""
    if value is None:
        return True
    return str(value).strip().lower() in PLACEHOLDER_VALUES


class ConfidenceScorer:
    """
    Completeness plus source-bonus scorer.

    Args:
        field_weights: Points per present field
        model_bonus: Points for results from the model extraction
    """

    def __init__(
        self,
        field_weights: Optional[Dict[str, int]] = None,
        model_bonus: int = MODEL_SOURCE_BONUS,
    ):
        self.field_weights = dict(field_weights or DEFAULT_FIELD_WEIGHTS)
        self.model_bonus = model_bonus
        if any(w < 0 for w in self.field_weights.values()) or model_bonus < 0:
            raise ValueError("Scoring weights must be non-negative")

    def score(self, result: Optional[ExtractionResult], was_cache_hit: bool = False) -> int:
        """
        Score an extraction result.

        Cached results are model output replayed from the cache, so
        was_cache_hit does not change the score.

        Returns:
            Integer in [0, 100]; 0 for missing or non-job results
        """
        if result is None or not result.is_job_related:
            return 0

        total = 0
        for field_name, weight in self.field_weights.items():
            value = getattr(result, field_name, None)
            if field_name == "status":
                present = value is not None
            else:
                present = not is_placeholder(value)
            if present:
                total += weight

        if result.source == ExtractionResult.SOURCE_MODEL:
            total += self.model_bonus

        return max(0, min(100, int(total)))

