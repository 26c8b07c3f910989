"""
Duplicate Detector - compares candidate records against stored ones

Step 1 asks storage for an exact match on normalized company, normalized
title and date applied (similarity 1.0). Step 2 compares company + title
against the user's recent records with a token-order-insensitive fuzzy
ratio. All storage access goes through the StorageBackend contract.
"""

from datetime import timedelta
from typing import Optional

from rapidfuzz import fuzz

from careerpulse.errors import DuplicateCheckError, StorageError
from careerpulse.logging_config import get_logger
from careerpulse.models import CandidateRecord, DuplicateVerdict, StoredRecord
from careerpulse.normalize import normalize_company, normalize_title

logger = get_logger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.85
DEFAULT_LOOKBACK_DAYS = 90
DEFAULT_MAX_CANDIDATES = 200


def match_key(company: str, title: str) -> str:
    return f"{normalize_company(company)} {normalize_title(title)}".strip()


def similarity(a: str, b: str) -> float:
    """Fuzzy similarity of two match keys, scaled to 0-1."""
    if not a or not b:
        return 0.0
    return fuzz.token_sort_ratio(a, b) / 100.0


class DuplicateDetector:
    """
    Args:
        storage: StorageBackend used for both lookups
        threshold: Fuzzy similarity at or above which a candidate is a duplicate
        lookback_days: Window of stored records considered by the fuzzy step
        max_candidates: Upper bound on records fetched for the fuzzy step
    """

    def __init__(
        self,
        storage,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ):
        if not 0 < threshold <= 1:
            raise ValueError(f"threshold must be in (0, 1], got {threshold}")
        self.storage = storage
        self.threshold = threshold
        self.lookback = timedelta(days=lookback_days)
        self.max_candidates = max_candidates

    def check(self, candidate: CandidateRecord, user_id: str) -> DuplicateVerdict:
        """
        Raises:
            DuplicateCheckError: If storage cannot be queried
        """
        try:
            exact = self.storage.find_duplicate_candidate(
                user_id, candidate.company, candidate.title, candidate.date_applied
            )
        except StorageError as e:
            raise DuplicateCheckError(f"Exact duplicate lookup failed: {e}") from e

        if exact is not None:
            return DuplicateVerdict(
                is_duplicate=True,
                matched_record_id=exact.id,
                similarity=1.0,
                reason="exact match on company, title and date applied",
            )

        try:
            recent = self.storage.find_recent_records(user_id, self.lookback, self.max_candidates)
        except StorageError as e:
            raise DuplicateCheckError(f"Recent records lookup failed: {e}") from e

        key = match_key(candidate.company, candidate.title)
        best: Optional[StoredRecord] = None
        best_score = 0.0
        for record in recent:
            score = similarity(key, match_key(record.company, record.title))
            if score > best_score:
                best, best_score = record, score

        if best is not None and best_score >= self.threshold:
            logger.debug(f"Fuzzy duplicate of {best.id} ({best_score:.2f}): {key}")
            return DuplicateVerdict(
                is_duplicate=True,
                matched_record_id=best.id,
                similarity=round(best_score, 4),
                reason=f"similarity {best_score:.2f} to {best.company} / {best.title}",
            )

        return DuplicateVerdict.unique(round(best_score, 4))
