"""
Pre-filter - cheap local keyword test run before any extraction call.
"""

from typing import Iterable, Optional

# Canonical status keywords; a message containing any of these always passes
STATUS_KEYWORDS = ("applied", "interview", "offer", "rejected")

JOB_KEYWORDS = STATUS_KEYWORDS + (
    "application",
    "apply",
    "position",
    "role",
    "job",
    "career",
    "hiring",
    "recruit",
    "candidate",
    "rejection",
    "thank you for",
    "thanks for applying",
    "congratulations",
    "schedule",
    "phone screen",
    "video call",
    "meet with",
    "next steps",
)


class PreFilter:
    """
    Case-insensitive substring match against a curated keyword list.

    False positives are expected and are weeded out by the Extractor.
    """

    def __init__(self, keywords: Optional[Iterable[str]] = None):
        extra = [k.lower() for k in (keywords or JOB_KEYWORDS)]
        # The status keywords can never be configured away
        self.keywords = tuple(dict.fromkeys(list(STATUS_KEYWORDS) + extra))

    def is_candidate(self, subject: str, body: str) -> bool:
        text = f"{subject or ''}\n{body or ''}".lower()
        return any(keyword in text for keyword in self.keywords)
