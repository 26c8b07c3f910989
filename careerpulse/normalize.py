"""
Normalization helpers shared by the cache key, duplicate detection and storage.
"""

import re

# Legal-form suffixes dropped from company names ("Acme, Inc." -> "acme")
COMPANY_SUFFIXES = (
    "inc",
    "incorporated",
    "llc",
    "ltd",
    "limited",
    "corp",
    "corporation",
    "co",
    "company",
    "gmbh",
    "plc",
    "pty",
)

_PUNCTUATION = re.compile(r"[^\w\s&+#]")
_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    """Trim and collapse runs of whitespace to single spaces."""
    return _WHITESPACE.sub(" ", text or "").strip()


def normalize_title(title: str) -> str:
    """
    Lowercase, drop punctuation and collapse whitespace.

    "Senior Engineer - Platform" -> "senior engineer platform"
    """
    text = _PUNCTUATION.sub(" ", (title or "").lower())
    return collapse_whitespace(text)


def normalize_company(company: str) -> str:
    """
    Normalize a company name and strip trailing legal-form suffixes.

    "Acme Corp." -> "acme", "Widgets, Inc" -> "widgets"
    """
    words = normalize_title(company).split(" ")
    while len(words) > 1 and words[-1] in COMPANY_SUFFIXES:
        words.pop()
    return " ".join(w for w in words if w)
