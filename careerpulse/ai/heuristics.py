"""
Heuristic Extractor - keyword and sender rules used when model extraction fails

Only consulted when extraction.heuristic_fallback is enabled. Results carry
source="heuristic", which the confidence scorer rewards less than model
output.
"""

import re
from typing import Optional

from careerpulse.models import ApplicationStatus, ExtractionResult

PLACEHOLDER = "Not specified"
UNKNOWN_COMPANY = "Unknown"

# Checked in this order; rejection phrases are the most specific, and
# interview phrases like "next steps" also show up in polite rejections
REJECTION_PHRASES = [
    "unfortunately",
    "not moving forward",
    "won't be moving forward",
    "will not be moving forward",
    "other candidates",
    "decided to pursue",
    "not selected",
    "unable to move forward",
    "we regret to inform",
    "position has been filled",
    "no longer considering",
    "pursuing other applicants",
    "not be proceeding",
]

OFFER_PHRASES = [
    "job offer",
    "offer letter",
    "offer of employment",
    "extend an offer",
    "extend you an offer",
    "pleased to offer",
    "we would like to offer",
    "we'd like to offer",
    "compensation package",
    "welcome to the team",
]

INTERVIEW_PHRASES = [
    "interview",
    "phone screen",
    "video call",
    "meet the team",
    "schedule a call",
    "next steps in",
    "coding challenge",
    "take-home",
    "assessment",
]

APPLIED_PHRASES = [
    "received your application",
    "application has been received",
    "thank you for applying",
    "thanks for applying",
    "thank you for your application",
    "application has been submitted",
    "successfully submitted",
    "your application is under review",
    "you applied for",
    "your application to",
    "your application for",
]

GENERIC_DOMAINS = {"gmail", "outlook", "yahoo", "hotmail", "mail", "email", "icloud", "protonmail", "aol"}

ATS_DOMAINS = {
    "greenhouse",
    "lever",
    "workday",
    "myworkday",
    "myworkdayjobs",
    "ashbyhq",
    "smartrecruiters",
    "icims",
    "workable",
    "workablemail",
    "candidates",
    "applytojob",
    "taleo",
    "breezy",
    "jobvite",
    "recruitee",
}

NOREPLY_USERNAMES = ("noreply", "no-reply", "donotreply", "do-not-reply", "notifications")

# Sending subdomains skipped in favor of the next label ("e" in e.acme.com)
SENDING_SUBDOMAINS = {"e", "em", "email", "mail", "news", "alerts", "info", "hello", "team", "careers", "jobs"}

ROLE_PATTERNS = [
    r"application for[:\s]+(?:the\s+)?(.+?)(?:\s+at\s+|\s+with\s+|\s*$)",
    r"applied for (?:the )?(?:position|role)?\s*(?:of )?\s*(.+?)(?:\s+at\s+|\.|,|$)",
    r"position of\s+(.+?)(?:\s+at\s+|\.|,|\s-\s|$)",
    r"role of\s+(.+?)(?:\s+at\s+|\.|,|\s-\s|$)",
    r"interest in (?:the )?(.+?) (?:position|role)",
    r"for[:\s]+([A-Z][A-Za-z0-9\s/()-]+?)\s+(?:role|position|job)",
    r"(?:interview|confirmation)\s+(?:with|from|at)\s+[A-Z][\w&.-]*\s+for\s+(?:the\s+)?(.+?)(?:\s+role|\s+position|\.|,|$)",
    r"(?:role|position)[:\s]+(.+?)(?:\s+at\s+|\s*$)",
]

COMPANY_SUBJECT_PATTERNS = [
    r"\bat\s+([A-Z][A-Za-z0-9&.-]*(?:\s+[A-Z][A-Za-z0-9&.-]*)*)",
    r"\bfrom\s+([A-Z][A-Za-z0-9&.-]*(?:\s+[A-Z][A-Za-z0-9&.-]*)*)",
    r"\bwith\s+([A-Z][A-Za-z0-9&.-]*(?:\s+[A-Z][A-Za-z0-9&.-]*)*)",
]


def normalize_sender(sender_raw: str) -> str:
    """
    Extract clean email address from sender string.

    "Acme Careers <jobs@acme.com>" -> "jobs@acme.com"
    """
    match = re.search(r"<([^>]+)>", sender_raw or "")
    if match:
        return match.group(1).lower()
    return (sender_raw or "").strip().lower()


def extract_sender_name(sender_raw: str) -> Optional[str]:
    """
    Extract display name from sender string.

    "Acme Careers <jobs@acme.com>" -> "Acme Careers"
    """
    match = re.match(r"^([^<]+)<", sender_raw or "")
    if match:
        return match.group(1).strip().strip('"')
    return None


def classify_status(text: str) -> Optional[ApplicationStatus]:
    """Map email text to a lifecycle status, or None when no rule matches."""
    text = text.lower()
    for phrases, status in (
        (REJECTION_PHRASES, ApplicationStatus.REJECTED),
        (OFFER_PHRASES, ApplicationStatus.OFFER),
        (INTERVIEW_PHRASES, ApplicationStatus.INTERVIEW),
        (APPLIED_PHRASES, ApplicationStatus.APPLIED),
    ):
        if any(phrase in text for phrase in phrases):
            return status
    return None


def extract_company(sender: str, subject: str) -> str:
    """
    Guess the hiring company from the sender and subject.

    Priority: display name of an ATS or noreply sender, then the sender's
    domain (unless generic or ATS), then "at/from/with Company" in the subject.
    """
    address = normalize_sender(sender)
    domain = address.split("@", 1)[1] if "@" in address else ""
    labels = domain.split(".") if domain else []
    is_ats = any(label in ATS_DOMAINS for label in labels)
    is_noreply = any(nr in address.split("@")[0] for nr in NOREPLY_USERNAMES)

    display_name = extract_sender_name(sender)
    if display_name:
        cleaned = re.sub(
            r"\s*[-|]?\s*(Careers|Recruiting|Talent|HR|Team|Hiring|Jobs)\s*$",
            "",
            display_name,
            flags=re.IGNORECASE,
        ).strip()
        if len(cleaned) > 2 and (is_ats or is_noreply):
            return cleaned[:50]

    if labels and not is_ats:
        first = labels[0]
        if first in SENDING_SUBDOMAINS and len(labels) > 2:
            first = labels[1]
        if first not in GENERIC_DOMAINS:
            return first.replace("-", " ").replace("_", " ").title()

    for pattern in COMPANY_SUBJECT_PATTERNS:
        match = re.search(pattern, subject or "")
        if match:
            return match.group(1).strip()[:50]

    if display_name and len(display_name) > 2:
        return display_name[:50]
    return UNKNOWN_COMPANY


def extract_role(subject: str) -> Optional[str]:
    """Extract a job title from a subject line, or None."""
    for pattern in ROLE_PATTERNS:
        match = re.search(pattern, subject or "", re.IGNORECASE)
        if not match:
            continue
        role = match.group(1).strip()
        role = re.sub(r"^\s*[-:]\s*", "", role)
        role = re.sub(r"\s*[-:]\s*$", "", role)
        if role.lower().startswith(("to ", "at ", "with ", "from ")):
            continue
        if 3 < len(role) < 100:
            return role
    return None


class HeuristicExtractor:
    """Rule-based stand-in for the model extraction."""

    def extract(self, sender: str, subject: str, body: str) -> ExtractionResult:
        status = classify_status(f"{subject} {body}")
        if status is None:
            return ExtractionResult.not_job_related(source=ExtractionResult.SOURCE_HEURISTIC)

        location = "Remote" if re.search(r"\bremote\b", f"{subject} {body}", re.IGNORECASE) else PLACEHOLDER
        return ExtractionResult(
            is_job_related=True,
            company=extract_company(sender, subject),
            title=extract_role(subject) or PLACEHOLDER,
            status=status,
            location=location,
            source=ExtractionResult.SOURCE_HEURISTIC,
        )
