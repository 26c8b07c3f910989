"""
Models - Data types shared by the mail sync pipeline

Credential and record types mirror the rows kept by the storage layer.
Message, extraction and verdict types are transient and live for a single
sync invocation.
"""

import threading
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ApplicationStatus(str, Enum):
    """Canonical lifecycle states of a job application."""

    APPLIED = "Applied"
    INTERVIEW = "Interview"
    OFFER = "Offer"
    REJECTED = "Rejected"

    @classmethod
    def parse(cls, value: Any) -> Optional["ApplicationStatus"]:
        """
        Match a status string case-insensitively.

        Returns:
            The matching status, or None if value is not one of the four
            canonical statuses
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        wanted = value.strip().lower()
        for status in cls:
            if status.value.lower() == wanted:
                return status
        return None


@dataclass
class Credential:
    """OAuth credential for reading one user's mailbox."""

    user_id: str
    access_token: str
    refresh_token: str
    expires_at: datetime
    email: Optional[str] = None
    connected: bool = True

    def __post_init__(self):
        self.expires_at = ensure_utc(self.expires_at)

    def is_expired(self, now: Optional[datetime] = None, skew_seconds: float = 0) -> bool:
        """True if the access token is past (or within skew_seconds of) its expiry."""
        now = ensure_utc(now or utcnow())
        return now + timedelta(seconds=skew_seconds) >= self.expires_at


@dataclass(frozen=True)
class RawMessage:
    """Snapshot of one message as returned by the mail provider."""

    external_id: str
    sender: str
    subject: str
    body: str
    received_at: datetime
    snippet: str = ""
    thread_id: Optional[str] = None


@dataclass(frozen=True)
class ExtractionResult:
    """Structured fields extracted from one message."""

    SOURCE_MODEL = "model"
    SOURCE_HEURISTIC = "heuristic"

    is_job_related: bool
    company: Optional[str] = None
    title: Optional[str] = None
    status: Optional[ApplicationStatus] = None
    location: Optional[str] = None
    source: str = SOURCE_MODEL

    @classmethod
    def not_job_related(cls, source: str = SOURCE_MODEL) -> "ExtractionResult":
        return cls(is_job_related=False, source=source)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_job_related": self.is_job_related,
            "company": self.company,
            "title": self.title,
            "status": self.status.value if self.status else None,
            "location": self.location,
            "source": self.source,
        }


@dataclass(frozen=True)
class ExtractionOutcome:
    """
    Result of one extraction attempt.

    A failed outcome (result is None) means the extraction could not be
    completed; downstream it is treated as "not job-related". A successful
    outcome may still carry a result with is_job_related=False.
    """

    result: Optional[ExtractionResult]
    from_cache: bool = False
    failure: Optional[str] = None

    @classmethod
    def success(cls, result: ExtractionResult, from_cache: bool = False) -> "ExtractionOutcome":
        return cls(result=result, from_cache=from_cache)

    @classmethod
    def failed_with(cls, reason: str) -> "ExtractionOutcome":
        return cls(result=None, failure=reason)

    @property
    def failed(self) -> bool:
        return self.result is None

    @property
    def is_job_related(self) -> bool:
        return self.result is not None and self.result.is_job_related


@dataclass
class CacheEntry:
    content_hash: str
    result: ExtractionResult
    inserted_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class CandidateRecord:
    """Application record built from one message, ready to be persisted."""

    user_id: str
    company: str
    title: str
    location: str
    status: ApplicationStatus
    date_applied: str
    source_message_id: str
    confidence: int
    is_duplicate_of: Optional[str] = None
    remote_policy: Optional[str] = None
    notes: Optional[str] = None
    source: str = "Email"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass(frozen=True)
class StoredRecord:
    """Application record as read back from storage."""

    id: str
    user_id: str
    company: str
    title: str
    location: Optional[str]
    status: str
    date_applied: str
    created_at: Optional[str] = None


@dataclass(frozen=True)
class DuplicateVerdict:
    is_duplicate: bool
    matched_record_id: Optional[str] = None
    similarity: float = 0.0
    reason: Optional[str] = None

    @classmethod
    def unique(cls, similarity: float = 0.0) -> "DuplicateVerdict":
        return cls(is_duplicate=False, similarity=similarity)


@dataclass
class SyncOptions:
    """
    Options for one sync invocation.

    Attributes:
        max_results: Upper bound on fetched messages (config default when None)
        after_date: Only fetch messages received on or after this date
        cancel_event: Set from another thread to stop processing remaining messages
        deadline_seconds: Wall-clock budget (config default when None)
    """

    max_results: Optional[int] = None
    after_date: Optional[date] = None
    cancel_event: Optional[threading.Event] = None
    deadline_seconds: Optional[float] = None


@dataclass
class SyncSummary:
    total_emails: int = 0
    job_emails: int = 0
    new_applications: int = 0
    duplicates: int = 0
    errors: int = 0
    created_records: List[CandidateRecord] = field(default_factory=list)
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_emails": self.total_emails,
            "job_emails": self.job_emails,
            "new_applications": self.new_applications,
            "duplicates": self.duplicates,
            "errors": self.errors,
            "cancelled": self.cancelled,
            "created_records": [record.to_dict() for record in self.created_records],
        }


@dataclass(frozen=True)
class ConnectionStatus:
    connected: bool
    email: Optional[str] = None
    last_sync: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
