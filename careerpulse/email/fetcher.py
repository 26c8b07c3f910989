"""
Mail Fetcher - Bounded keyword search over a user's mailbox

Builds a Gmail query from job-related keywords OR'd together, pages through
the results until max_results is reached, and resolves each hit to a
RawMessage. Does not retry; the orchestrator owns the retry policy.
"""

from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Sequence, Union

from careerpulse.errors import MailProviderError
from careerpulse.logging_config import get_logger
from careerpulse.models import Credential, RawMessage
from careerpulse.resilience import RateLimiter

from .client import GmailClient, build_gmail_service, parse_gmail_message

logger = get_logger(__name__)

# Broad net for the provider-side search; the PreFilter and Extractor narrow it down
JOB_SEARCH_KEYWORDS = [
    "application",
    "apply",
    "applied",
    "interview",
    "offer",
    "rejected",
    "rejection",
    "position",
    "role",
    "job",
    "career",
    "hiring",
    "recruiter",
    "recruit",
    "candidate",
    "thank you for",
    "thanks for applying",
    "congratulations",
    "schedule",
    "phone screen",
    "video call",
    "next steps",
]

DEFAULT_PAGE_SIZE = 100

DateLike = Union[date, datetime, str]


def format_after_date(after_date: DateLike) -> str:
    """
    Format a date lower bound for Gmail's after: operator (YYYY/MM/DD).

    Accepts date/datetime objects or 'YYYY-MM-DD' / 'YYYY/MM/DD' strings.
    """
    if isinstance(after_date, datetime):
        after_date = after_date.date()
    if isinstance(after_date, date):
        return after_date.strftime("%Y/%m/%d")
    text = str(after_date).strip().replace("-", "/")
    try:
        return datetime.strptime(text[:10], "%Y/%m/%d").strftime("%Y/%m/%d")
    except ValueError:
        raise ValueError(f"Invalid after_date: {after_date!r} (expected YYYY-MM-DD)")


def default_after_date(days_back: int = 30) -> date:
    return date.today() - timedelta(days=days_back)


def build_job_query(
    keywords: Sequence[str] = JOB_SEARCH_KEYWORDS,
    after_date: Optional[DateLike] = None,
) -> str:
    """
    Build the Gmail search query.

    Multi-word keywords are quoted. Example:
        (application OR interview OR "next steps") in:inbox after:2024/01/01
    """
    terms = [f'"{kw}"' if " " in kw else kw for kw in keywords]
    query = f"({' OR '.join(terms)}) in:inbox"
    if after_date is not None:
        query += f" after:{format_after_date(after_date)}"
    return query


class MailFetcher:
    """
    Fetches job-related messages for one credential.

    Args:
        service_factory: Builds a Gmail API service from (credential, timeout)
        timeout: Per-call socket timeout in seconds
        rate_limiter: Optional limiter shared by every Gmail call
        page_size: Ids requested per messages.list page
    """

    def __init__(
        self,
        service_factory: Callable = build_gmail_service,
        timeout: float = 30.0,
        rate_limiter: Optional[RateLimiter] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self._service_factory = service_factory
        self.timeout = timeout
        self._rate_limiter = rate_limiter
        self.page_size = page_size

    def client_for(self, credential: Credential) -> GmailClient:
        service = self._service_factory(credential, self.timeout)
        return GmailClient(service, rate_limiter=self._rate_limiter)

    def fetch(
        self,
        credential: Credential,
        query: Optional[str] = None,
        max_results: int = 100,
        after_date: Optional[DateLike] = None,
    ) -> List[RawMessage]:
        """
        Search the mailbox and resolve up to max_results messages.

        Args:
            credential: Valid mailbox credential
            query: Gmail query; the job keyword query when None
            max_results: Upper bound on returned messages
            after_date: Optional lower bound on the received date

        Returns:
            Messages in provider order (newest first for Gmail)

        Raises:
            MailProviderError: On network, quota or API failure
        """
        if max_results <= 0:
            return []

        if query is None:
            query = build_job_query(after_date=after_date)
        elif after_date is not None:
            query = f"{query} after:{format_after_date(after_date)}"

        client = self.client_for(credential)

        message_ids: List[str] = []
        page_token = None
        while len(message_ids) < max_results:
            remaining = max_results - len(message_ids)
            ids, page_token = client.list_message_ids(
                query, min(self.page_size, remaining), page_token
            )
            message_ids.extend(ids[:remaining])
            if not page_token or not ids:
                break

        logger.info(f"Gmail search matched {len(message_ids)} messages for user {credential.user_id}")

        messages = []
        for msg_id in message_ids:
            try:
                raw = client.get_message(msg_id)
            except MailProviderError as e:
                # A message deleted between list and get is not a provider failure
                if e.status == 404:
                    logger.warning(f"Message {msg_id} disappeared before it could be read")
                    continue
                raise
            try:
                messages.append(parse_gmail_message(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed message {msg_id}: {e}")

        return messages
